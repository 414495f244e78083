import gc

def container_replace(container, old, new):
    if isinstance(container, dict):
        for key,value in list(container.items()):
            if value is old:
                container[key] = new
        return True
    elif isinstance(container, list):
        for i,value in enumerate(container):
            if value is old:
                container[i] = new
        return True
    elif isinstance(container, set):
        container.discard(old)
        container.add(new)
        return True
    else:
        return False

def rebind(old, new):
    """Point every dict, list and set still holding *old* at *new*.

    Used after a module swap so that ``import m`` bindings in other
    namespaces follow the module registry. Immutable containers (tuples,
    frozensets) and ``from m import f`` bindings are left alone.
    """
    count = 0
    for ref in gc.get_referrers(old):
        if container_replace(container = ref, old = old, new = new):
            count += 1
    return count
