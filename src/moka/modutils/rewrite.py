"""Redirect remote calls inside a syntax tree.

A remote call is a call whose callee is an attribute of a dotted module
name, such as ``other_module.bar(x)`` or ``os.path.join(a, b)``. Matching
is purely syntactic: ``(module, function, arity)`` matches when the callee
spells ``module.function`` and the call passes exactly ``arity``
positional arguments, with no ``*args``, ``**kwargs`` or keywords.
"""

import ast
import copy

ARGS = '$args'


def dotted_name(node):
    parts = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return '.'.join(reversed(parts))


def analyze_call(node):
    """``(module, function, arity)`` of a remote call node, or None."""
    func = node.func
    if not isinstance(func, ast.Attribute):
        return None
    module = dotted_name(func.value)
    if module is None or node.keywords:
        return None
    if any(isinstance(arg, ast.Starred) for arg in node.args):
        return None
    return module, func.attr, len(node.args)


def alias_for(module):
    # single leading underscore: a double one would be mangled in class bodies
    return '_moka_' + module.replace('.', '_')


def abstract(value):
    """Build the literal expression for *value*."""
    if value is None or value is Ellipsis or isinstance(value, (bool, int, float, complex, str, bytes)):
        return ast.Constant(value)
    if isinstance(value, tuple):
        return ast.Tuple(elts = [abstract(v) for v in value], ctx = ast.Load())
    if isinstance(value, list):
        return ast.List(elts = [abstract(v) for v in value], ctx = ast.Load())
    if isinstance(value, (set, frozenset)):
        return ast.Set(elts = [abstract(v) for v in value])
    if isinstance(value, dict):
        return ast.Dict(keys = [abstract(k) for k in value], values = [abstract(v) for v in value.values()])
    raise TypeError(f"cannot write {value!r} as a literal")


def make_arg(arg, old_args):
    if isinstance(arg, str) and arg == ARGS:
        return ast.List(elts = copy.deepcopy(old_args), ctx = ast.Load())
    return abstract(arg)


class RemoteCallReplacer(ast.NodeTransformer):

    def __init__(self, target, new_call):
        module, function, arity = target
        self.target = (module, function, arity)
        self.new_module, self.new_function, self.template = new_call
        self.alias = alias_for(self.new_module)
        self.replaced = 0

    def visit_Call(self, node):
        # arguments first, so nested matching calls are redirected too
        self.generic_visit(node)
        if analyze_call(node) != self.target:
            return node

        self.replaced += 1
        func = ast.Attribute(
            value = ast.Name(id = self.alias, ctx = ast.Load()),
            attr = self.new_function,
            ctx = ast.Load())
        new = ast.Call(
            func = func,
            args = [make_arg(arg, node.args) for arg in self.template],
            keywords = [])
        return ast.copy_location(new, node)


def import_position(tree):
    body = tree.body
    index = 0
    if (body and isinstance(body[0], ast.Expr)
            and isinstance(body[0].value, ast.Constant)
            and isinstance(body[0].value.value, str)):
        index = 1
    while (index < len(body) and isinstance(body[index], ast.ImportFrom)
            and body[index].module == '__future__'):
        index += 1
    return index


def has_import(tree, module, alias):
    for node in tree.body:
        if isinstance(node, ast.Import):
            for name in node.names:
                if name.name == module and name.asname == alias:
                    return True
    return False


def insert_import(tree, module, alias):
    if has_import(tree, module, alias):
        return
    node = ast.Import(names = [ast.alias(name = module, asname = alias)])
    tree.body.insert(import_position(tree), node)


def replace_remote_calls(target, new_call, tree):
    """Rewrite *tree* in place; returns the number of calls replaced."""
    if not isinstance(new_call[2], (list, tuple)):
        raise TypeError(f"argument template must be a list, got {new_call[2]!r}")
    # fail before touching the tree if a literal cannot be written
    for arg in new_call[2]:
        if not (isinstance(arg, str) and arg == ARGS):
            abstract(arg)

    replacer = RemoteCallReplacer(target, new_call)
    replacer.visit(tree)
    if replacer.replaced:
        insert_import(tree, replacer.new_module, replacer.alias)
        ast.fix_missing_locations(tree)
    return replacer.replaced
