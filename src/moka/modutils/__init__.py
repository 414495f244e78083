"""Functions to manipulate loaded code.

The functions in this module never interrupt a thread still running the
code they are about to replace. If some thread has a frame executing the
loaded module, they fail with :class:`ProcessesUsingOldCodeError` and
leave the module alone. Forcing the swap would break those threads in
ways that are very hard to trace back to the swap. If you see these
failures, find out why a thread is still inside the module and fix that.

The code of a module is handled as an :class:`AbstractCode`, the parsed
syntax tree of its source.

Usage::

    code = modutils.get_abs_code('my_mod')
    code = modutils.replace_remote_calls(
        ('other_module', 'bar', 1),
        ('moka.call_handler', 'get_response', ['bar_handler', '$args']),
        code)
    modutils.load_abs_code('my_mod', code)
    ...
    modutils.restore_module('my_mod')
"""

import ast
import importlib
import importlib.machinery
import importlib.util
import sys
import threading
import types
import warnings

from moka.exceptions import (
    CannotCompileFormsError,
    CannotDeleteCodeError,
    CannotGetAbstractCodeError,
    CannotGetObjectCodeError,
    CannotLoadCodeError,
    NoAbstractCodeError,
    ProcessesUsingOldCodeError,
)
from moka.log import get_logger
from moka.modutils import rewrite
from moka.modutils.abstract import AST_VERSION, AbstractCode, check_version
from moka.modutils.purge import threads_using
from moka.modutils.replace import rebind

__all__ = [
    'AbstractCode',
    'AST_VERSION',
    'get_object_code',
    'get_abs_code',
    'load_abs_code',
    'restore_module',
    'replace_remote_calls',
    'to_str',
]

logger = get_logger(__name__)

# serialises every swap of a module registry entry
_code_lock = threading.RLock()


# ── reading code ─────────────────────────────────────────────

def find_spec(module):
    """Spec for *module* on the search path, ignoring ``sys.modules``."""
    parent = module.rpartition('.')[0]
    path = None
    if parent:
        try:
            path = getattr(importlib.import_module(parent), '__path__', None)
        except ImportError:
            return None
        if path is None:
            return None

    for finder in sys.meta_path:
        find = getattr(finder, 'find_spec', None)
        if find is None:
            continue
        spec = find(module, path, None)
        if spec is not None:
            return spec
    return None


def _object_code(module):
    spec = find_spec(module)
    loader = getattr(spec, 'loader', None)
    if loader is None or not hasattr(loader, 'get_code'):
        raise CannotGetObjectCodeError(module)
    try:
        code = loader.get_code(module)
    except (ImportError, OSError, SyntaxError, ValueError):
        raise CannotGetObjectCodeError(module) from None
    if code is None:
        raise CannotGetObjectCodeError(module)
    return spec, code


def get_object_code(module):
    """Returns the code object of a loadable module.

    Independently of whether the module is loaded, this function fails if
    the module cannot be loaded again (i.e. if it is not on the search
    path, or it is a built-in module without Python code).
    """
    return _object_code(module)[1]


def get_abs_code(module):
    """Returns the abstract code of a loadable module.

    Raises :class:`NoAbstractCodeError` when the loader has no source for
    the module, usually because only its bytecode was installed.
    :class:`CannotGetObjectCodeError` if *module* is not a loadable Python
    module (e.g. the name is misspelled).
    """
    spec, code = _object_code(module)
    try:
        source = spec.loader.get_source(module)
    except (ImportError, OSError) as error:
        raise CannotGetAbstractCodeError(module, error) from error
    if source is None:
        raise NoAbstractCodeError(module)

    try:
        tree = ast.parse(source, filename = code.co_filename)
    except (SyntaxError, ValueError) as error:
        raise CannotGetAbstractCodeError(module, error) from error

    return AbstractCode(module, tree, code.co_filename,
                        package_path = spec.submodule_search_locations)


def to_str(abs_code):
    """Returns a pretty printed version of *abs_code*."""
    return ast.unparse(abs_code.tree)


def replace_remote_calls(target, new_call, abs_code):
    """Replaces remote function calls in *abs_code*.

    *target* is ``(module, function, arity)`` and *new_call* is
    ``(new_module, new_function, args)``. An element ``'$args'`` of
    ``args`` is replaced by a list of the arguments of the old call; the
    other elements are written as literals.

    For example, if *abs_code* represents a module ``my_mod`` containing::

        def foo(x):
            return other_module.bar(x)

    this call changes ``other_module.bar(x)`` into
    ``print('Args:', [x])``::

        replace_remote_calls(('other_module', 'bar', 1),
                             ('builtins', 'print', ['Args:', '$args']),
                             code)

    Returns a new :class:`AbstractCode`; *abs_code* is not changed.
    """
    check_version(abs_code)
    tree = abs_code.tree
    count = rewrite.replace_remote_calls(tuple(target), tuple(new_call), tree)
    logger.debug("remote_calls_replaced", module=abs_code.module,
                 target='{}.{}/{}'.format(*target),
                 new_call=f"{new_call[0]}.{new_call[1]}", count=count)
    return abs_code.with_tree(tree)


# ── loading code ─────────────────────────────────────────────

def load_abs_code(module, abs_code):
    """Substitutes the current *module* with the result of compiling *abs_code*.

    The new module is named *module* and gets an attribute
    ``__moka_orig_module__`` holding the name the code was read from.

    Raises :class:`ProcessesUsingOldCodeError`, :class:`CannotCompileFormsError`
    or :class:`CannotLoadCodeError`; in all of them the current module is
    left as it was.
    """
    check_version(abs_code)
    code = compile_forms(module, abs_code)

    with _code_lock:
        old = sys.modules.get(module)
        safe_purge(module, old)
        new = _new_module(module, abs_code)
        try:
            exec(code, new.__dict__)
        except Exception as error:
            raise CannotLoadCodeError(module, error) from error
        _swap(module, old, new)

    logger.info("code_loaded", module=module, origin=abs_code.module)


def restore_module(module):
    """Restores the original module behaviour.

    The module is loaded again from the search path and replaces the
    current one under the same rules as :func:`load_abs_code`.
    """
    with _code_lock:
        old = sys.modules.get(module)
        safe_purge(module, old)

        spec = find_spec(module)
        if spec is None or spec.loader is None:
            raise CannotLoadCodeError(module, 'not found on the search path')
        new = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(new)
        except Exception as error:
            raise CannotLoadCodeError(module, error) from error
        _swap(module, old, new)

    logger.info("code_restored", module=module)


def compile_forms(module, abs_code):
    with warnings.catch_warnings(record = True) as caught:
        warnings.simplefilter('always')
        try:
            code = compile(abs_code.tree, abs_code.filename, 'exec', dont_inherit = True)
        except (SyntaxError, TypeError, ValueError) as error:
            raise CannotCompileFormsError(
                module, [error] + [w.message for w in caught]) from error

    if caught:
        report_warnings(module, caught)
    return code


def report_warnings(module, caught):
    logger.info("compile_warnings", module=module,
                warnings=[f"{w.filename}:{w.lineno}: {w.message}" for w in caught])


def _new_module(module, abs_code):
    new = types.ModuleType(module)
    spec = importlib.machinery.ModuleSpec(
        module, None, origin = abs_code.filename, is_package = abs_code.is_package)
    if abs_code.is_package:
        spec.submodule_search_locations = list(abs_code.package_path)
        new.__path__ = list(abs_code.package_path)
        new.__package__ = module
    else:
        new.__package__ = module.rpartition('.')[0]
    new.__spec__ = spec
    new.__loader__ = None
    new.__file__ = abs_code.filename
    new.__moka_orig_module__ = abs_code.module
    return new


# We are careful not to break any thread lingering in the old code, as that
# leads to test failures far away from their cause. If some thread is still
# running the module, refuse to replace it.
def safe_purge(module, loaded):
    if loaded is None:
        return
    users = threads_using(loaded)
    if users:
        logger.warning("old_code_in_use", module=module, threads=sorted(users))
        raise ProcessesUsingOldCodeError(module, users)


def _swap(module, old, new):
    if sys.modules.get(module) is not old:
        # either a bug or someone loading code behind our back
        raise CannotDeleteCodeError(module)

    sys.modules[module] = new
    parent, _, child = module.rpartition('.')
    if parent and parent in sys.modules:
        setattr(sys.modules[parent], child, new)
    if old is not None:
        rebind(old, new)
