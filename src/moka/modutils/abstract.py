"""The abstract code of a module.

An :class:`AbstractCode` is the parsed syntax tree of one module together
with where it came from. It is a value: nothing in moka changes the tree
it holds, every transformation builds a new ``AbstractCode``.
"""

import ast
import copy
import sys

from moka.exceptions import UnsupportedAbstractCodeVersionError

# ast node classes and fields change between interpreter releases
AST_VERSION = sys.version_info[:2]


class AbstractCode:
    __slots__ = ('module', 'filename', 'package_path', 'version', '_tree')

    def __init__(self, module, tree, filename, package_path = None, version = AST_VERSION):
        if not isinstance(tree, ast.Module):
            raise TypeError(f"expected an ast.Module, got {type(tree).__name__}")
        self.module = module
        self.filename = filename
        self.package_path = tuple(package_path) if package_path is not None else None
        self.version = tuple(version)
        self._tree = tree

    @classmethod
    def from_source(cls, module, source, filename = '<moka>', package_path = None):
        return cls(module, ast.parse(source, filename = filename), filename, package_path)

    @property
    def tree(self):
        """A private copy of the syntax tree."""
        return copy.deepcopy(self._tree)

    @property
    def is_package(self):
        return self.package_path is not None

    def with_tree(self, tree):
        return AbstractCode(self.module, tree, self.filename, self.package_path, self.version)

    def dump(self):
        return ast.dump(self._tree)

    def __eq__(self, other):
        if not isinstance(other, AbstractCode):
            return NotImplemented
        return (self.module, self.version, self.dump()) == (other.module, other.version, other.dump())

    def __hash__(self):
        return hash((self.module, self.version, self.dump()))

    def __repr__(self):
        return f"<AbstractCode {self.module} from {self.filename}>"


def check_version(abs_code):
    if abs_code.version != AST_VERSION:
        raise UnsupportedAbstractCodeVersionError(abs_code.module, abs_code.version)
