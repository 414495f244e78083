"""Values stored in a call history."""

from dataclasses import dataclass
from typing import Any, NamedTuple


class CallDescription(NamedTuple):
    """Identity of a replaced function."""
    module: str
    function: str


@dataclass(frozen=True)
class Return:
    """The substitute returned ``value``."""
    value: Any


@dataclass(frozen=True)
class Raise:
    """The substitute raised ``reason``, an instance of ``exc_type``."""
    exc_type: type
    reason: BaseException


@dataclass(frozen=True)
class CallRecord:
    """One call to a substitute and how it ended.

    ``args`` is a tuple copied from the call's argument sequence, but the
    argument values themselves are kept by reference, like
    :attr:`unittest.mock.Mock.call_args`. A caller that mutates a list it
    passed in changes what the record shows.
    """
    description: CallDescription
    args: tuple
    outcome: Return | Raise

    @property
    def returned(self):
        return isinstance(self.outcome, Return)
