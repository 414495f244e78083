"""A server holding the call history of a mocking session.

Records are kept in the order their ``add_call`` requests reached the
server; :func:`get_calls` returns them oldest first.
"""

from moka.log import get_logger
from moka.records import CallDescription, CallRecord, Raise, Return
from moka.server import Server, call, resolve
from moka.exceptions import BadRequestError

logger = get_logger(__name__)


class HistoryServer(Server):

    def __init__(self, name):
        super().__init__(name)
        self._calls = []

    def handle_call(self, request, reply):
        if request == ('get_calls',):
            return list(self._calls)

        if isinstance(request, tuple) and len(request) == 2 and request[0] == 'add_call':
            record = request[1]
            if not isinstance(record, CallRecord):
                raise BadRequestError(request)
            self._calls.append(record)
            logger.debug("call_recorded", server=self.name,
                         function=f"{record.description.module}.{record.description.function}",
                         outcome=type(record.outcome).__name__)
            return None

        return super().handle_call(request, reply)


def start(name):
    """Start a history server registered as *name*."""
    return HistoryServer.start(name)


def stop(server):
    resolve(server).stop()


def add_call(server, record):
    call(server, ('add_call', record))


def add_return(server, description, args, value):
    """Add a successful function call to the history."""
    add_call(server, CallRecord(CallDescription(*description), tuple(args), Return(value)))


def add_exception(server, description, args, exc_type, reason):
    """Add a failed function call to the history."""
    add_call(server, CallRecord(CallDescription(*description), tuple(args), Raise(exc_type, reason)))


def get_calls(server):
    """Get the call history, oldest call first."""
    return call(server, ('get_calls',))
