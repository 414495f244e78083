"""A server to simulate the calls to mocked functions.

Call sites of a mocked function are redirected to :func:`get_response`,
which asks the call handler registered for that function to run its
``reply_fun``.

The handler never runs ``reply_fun`` itself. Each request gets its own
worker thread that runs the function, records the call in the history
server and replies straight to the waiting caller, so the handler keeps
accepting requests while a slow or re-entrant ``reply_fun`` is running.

Exceptions raised by ``reply_fun`` are caught by the worker, wrapped in an
:class:`ExceptionEnvelope` tagged with a token only the caller knows, and
raised again in the calling thread. A ``reply_fun`` that *returns* an
envelope-looking value can never be mistaken for one that raised.
"""

import sys
import threading
from dataclasses import dataclass
from types import TracebackType

from moka import history
from moka.log import get_logger
from moka.records import CallDescription, CallRecord, Raise, Return
from moka.server import NOREPLY, Server, call, resolve

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExceptionEnvelope:
    tag: object
    exc_type: type
    reason: BaseException
    traceback: TracebackType | None


class CallHandler(Server):

    def __init__(self, name, call_description, reply_fun, history_server):
        super().__init__(name)
        self.call_description = CallDescription(*call_description)
        self.reply_fun = reply_fun
        self.history_server = history_server

    def handle_call(self, request, reply):
        if (isinstance(request, tuple) and len(request) == 3
                and request[0] == 'get_response'
                and isinstance(request[2], (list, tuple))):
            _, tag, args = request
            worker = threading.Thread(
                target=self._respond, args=(tag, tuple(args), reply),
                name=f"moka:{self.name}:worker", daemon=True)
            worker.start()
            return NOREPLY

        return super().handle_call(request, reply)

    def _respond(self, tag, args, reply):
        result = get_result(tag, self.reply_fun, args)
        try:
            add_to_history(self.history_server, self.call_description, args, tag, result)
        except Exception as error:
            logger.warning("history_unavailable", handler=self.name,
                           history=getattr(self.history_server, 'name', self.history_server),
                           error=repr(error))
            reply.set_exception(error)
        else:
            reply.set_result(result)


def start(name, call_description, reply_fun, history_server):
    """Start a call handler answering with *reply_fun*."""
    if not callable(reply_fun):
        raise TypeError(f"reply_fun must be callable, got {reply_fun!r}")
    return CallHandler.start(name, call_description, reply_fun, history_server)


def get_response(handler, args):
    """Get the response for a call.

    Mocked modules call this function instead of the original destination
    function. Returns what the handler's ``reply_fun`` returned, or raises
    in this thread exactly what it raised.
    """
    if not isinstance(args, (list, tuple)):
        raise TypeError(f"args must be a list, got {args!r}")

    tag = object()
    response = call(handler, ('get_response', tag, args))
    if is_exception(tag, response):
        raise_exception(response)
    return response


def stop(handler):
    """Terminate a call handler."""
    resolve(handler).stop()


# ── internals ────────────────────────────────────────────────

def get_result(tag, reply_fun, args):
    try:
        return reply_fun(*args)
    except BaseException as error:
        logger.debug("substitute_raised", exc_type=type(error).__name__)
        return wrap_exception(tag, error, sys.exc_info()[2])


def wrap_exception(tag, error, traceback):
    return ExceptionEnvelope(tag, type(error), error, traceback)


def is_exception(tag, response):
    return isinstance(response, ExceptionEnvelope) and response.tag is tag


def raise_exception(envelope):
    raise envelope.reason.with_traceback(envelope.traceback)


def add_to_history(server, description, args, tag, result):
    if is_exception(tag, result):
        outcome = Raise(result.exc_type, result.reason)
    else:
        outcome = Return(result)
    history.add_call(server, CallRecord(description, args, outcome))
