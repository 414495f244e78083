"""Sequential request servers.

A :class:`Server` owns one daemon thread that takes requests from one
queue and handles them strictly in arrival order, so a server's state is
only ever touched by that thread and needs no locking.

Every request travels with a :class:`concurrent.futures.Future` that acts
as the reply handle. A handler either returns the reply value or returns
:data:`NOREPLY` after passing the handle to someone else who will resolve
it later (the call handler's workers do this).

Servers are registered under a name for their whole life; calls accept
either the server object or that name::

    server = MyServer.start('my_server')
    server.call(('ping',))
    call('my_server', ('ping',))
    server.stop()
"""

import queue
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeout

from moka import config
from moka.exceptions import (
    AlreadyStartedError,
    BadRequestError,
    CallTimeoutError,
    NoSuchServerError,
    ServerStoppedError,
)
from moka.log import get_logger

logger = get_logger(__name__)

NOREPLY = object()

_registry = {}
_registry_lock = threading.Lock()


def whereis(name):
    with _registry_lock:
        try:
            return _registry[name]
        except KeyError:
            raise NoSuchServerError(name) from None


def registered():
    with _registry_lock:
        return sorted(_registry)


def resolve(ref):
    return ref if isinstance(ref, Server) else whereis(ref)


def call(ref, request, timeout=None):
    return resolve(ref).call(request, timeout=timeout)


class Server:
    """Base class for a named, single-threaded request server.

    Subclasses implement :meth:`handle_call`. The ``('stop',)`` request
    is handled here.
    """

    def __init__(self, name):
        self.name = name
        self._inbox = queue.Queue()
        self._lock = threading.Lock()
        self._stopped = False
        self._thread = threading.Thread(
            target=self._loop, name=f"moka:{name}", daemon=True)

    @classmethod
    def start(cls, name, *args, **kwargs):
        server = cls(name, *args, **kwargs)
        with _registry_lock:
            if name in _registry:
                raise AlreadyStartedError(name)
            _registry[name] = server
        server._thread.start()
        logger.debug("server_started", server=name, kind=cls.__name__)
        return server

    @property
    def running(self):
        return not self._stopped

    def call(self, request, timeout=None):
        """Send *request* and wait for the reply.

        Raises whatever the handler reported for this request,
        :class:`ServerStoppedError` if the server is gone, or
        :class:`CallTimeoutError` if no reply came in time.
        """
        if timeout is None:
            timeout = config.settings().call_timeout

        reply = Future()
        with self._lock:
            if self._stopped:
                raise ServerStoppedError(self.name)
            self._inbox.put((request, reply))

        try:
            return reply.result(timeout)
        except FutureTimeout:
            raise CallTimeoutError(self.name, timeout) from None

    def stop(self):
        self.call(('stop',))
        self._thread.join()

    def handle_call(self, request, reply):
        raise BadRequestError(request)

    def _loop(self):
        while True:
            request, reply = self._inbox.get()

            if isinstance(request, tuple) and request == ('stop',):
                self._shutdown()
                reply.set_result(None)
                return

            try:
                result = self.handle_call(request, reply)
            except BadRequestError as error:
                logger.warning("bad_request", server=self.name, request=repr(request))
                reply.set_exception(error)
            except Exception as error:
                logger.exception("handler_failed", server=self.name, request=repr(request))
                reply.set_exception(error)
            else:
                if result is not NOREPLY:
                    reply.set_result(result)

    def _shutdown(self):
        with self._lock:
            self._stopped = True

        with _registry_lock:
            if _registry.get(self.name) is self:
                del _registry[self.name]

        while True:
            try:
                _, pending = self._inbox.get_nowait()
            except queue.Empty:
                break
            pending.set_exception(ServerStoppedError(self.name))

        logger.debug("server_stopped", server=self.name)

    def __repr__(self):
        state = 'stopped' if self._stopped else 'running'
        return f"<{type(self).__name__} {self.name!r} {state}>"
