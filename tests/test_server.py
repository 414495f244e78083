"""Tests for the sequential server base and its name registry."""
import threading
import time

import pytest

from moka import server as srv
from moka.exceptions import (
    AlreadyStartedError,
    BadRequestError,
    CallTimeoutError,
    NoSuchServerError,
    ServerStoppedError,
)


class Echo(srv.Server):

    def __init__(self, name):
        super().__init__(name)
        self.parked = []

    def handle_call(self, request, reply):
        if isinstance(request, tuple) and request[0] == 'echo':
            return request[1]
        if request == ('park',):
            self.parked.append(reply)
            return srv.NOREPLY
        if request == ('boom',):
            raise RuntimeError('boom')
        return super().handle_call(request, reply)


@pytest.fixture
def echo(names):
    server = Echo.start(names("echo"))
    yield server
    if server.running:
        server.stop()


class TestCalls:

    def test_reply(self, echo):
        assert echo.call(('echo', 42)) == 42

    def test_call_by_name(self, echo):
        assert srv.call(echo.name, ('echo', 'x')) == 'x'

    def test_bad_request_keeps_server_running(self, echo):
        with pytest.raises(BadRequestError) as info:
            echo.call(('nonsense', 1, 2))
        assert info.value.request == ('nonsense', 1, 2)
        assert echo.call(('echo', 1)) == 1

    def test_unhashable_request_is_a_bad_request(self, echo):
        with pytest.raises(BadRequestError):
            echo.call({'not': 'a tuple'})
        assert echo.running

    def test_handler_error_reaches_caller(self, echo):
        with pytest.raises(RuntimeError, match='boom'):
            echo.call(('boom',))
        assert echo.call(('echo', 2)) == 2

    def test_noreply_waits_for_someone_else(self, echo):
        result = {}

        def caller():
            result['value'] = echo.call(('park',))

        t = threading.Thread(target=caller)
        t.start()
        # the server is free while the parked request waits
        assert echo.call(('echo', 'free')) == 'free'
        while not echo.parked:
            time.sleep(0.001)
        echo.parked[0].set_result('late')
        t.join(5)
        assert result == {'value': 'late'}

    def test_timeout(self, echo):
        with pytest.raises(CallTimeoutError) as info:
            echo.call(('park',), timeout=0.05)
        assert info.value.name == echo.name


class TestLifecycle:

    def test_stop(self, echo):
        echo.stop()
        assert not echo.running
        with pytest.raises(ServerStoppedError):
            echo.call(('echo', 1))

    def test_stop_twice_fails(self, echo):
        echo.stop()
        with pytest.raises(ServerStoppedError):
            echo.stop()

    def test_stop_releases_name(self, echo):
        name = echo.name
        assert name in srv.registered()
        echo.stop()
        assert name not in srv.registered()
        with pytest.raises(NoSuchServerError):
            srv.whereis(name)

    def test_duplicate_name(self, echo):
        with pytest.raises(AlreadyStartedError):
            Echo.start(echo.name)
        assert srv.whereis(echo.name) is echo

    def test_unknown_name(self, names):
        with pytest.raises(NoSuchServerError):
            srv.call(names("missing"), ('echo', 1))
