"""Tests for the call history server."""
import threading

import pytest
from hypothesis import given, settings, strategies as st

import moka.history as history
from moka.exceptions import BadRequestError, ServerStoppedError
from moka.records import CallDescription, CallRecord, Raise, Return

from conftest import unique

DESCRIPTION = CallDescription('my_mod', 'bar')


class TestAppend:

    def test_empty(self, history_server):
        assert history.get_calls(history_server) == []

    def test_return_and_exception(self, history_server):
        error = ValueError('nope')
        history.add_return(history_server, ('my_mod', 'bar'), [1, 2], 3)
        history.add_exception(history_server, ('my_mod', 'baz'), [], ValueError, error)

        first, second = history.get_calls(history_server)
        assert first == CallRecord(DESCRIPTION, (1, 2), Return(3))
        assert first.returned
        assert second.description == CallDescription('my_mod', 'baz')
        assert second.outcome == Raise(ValueError, error)
        assert not second.returned

    def test_by_name(self, history_server):
        history.add_return(history_server.name, DESCRIPTION, [], None)
        assert len(history.get_calls(history_server.name)) == 1

    def test_oldest_first(self, history_server):
        for i in range(5):
            history.add_return(history_server, DESCRIPTION, [i], i)
        assert [r.outcome.value for r in history.get_calls(history_server)] == [0, 1, 2, 3, 4]

    def test_snapshot_is_a_copy(self, history_server):
        history.add_return(history_server, DESCRIPTION, [], 1)
        snapshot = history.get_calls(history_server)
        history.add_return(history_server, DESCRIPTION, [], 2)
        assert len(snapshot) == 1
        assert len(history.get_calls(history_server)) == 2

    def test_malformed_record(self, history_server):
        with pytest.raises(BadRequestError):
            history_server.call(('add_call', ('not', 'a', 'record')))
        with pytest.raises(BadRequestError):
            history_server.call(('add_call',))
        assert history.get_calls(history_server) == []


class TestConcurrency:

    def test_no_lost_updates(self, history_server):
        threads = [
            threading.Thread(
                target=lambda n=n: [history.add_return(history_server, DESCRIPTION, [n, i], i)
                                    for i in range(50)])
            for n in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        calls = history.get_calls(history_server)
        assert len(calls) == 400
        # each writer's own records stay in its order
        for n in range(8):
            mine = [r.args[1] for r in calls if r.args[0] == n]
            assert mine == list(range(50))


class TestStop:

    def test_calls_fail_after_stop(self, history_server):
        history.stop(history_server)
        with pytest.raises(ServerStoppedError):
            history.get_calls(history_server)
        with pytest.raises(ServerStoppedError):
            history.add_return(history_server, DESCRIPTION, [], 1)


outcomes = st.one_of(
    st.builds(Return, st.integers() | st.text() | st.none()),
    st.builds(lambda msg: Raise(KeyError, KeyError(msg)), st.text()),
)
records = st.builds(
    CallRecord,
    st.builds(CallDescription, st.sampled_from(['a', 'b.c']), st.sampled_from(['f', 'g'])),
    st.lists(st.integers(), max_size=3).map(tuple),
    outcomes,
)


@settings(max_examples=25, deadline=None)
@given(st.lists(records, max_size=20))
def test_history_keeps_every_record_in_order(sequence):
    server = history.start(unique("history"))
    try:
        for record in sequence:
            history.add_call(server, record)
        assert history.get_calls(server) == sequence
    finally:
        server.stop()
