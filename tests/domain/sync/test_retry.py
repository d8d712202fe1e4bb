"""Tests for the retry policy."""

from unittest.mock import Mock

import pytest

from watch_minion.core.config import SyncConfig
from watch_minion.domain.sync.exceptions import TransportError
from watch_minion.domain.sync.retry import SINGLE_ATTEMPT, RetryPolicy


class TestRetryPolicy:
    def test_default_fails_fast(self):
        fn = Mock(side_effect=TransportError("down"))
        sleep = Mock()

        with pytest.raises(TransportError):
            RetryPolicy().call(fn, sleep=sleep)

        assert fn.call_count == 1
        sleep.assert_not_called()

    def test_retries_until_success(self):
        fn = Mock(side_effect=[TransportError("down"), TransportError("down"), "ok"])
        sleep = Mock()
        policy = RetryPolicy(max_attempts=3, backoff_seconds=0.5, backoff_multiplier=2)

        assert policy.call(fn, "arg", sleep=sleep, key="value") == "ok"
        fn.assert_called_with("arg", key="value")
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_gives_up_after_max_attempts(self):
        fn = Mock(side_effect=TransportError("down"))

        with pytest.raises(TransportError):
            RetryPolicy(max_attempts=3, backoff_seconds=0).call(fn, sleep=Mock())

        assert fn.call_count == 3

    def test_other_errors_are_not_retried(self):
        fn = Mock(side_effect=ValueError("bug"))

        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=3).call(fn, sleep=Mock())

        assert fn.call_count == 1

    def test_delay_grows_geometrically(self):
        policy = RetryPolicy(max_attempts=4, backoff_seconds=1.0, backoff_multiplier=3.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 3.0, 9.0]

    def test_from_config(self):
        policy = RetryPolicy.from_config(
            SyncConfig(max_attempts=4, backoff_seconds=0.25, backoff_multiplier=1.5)
        )
        assert policy == RetryPolicy(4, 0.25, 1.5)

    def test_single_attempt_constant(self):
        assert SINGLE_ATTEMPT.max_attempts == 1
