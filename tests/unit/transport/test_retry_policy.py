"""Unit tests for RetryPolicy and TimeoutConfig."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from onkyo_sync.transport.retry_policy import RetryPolicy, TimeoutConfig


class TestRetryPolicy:
    """Tests for exponential backoff delays."""

    def test_defaults_match_reconnect_contract(self):
        policy = RetryPolicy()
        assert policy.base_delay_seconds == pytest.approx(0.5)
        assert policy.max_delay_seconds == pytest.approx(5.0)

    @pytest.mark.parametrize(("attempt", "expected"), [(0, 0.5), (1, 1.0), (2, 2.0), (3, 4.0), (4, 5.0), (10, 5.0)])
    def test_exponential_growth_capped(self, attempt: int, expected: float):
        policy = RetryPolicy(jitter_factor=0.0)
        assert policy.get_delay(attempt) == pytest.approx(expected)

    def test_jitter_bounded(self):
        policy = RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=10.0, jitter_factor=0.1)
        for _ in range(50):
            delay = policy.get_delay(0)
            assert 1.0 <= delay <= 1.1

    def test_jitter_uses_uniform_draw(self):
        policy = RetryPolicy(base_delay_seconds=1.0, jitter_factor=0.5)
        with patch("onkyo_sync.transport.retry_policy.random.uniform", return_value=0.25) as uniform:
            assert policy.get_delay(0) == pytest.approx(1.25)
        uniform.assert_called_once_with(0, 0.5)

    def test_huge_attempt_does_not_overflow(self):
        assert RetryPolicy(jitter_factor=0.0).get_delay(10_000) == pytest.approx(5.0)


class TestTimeoutConfig:
    """Tests for timeout configuration."""

    def test_defaults(self):
        config = TimeoutConfig()
        assert config.connect_timeout_seconds == pytest.approx(5.0)
        assert config.command_timeout_seconds == pytest.approx(3.0)

    def test_write_timeout_defaults_to_command_timeout(self):
        config = TimeoutConfig(command_timeout_seconds=1.5)
        assert config.write_timeout_seconds == pytest.approx(1.5)

    def test_repr(self):
        assert "connect=5.0s" in repr(TimeoutConfig())
