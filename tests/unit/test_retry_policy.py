"""Unit tests for the rediscover-and-retry policy."""

import math

from kumo_controller.retry_policy import RetryPolicy


def assert_close(actual: float, expected: float, rel_tol: float = 1e-6) -> None:
    assert math.isclose(actual, expected, rel_tol=rel_tol)


class TestRetryPolicy:
    """Tests for RetryPolicy class."""

    def test_default_allows_exactly_one_rediscovery(self):
        policy = RetryPolicy()

        assert policy.should_retry(0)
        assert not policy.should_retry(1)

    def test_zero_disables_retry(self):
        assert not RetryPolicy(max_rediscoveries=0).should_retry(0)

    def test_negative_treated_as_zero(self):
        policy = RetryPolicy(max_rediscoveries=-3)

        assert policy.max_rediscoveries == 0
        assert not policy.should_retry(0)

    def test_get_delay_exponential_backoff(self):
        policy = RetryPolicy(base_delay_seconds=0.5, max_delay_seconds=5.0, jitter_factor=0.0)

        assert_close(policy.get_delay(0), 0.5)
        assert_close(policy.get_delay(1), 1.0)
        assert_close(policy.get_delay(2), 2.0)
        assert_close(policy.get_delay(3), 4.0)
        assert_close(policy.get_delay(4), 5.0)  # capped

    def test_get_delay_with_jitter(self):
        policy = RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=5.0, jitter_factor=0.1)

        for _ in range(20):
            delay = policy.get_delay(0)
            assert 1.0 <= delay <= 1.1

    def test_zero_base_delay(self):
        assert RetryPolicy(base_delay_seconds=0).get_delay(0) == 0

    def test_repr(self):
        repr_str = repr(RetryPolicy(max_rediscoveries=2))

        assert "RetryPolicy" in repr_str
        assert "max_rediscoveries=2" in repr_str
        assert "base_delay=" in repr_str
        assert "jitter_factor=" in repr_str
