"""
Tests for the fixed-window upload rate limiter.
"""

import hashlib
import threading

from api.s3.domain.rate_limiter import UploadRateLimiter, client_fingerprint


class TestCheckRateLimit:

    def test_first_request_opens_window(self, rate_limiter, clock):
        result = rate_limiter.check_rate_limit("client-a")

        assert result.allowed
        assert result.remaining_uploads == 9
        assert result.reset_time == clock() + 60_000

    def test_counts_down_then_blocks(self, rate_limiter):
        results = [rate_limiter.check_rate_limit("client-a") for _ in range(10)]

        assert [r.remaining_uploads for r in results] == list(range(9, -1, -1))
        assert all(r.allowed for r in results)

        blocked = rate_limiter.check_rate_limit("client-a")
        assert not blocked.allowed
        assert blocked.remaining_uploads == 0
        assert blocked.reset_time == results[0].reset_time

    def test_clients_are_independent(self, rate_limiter):
        for _ in range(10):
            rate_limiter.check_rate_limit("client-a")

        assert rate_limiter.check_rate_limit("client-b").allowed

    def test_window_resets_after_expiry(self, rate_limiter, clock):
        for _ in range(11):
            rate_limiter.check_rate_limit("client-a")

        clock.advance(60)
        assert not rate_limiter.check_rate_limit("client-a").allowed

        clock.advance(0.001)
        result = rate_limiter.check_rate_limit("client-a")
        assert result.allowed
        assert result.remaining_uploads == 9

    def test_retry_after_rounds_up(self, rate_limiter, clock):
        for _ in range(10):
            rate_limiter.check_rate_limit("client-a")
        clock.advance(30.5)

        blocked = rate_limiter.check_rate_limit("client-a")

        assert rate_limiter.retry_after_seconds(blocked) == 30

    def test_thread_safety(self, clock):
        limiter = UploadRateLimiter(limit=50, window_seconds=60, clock=clock)
        allowed = []

        def worker():
            for _ in range(20):
                allowed.append(limiter.check_rate_limit("shared").allowed)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert allowed.count(True) == 50
        assert allowed.count(False) == 50


class TestCleanup:

    def test_drops_only_expired_windows(self, rate_limiter, clock):
        rate_limiter.check_rate_limit("old")
        clock.advance(45)
        rate_limiter.check_rate_limit("recent")
        clock.advance(20)

        assert rate_limiter.cleanup() == 1
        assert len(rate_limiter) == 1


class TestClientFingerprint:

    def test_hashes_ip_and_user_agent(self):
        expected = hashlib.sha256(b"10.0.0.1Mozilla/5.0").hexdigest()

        assert client_fingerprint("10.0.0.1", "Mozilla/5.0") == expected

    def test_missing_user_agent(self):
        assert client_fingerprint("10.0.0.1", None) == hashlib.sha256(b"10.0.0.1").hexdigest()
