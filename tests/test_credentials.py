"""
Tests for round-robin API key rotation.
"""
import threading

import pytest

from relaybot.credentials import CredentialRotator
from relaybot.exceptions import ConfigurationError


def test_starts_at_first_credential():
    rotator = CredentialRotator(["a", "b"], threshold=3)
    assert rotator.current_index() == 0
    assert rotator.call_count == 0


def test_advances_after_threshold_calls():
    rotator = CredentialRotator(["a", "b", "c"], threshold=3)
    for _ in range(2):
        rotator.record_call()
    assert rotator.current_index() == 0
    assert rotator.call_count == 2

    rotator.record_call()
    assert rotator.current_index() == 1
    assert rotator.call_count == 0


def test_full_cycle_returns_to_start():
    rotator = CredentialRotator(["a", "b", "c"], threshold=60)
    for _ in range(60 * 3):
        rotator.record_call()
    assert rotator.current_index() == 0
    assert rotator.call_count == 0


def test_single_credential_pool_stays_in_bounds():
    rotator = CredentialRotator(["only"], threshold=2)
    for _ in range(7):
        index, credential = rotator.acquire()
        assert index == 0
        assert credential == "only"


def test_acquire_returns_index_used_for_the_call():
    rotator = CredentialRotator(["a", "b"], threshold=2)
    assert rotator.acquire() == (0, "a")
    # second call on "a" triggers the advance, but is still served by "a"
    assert rotator.acquire() == (0, "a")
    assert rotator.acquire() == (1, "b")


def test_advance_resets_call_count():
    rotator = CredentialRotator(["a", "b"], threshold=10)
    rotator.record_call()
    assert rotator.advance("rate_limited") == 1
    assert rotator.call_count == 0
    assert rotator.advance() == 0


def test_concurrent_calls_advance_exactly_once_per_threshold():
    rotator = CredentialRotator(["a", "b", "c", "d"], threshold=50)

    def worker():
        for _ in range(25):
            rotator.acquire()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # 200 calls / 50 per key = 4 advances, back to the start
    assert rotator.current_index() == 0
    assert rotator.call_count == 0


@pytest.mark.parametrize("credentials,threshold", [([], 60), (["a"], 0)])
def test_invalid_configuration_rejected(credentials, threshold):
    with pytest.raises(ConfigurationError):
        CredentialRotator(credentials, threshold=threshold)
