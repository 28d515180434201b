import re
import threading

import pytest

from quotedesk.errors import NumberAllocationFailed
from quotedesk.quotations.numbering import (
    NumberCollision,
    RetryPolicy,
    allocate_and_persist,
    allocate_number,
    format_number,
    is_valid_prefix,
    next_candidate,
    parse_suffix,
)

NO_WAIT = RetryPolicy(max_attempts=3, backoff_min=0, backoff_max=0)


def test_format_and_parse():
    assert format_number("QT", 1) == "QT-0001"
    assert format_number("QT", 42) == "QT-0042"
    assert format_number("QT", 10000) == "QT-10000"

    assert parse_suffix("QT-0042", "QT") == 42
    assert parse_suffix("INV-0042", "QT") is None
    assert parse_suffix("QT-abc", "QT") is None
    assert parse_suffix(None, "QT") is None


def test_prefix_validation():
    assert is_valid_prefix("QT")
    assert is_valid_prefix("Q2026")
    assert not is_valid_prefix("")
    assert not is_valid_prefix("qt")
    assert not is_valid_prefix("QT-")
    assert not is_valid_prefix("ABCDEFGHIJK")


def test_first_number_for_fresh_tenant(memory_store):
    assert allocate_number(memory_store, 1, "QT", policy=NO_WAIT) == "QT-0001"


def test_numbers_follow_the_last_one(memory_store):
    memory_store.insert(1, "QT-0001")
    memory_store.insert(1, "QT-0002")
    assert next_candidate(memory_store, 1, "QT") == "QT-0003"


def test_suffix_ordering_is_numeric(memory_store):
    memory_store.insert(1, "QT-9999")
    memory_store.insert(1, "QT-10000")
    assert next_candidate(memory_store, 1, "QT") == "QT-10001"


def test_sequences_are_per_tenant(memory_store):
    memory_store.insert(1, "QT-0007")
    assert allocate_number(memory_store, 2, "QT", policy=NO_WAIT) == "QT-0001"
    assert allocate_number(memory_store, 1, "QT", policy=NO_WAIT) == "QT-0008"


def test_allocate_number_does_not_reserve(memory_store):
    first = allocate_number(memory_store, 1, "QT", policy=NO_WAIT)
    second = allocate_number(memory_store, 1, "QT", policy=NO_WAIT)
    assert first == second == "QT-0001"


def test_retry_after_losing_insert_race(memory_store):
    calls = []

    def persist(number):
        calls.append(number)
        if len(calls) == 1:
            # a competing request commits the same number first
            memory_store.insert(1, number)
            raise NumberCollision(number)
        return memory_store.insert(1, number)

    assert allocate_and_persist(memory_store, 1, persist, policy=NO_WAIT) == "QT-0002"
    assert calls == ["QT-0001", "QT-0002"]


def test_stale_read_is_caught_by_exists_check(memory_store):
    memory_store.insert(1, "QT-0001")
    reads = []

    class StaleFirstRead:
        def last_number(self, tenant_id, prefix):
            reads.append(prefix)
            return None if len(reads) == 1 else memory_store.last_number(tenant_id, prefix)

        def exists(self, tenant_id, number):
            return memory_store.exists(tenant_id, number)

    number = allocate_and_persist(StaleFirstRead(), 1, lambda n: memory_store.insert(1, n), policy=NO_WAIT)
    assert number == "QT-0002"
    assert len(reads) == 2


def test_exhausted_attempts_raise_and_persist_nothing(memory_store):
    sleeps = []

    def always_collides(number):
        raise NumberCollision(number)

    with pytest.raises(NumberAllocationFailed):
        allocate_and_persist(memory_store, 1, always_collides,
                             policy=RetryPolicy(max_attempts=3, backoff_min=0.01, backoff_max=0.05),
                             sleep=sleeps.append)

    assert memory_store.rows == {}
    assert len(sleeps) == 2
    assert all(0.01 <= s <= 0.05 for s in sleeps)


def test_policy_from_config():
    policy = RetryPolicy.from_config({"QUOTATION_NUMBER_MAX_ATTEMPTS": 5, "QUOTATION_NUMBER_BACKOFF_MS": 40})
    assert policy.max_attempts == 5
    assert policy.backoff_max == pytest.approx(0.04)

    assert RetryPolicy.from_config({"QUOTATION_NUMBER_MAX_ATTEMPTS": 0}).max_attempts == 1


@pytest.mark.parametrize("workers", [2, 8])
def test_concurrent_allocations_are_distinct(memory_store, workers):
    # every lost race means another worker succeeded, so `workers` attempts always suffice
    policy = RetryPolicy(max_attempts=workers, backoff_min=0, backoff_max=0.01)
    barrier = threading.Barrier(workers)
    results, errors = [], []

    def create():
        barrier.wait()
        try:
            results.append(allocate_and_persist(memory_store, 1, lambda n: memory_store.insert(1, n),
                                                prefix="QT", policy=policy))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=create) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(results) == workers
    assert len(set(results)) == workers
    assert all(re.match(r"^QT-\d{4}$", n) for n in results)
    assert sorted(results) == [format_number("QT", i) for i in range(1, workers + 1)]
