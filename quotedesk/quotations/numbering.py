# quotedesk/quotations/numbering.py
"""
Per-business quotation numbers: <PREFIX>-<NNNN>.

There is no counter kept anywhere. The next number is derived from the last
one stored for the business, and uniqueness is enforced by the
(business_id, quotation_number) constraint on insert. Two creations racing
for the same number are resolved by retrying the loser.

A store passed to these functions provides:

    last_number(tenant_id, prefix) -> str | None
    exists(tenant_id, number) -> bool

`persist(number)` callbacks raise NumberCollision when the insert hits the
uniqueness constraint.
"""

import logging
import random
import re
import time
from dataclasses import dataclass

from ..errors import NumberAllocationFailed

log = logging.getLogger(__name__)

PAD_WIDTH = 4
_PREFIX_RE = re.compile(r"^[A-Z0-9]{1,10}$")


class NumberCollision(Exception):
    """The candidate number was taken by a concurrent insert."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_min: float = 0.0
    backoff_max: float = 0.1

    @classmethod
    def from_config(cls, config):
        return cls(
            max_attempts=max(1, int(config.get("QUOTATION_NUMBER_MAX_ATTEMPTS", 3))),
            backoff_max=max(0, int(config.get("QUOTATION_NUMBER_BACKOFF_MS", 100))) / 1000.0,
        )

    def delay(self) -> float:
        return random.uniform(self.backoff_min, self.backoff_max)


def is_valid_prefix(prefix: str) -> bool:
    return bool(_PREFIX_RE.match(prefix or ""))


def format_number(prefix: str, n: int) -> str:
    return f"{prefix}-{n:0{PAD_WIDTH}d}"


def parse_suffix(number, prefix: str):
    if not number:
        return None
    head, sep, tail = number.rpartition("-")
    if not sep or head != prefix or not tail.isdigit():
        return None
    return int(tail)


def next_candidate(store, tenant_id, prefix: str) -> str:
    last = store.last_number(tenant_id, prefix)
    n = parse_suffix(last, prefix)
    return format_number(prefix, 1 if n is None else n + 1)


def allocate_number(store, tenant_id, prefix: str = "QT", policy: RetryPolicy = None, sleep=time.sleep) -> str:
    """
    Next free number for the tenant. Reserves nothing: the number is only
    spent once a document carrying it is stored, so callers that persist
    should go through allocate_and_persist.
    """
    return allocate_and_persist(store, tenant_id, lambda number: number,
                                prefix=prefix, policy=policy, sleep=sleep)


def allocate_and_persist(store, tenant_id, persist, prefix: str = "QT", policy: RetryPolicy = None, sleep=time.sleep):
    """
    Allocate a number and hand it to `persist`, retrying on collision.
    Returns whatever `persist` returns.
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        candidate = next_candidate(store, tenant_id, prefix)

        if store.exists(tenant_id, candidate):
            log.warning("Quotation number %s already taken for business %s (attempt %d/%d)",
                        candidate, tenant_id, attempt, policy.max_attempts)
        else:
            try:
                return persist(candidate)
            except NumberCollision:
                log.warning("Quotation number %s collided on insert for business %s (attempt %d/%d)",
                            candidate, tenant_id, attempt, policy.max_attempts)

        if attempt < policy.max_attempts:
            sleep(policy.delay())

    log.error("Could not allocate a quotation number for business %s after %d attempts",
              tenant_id, policy.max_attempts)
    raise NumberAllocationFailed(
        f"Failed to generate a unique quotation number after {policy.max_attempts} attempts"
    )
