from datetime import date

from ..errors import InvalidStatusTransition

DRAFT = "draft"
SENT = "sent"
ACCEPTED = "accepted"
REJECTED = "rejected"
EXPIRED = "expired"

STATUSES = (DRAFT, SENT, ACCEPTED, REJECTED, EXPIRED)

# statuses a quotation can still move out of
OPEN_STATUSES = (DRAFT, SENT)


def normalize(status) -> str:
    return "" if status is None else str(status).strip().lower()


def can_transition(current: str, new: str) -> bool:
    current, new = normalize(current), normalize(new)
    return new in STATUSES and new != current and current in OPEN_STATUSES


def check_transition(current: str, new: str) -> str:
    new_norm = normalize(new)
    if new_norm not in STATUSES:
        raise InvalidStatusTransition(
            f"Unknown status '{new}'. Allowed: {', '.join(STATUSES)}"
        )
    if not can_transition(current, new_norm):
        raise InvalidStatusTransition(f"Cannot change status from '{current}' to '{new_norm}'")
    return new_norm


def is_final(status: str) -> bool:
    return normalize(status) not in OPEN_STATUSES


def is_past_validity(valid_until, today=None) -> bool:
    if not valid_until:
        return False
    today = today or date.today()
    return today > valid_until
