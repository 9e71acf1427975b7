"""
Transfer request lifecycle (``distribution_kernel.domain.transfer``).

    Pending --> Approved --> Completed
       |            |
       |            +--> Pending   (compensation after a failed ledger transfer)
       +--> Rejected

``TRANSFER_TRANSITIONS`` is the only source of valid edges.  Completed and
Rejected are terminal.
"""

from __future__ import annotations

from enum import Enum

from distribution_kernel.exceptions import InvalidTransitionError


class TransferStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "Completed"


TRANSFER_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset({
        TransferStatus.APPROVED,
        TransferStatus.REJECTED,
    }),
    TransferStatus.APPROVED: frozenset({
        TransferStatus.COMPLETED,
        TransferStatus.PENDING,
    }),
    TransferStatus.REJECTED: frozenset(),
    TransferStatus.COMPLETED: frozenset(),
}

TERMINAL_TRANSFER_STATUSES: frozenset[TransferStatus] = frozenset({
    TransferStatus.REJECTED,
    TransferStatus.COMPLETED,
})


def can_transition(current: TransferStatus, attempted: TransferStatus) -> bool:
    return attempted in TRANSFER_TRANSITIONS[current]


def ensure_transition(
    current: TransferStatus | str,
    attempted: TransferStatus | str,
    request_id: str | None = None,
) -> TransferStatus:
    """
    Return ``attempted`` as a TransferStatus if the edge exists.

    Raises:
        InvalidTransitionError: the edge is not in TRANSFER_TRANSITIONS.
    """
    current = TransferStatus(current)
    attempted = TransferStatus(attempted)
    if not can_transition(current, attempted):
        raise InvalidTransitionError(current.value, attempted.value, request_id)
    return attempted
