"""Typed error kinds raised by the Redpen core.

Every failure a core operation can report derives from :class:`RedpenError`
and carries an :class:`ErrorKind`. Request handlers translate kinds into
transport status codes; the core never deals in HTTP.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable identifiers for the failure categories exposed to callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    SELF_SELECTION = "self_selection"
    INVALID_TARGET = "invalid_target"
    INVALID_CRITIQUE = "invalid_critique"
    NO_ACTIVE_REWARD = "no_active_reward"
    CONFLICT = "conflict"
    CAPTURE_FAILED = "capture_failed"
    SETTLEMENT_FAILED = "settlement_failed"
    PAYMENT_UNAVAILABLE = "payment_unavailable"
    RECONCILIATION_REQUIRED = "reconciliation_required"


class RedpenError(Exception):
    """Base exception for all domain failures."""

    kind: ErrorKind = ErrorKind.CONFLICT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(RedpenError):
    """Input rejected before any external call; carries per-field messages."""

    kind = ErrorKind.VALIDATION

    def __init__(self, fields: dict[str, str]) -> None:
        super().__init__("; ".join(f"{name}: {reason}" for name, reason in fields.items()))
        self.fields = fields


class NotFound(RedpenError):
    """Referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND


class Forbidden(RedpenError):
    """Caller is not allowed to perform the operation on this entity."""

    kind = ErrorKind.FORBIDDEN


class SelfSelection(RedpenError):
    """A post author tried to reward their own critique."""

    kind = ErrorKind.SELF_SELECTION


class InvalidTarget(RedpenError):
    """Toggle target is missing or is the actor themself."""

    kind = ErrorKind.INVALID_TARGET


class InvalidCritique(RedpenError):
    """Critique does not belong to the post it was submitted against."""

    kind = ErrorKind.INVALID_CRITIQUE


class NoActiveReward(RedpenError):
    """Post has no captured reward awaiting a best-critique choice."""

    kind = ErrorKind.NO_ACTIVE_REWARD


class Conflict(RedpenError):
    """Operation lost a race or would contradict already committed state."""

    kind = ErrorKind.CONFLICT


class CaptureFailed(RedpenError):
    """Payment processor refused or failed to capture the reward."""

    kind = ErrorKind.CAPTURE_FAILED


class SettlementFailed(RedpenError):
    """Payout to the chosen critique author failed; safe to retry."""

    kind = ErrorKind.SETTLEMENT_FAILED


class PaymentUnavailable(RedpenError):
    """Payment processor could not answer a status lookup."""

    kind = ErrorKind.PAYMENT_UNAVAILABLE


class ReconciliationRequired(RedpenError):
    """Money moved at the processor but the local commit did not succeed."""

    kind = ErrorKind.RECONCILIATION_REQUIRED

    def __init__(self, message: str, *, payment_reference: str | None = None) -> None:
        super().__init__(message)
        self.payment_reference = payment_reference


__all__ = [
    "CaptureFailed",
    "Conflict",
    "ErrorKind",
    "Forbidden",
    "InvalidCritique",
    "InvalidTarget",
    "NoActiveReward",
    "NotFound",
    "PaymentUnavailable",
    "ReconciliationRequired",
    "RedpenError",
    "SelfSelection",
    "SettlementFailed",
    "ValidationFailed",
]
