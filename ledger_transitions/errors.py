"""
Error taxonomy for the submission pipeline.

Every failure the pipeline surfaces is a ``PipelineError`` subclass
carrying a machine-readable ``error_code`` and a ``details`` dict, in the
same shape as the HTTP adapter errors. Domain outcomes (identity missing,
not enough funds, schema rejected) and transport faults get distinct
types so callers can branch on them without parsing text.

Context:
    The coordinator attaches ``operation``, ``identity`` and ``state``
    to an error before re-raising it. ``state`` is the pipeline phase the
    failure happened in; an error in ``SUBMITTED`` means the transaction
    may have reached the ledger (see ``outcome_unknown``).

Friendly messages:
    ``friendly_message()`` is the only place error text is rewritten.
    It matches on the underlying reason text and returns anything it
    does not recognise unchanged. Only ledger rejections and wrapped
    collaborator errors go through it; messages built from caller input
    (InvalidArgument, NotFoundError, ...) are kept verbatim.
"""

from __future__ import annotations

import re
from typing import Any

from ledger_transitions.models import SubmissionState

# Low-level rejection reason → user-facing text.
_FRIENDLY_MESSAGES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"bad-subtx-lowtopup"), "Please choose higher funding amount"),
)

# Ledger reasons meaning the submitted previous-transition id is stale.
STALE_TRANSITION_REASONS = ("bad-subtx-prevhash", "bad-subtx-badprevhash")


def friendly_message(message: str) -> str:
    """Rewrite known low-level rejection reasons into user-facing text."""
    for pattern, replacement in _FRIENDLY_MESSAGES:
        if pattern.search(message):
            return replacement
    return message


def is_stale_transition_reason(reason: str) -> bool:
    return any(marker in reason for marker in STALE_TRANSITION_REASONS)


# =========================================================================
# Base
# =========================================================================


class PipelineError(Exception):
    """Base class for all pipeline failures.

    Attributes:
        message: User-facing message (after friendly remapping).
        reason: The original, unmodified message.
        error_code: Machine-readable category.
        details: Extra diagnostic fields. Never contains secrets.
        operation: Pipeline operation that failed (set by the coordinator).
        identity: Identity name involved, if any.
        state: Pipeline phase the failure happened in.
    """

    default_code = "PIPELINE_ERROR"
    # Whether the message may carry a raw ledger reason worth rewriting.
    rewrites_reason = False

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        friendly: bool | None = None,
    ) -> None:
        if friendly is None:
            friendly = self.rewrites_reason
        self.reason = message
        self.message = friendly_message(message) if friendly else message
        self.error_code = error_code or self.default_code
        self.details: dict[str, Any] = dict(details or {})
        self.operation: str | None = None
        self.identity: str | None = None
        self.state: SubmissionState | None = None
        super().__init__(self.message)

    def add_context(
        self,
        *,
        operation: str,
        identity: str | None = None,
        state: SubmissionState | None = None,
    ) -> PipelineError:
        """Attach pipeline context. Context set closer to the fault wins."""
        if self.operation is None:
            self.operation = operation
        if self.identity is None:
            self.identity = identity
        if self.state is None:
            self.state = state
        return self

    @property
    def outcome_unknown(self) -> bool:
        """True when the failure happened after the broadcast was attempted."""
        return self.state == SubmissionState.SUBMITTED

    def __str__(self) -> str:
        if self.operation is None:
            return self.message
        if self.identity is None:
            return f"{self.operation}: {self.message}"
        return f"{self.operation} ({self.identity}): {self.message}"


# =========================================================================
# Domain outcomes
# =========================================================================


class NotFoundError(PipelineError):
    """Identity or contract does not exist on the ledger."""

    default_code = "NOT_FOUND"


class InvalidArgument(PipelineError):
    """Malformed input (bad fee, empty required field, bad options)."""

    default_code = "INVALID_ARGUMENT"


class InsufficientFunds(PipelineError):
    """The chosen funding input cannot cover the spend amount."""

    default_code = "INSUFFICIENT_FUNDS"


class ValidationError(PipelineError):
    """Schema validator rejected a document or contract.

    Attributes:
        errors: The validator's error list, verbatim.
    """

    default_code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        errors: list[str] | tuple[str, ...],
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.errors = list(errors)
        super().__init__(
            f"{message}: {'; '.join(self.errors)}" if self.errors else message,
            details=details,
        )


# =========================================================================
# Ledger / transport
# =========================================================================


class NetworkError(PipelineError):
    """Transport or protocol failure talking to the ledger.

    Makes no claim about whether the remote side committed anything.
    """

    default_code = "NETWORK_ERROR"


class LedgerRejectedError(PipelineError):
    """The ledger answered and refused the request."""

    default_code = "REJECTED"
    rewrites_reason = True


class ConsistencyError(LedgerRejectedError):
    """Local previous-transition id is stale; the ledger has moved on.

    Resubmitting the same transaction cannot succeed. Re-resolve the
    identity and rebuild.
    """

    default_code = "STALE_TRANSITION"


def with_context(
    exc: Exception,
    *,
    operation: str,
    identity: str | None = None,
    state: SubmissionState | None = None,
) -> PipelineError:
    """Return ``exc`` with context attached, wrapping foreign exceptions.

    Non-pipeline exceptions become a generic ``PipelineError``; the caller
    is expected to ``raise ... from exc`` so the original stays chained.
    """
    if isinstance(exc, PipelineError):
        return exc.add_context(operation=operation, identity=identity, state=state)
    wrapped = PipelineError(
        f"unexpected {type(exc).__name__}: {exc}",
        error_code="UNEXPECTED",
        friendly=True,
    )
    return wrapped.add_context(operation=operation, identity=identity, state=state)


def require_positive_int(value: object, name: str) -> int:
    """Return ``value`` if it is a positive int (bools excluded).

    Raises:
        InvalidArgument: Otherwise.
    """
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(
            f"{name} must be a positive integer, got: {value!r}",
            details={"argument": name},
        )
    return value
