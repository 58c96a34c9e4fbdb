"""Exceptions raised by the sync pipeline.

Fatal errors (``SyncInvariantError`` and its subclasses) abort a run before
any side effect happens.  ``SizeLimitExceededError`` is a policy rejection
of a single plan computation.  ``LevelExecutionError`` and
``SyncExecutionError`` aggregate per-entry failures captured while the plan
is executed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncResult

TOO_MANY_ERRORS_MESSAGE = "too many errors, stop the remaining tasks"


class SyncError(Exception):
    """Base class for all sync errors."""


class SyncInvariantError(SyncError):
    """An internal invariant of the decision pipeline was violated."""


class AmbiguousDecryptError(SyncInvariantError):
    """A remote key could not be decrypted into plausible text."""


class MissingMtimeError(SyncInvariantError):
    """A remote file carries no usable modification time."""


class SizeLimitExceededError(SyncError):
    """A transfer decision exceeds the configured size ceiling."""


class DecisionNotImplementedError(SyncError):
    """A decision has no defined side effect (``conflict_*_keep_both``)."""


class PasswordCheckError(SyncError):
    """The configured password does not fit the remote listing."""


class LevelExecutionError(SyncError):
    """One or more entries of a level failed.

    Attributes:
        errors: Captured per-entry errors, in completion order.
        level: Human-readable name of the failed level.
        too_many_errors: Whether the failure threshold stopped the level.
    """

    def __init__(
        self,
        errors: list[Exception],
        level: str = "",
        too_many_errors: bool = False,
    ) -> None:
        self.errors = list(errors)
        self.level = level
        self.too_many_errors = too_many_errors
        messages = [str(e) for e in self.errors]
        if too_many_errors:
            messages.append(TOO_MANY_ERRORS_MESSAGE)
        prefix = f"{level}: " if level else ""
        super().__init__(prefix + "; ".join(messages))


class SyncExecutionError(SyncError):
    """Plan execution failed.

    Attributes:
        errors: The ``LevelExecutionError`` of every failed level.
        results: Results of every entry dispatched before the run stopped.
    """

    def __init__(
        self,
        errors: list[LevelExecutionError],
        results: list[SyncResult],
    ) -> None:
        self.errors = list(errors)
        self.results = list(results)
        super().__init__(" | ".join(str(e) for e in self.errors))


class EntryExecutionError(SyncError):
    """The side effect of a single entry failed.

    Attributes:
        key: Logical path of the entry.
        cause: The original exception.
    """

    def __init__(self, key: str, cause: Exception) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"{key}: {cause}")
