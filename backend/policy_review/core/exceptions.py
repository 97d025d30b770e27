class ReviewEngineError(Exception):
    """Base class for policy review engine errors."""


class AlignmentTimeoutError(ReviewEngineError):
    """Raised when the sequence aligner gives up on a bounded search."""

    def __init__(self, message: str, *, edit_distance_floor: int | None = None) -> None:
        super().__init__(message)
        self.edit_distance_floor = edit_distance_floor


class InvalidChangeRecordError(ReviewEngineError, ValueError):
    """Raised when a change record violates its field invariants."""


class EmptyReplacementError(ReviewEngineError, ValueError):
    """Raised when a change is modified with empty replacement text."""


class InvalidTransitionError(ReviewEngineError):
    """Raised for an unknown review action or a disallowed status change."""


class ChangeNotFoundError(ReviewEngineError, LookupError):
    """Raised when a change id does not belong to the pending review."""


class NoActiveReviewError(ReviewEngineError):
    """Raised when a review operation targets a policy without a pending review."""


class ReviewInProgressError(ReviewEngineError):
    """Raised when a second review is opened on a policy."""


class UnresolvedReviewError(ReviewEngineError):
    """Raised when finalize is attempted while changes are still pending."""

    def __init__(self, pending_count: int) -> None:
        self.pending_count = pending_count
        super().__init__(f"Resolve {pending_count} more change(s) before finalizing")


class LedgerIntegrityError(ReviewEngineError):
    """Raised when a committed document version would be rewritten."""
