"""Pipeline-level fault types that are not tied to a single HTTP client."""


class SetupError(Exception):
    """
    Raised when the run cannot start safely.

    Covers a destination index that could not be built, a missing or
    unreadable catalog/availability file, and missing credentials.
    Always aborts the run before any task is scheduled.
    """


class DerivationError(Exception):
    """Raised when a detail record cannot be turned into destination fields."""

    def __init__(self, message: str, *, app_id: int | None = None) -> None:
        super().__init__(message)
        self.app_id = app_id
