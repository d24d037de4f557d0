from __future__ import annotations

from typing import Optional


class ConconiError(Exception):
    """Base class for all step-test analysis errors."""


class ActivityFileError(ConconiError):
    """The activity file could not be read or has an unsupported format."""


class MissingColumnError(ConconiError):
    def __init__(self, column: str, source: Optional[str] = None):
        self.column = column
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Required column '{column}' is missing{where}")


class EmptyWindowError(ConconiError):
    def __init__(self, start_minutes: float, end_minutes: float, min_minutes: float, max_minutes: float):
        self.start_minutes = start_minutes
        self.end_minutes = end_minutes
        self.min_minutes = min_minutes
        self.max_minutes = max_minutes
        super().__init__(
            f"No samples between minute {start_minutes:g} and {end_minutes:g}; "
            f"data covers minutes {min_minutes:.1f} to {max_minutes:.1f}"
        )


class FitNotFoundError(ConconiError):
    """The two-segment regression could not locate a breakpoint."""
