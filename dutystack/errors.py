"""Exceptions raised by the duty stacking and cost aggregation engines."""

from typing import Optional


class DutyStackError(Exception):
    """Base class for engine errors."""


class InvalidHtsCodeError(DutyStackError, ValueError):
    """HTS code is empty or not numeric after separators are stripped."""

    def __init__(self, hts_code: Optional[str], reason: str):
        self.hts_code = hts_code
        self.reason = reason
        super().__init__(f"Invalid HTS code {hts_code!r}: {reason}")


class StoreFailure(DutyStackError):
    """A read or write against the cost store failed."""

    def __init__(self, hts_code: str, message: str):
        self.hts_code = hts_code
        super().__init__(f"Store failure for HTS {hts_code}: {message}")
