"""Half-open date ranges for availability checks."""

from dataclasses import dataclass
from datetime import date

from settlement_core.core.exceptions import InvalidDateRange


@dataclass(frozen=True)
class DateRange:
    """[start, end) in calendar days."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days


def validate_new_range(start: date, end: date, today: date) -> DateRange:
    """Validate a range requested for a new booking.

    Raises:
        InvalidDateRange: If start is not before end, or start is before today
    """
    if start >= end:
        raise InvalidDateRange("Start date must be before end date")
    if start < today:
        raise InvalidDateRange("Start date cannot be in the past")
    return DateRange(start=start, end=end)
