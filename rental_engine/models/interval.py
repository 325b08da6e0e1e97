from dataclasses import dataclass
from datetime import date, datetime

from rental_engine.exceptions import InvalidInterval


def as_date(x) -> date:
    """Coerce any date-like to a naive date (supports 'YYYY-MM-DD' or ISO with T)."""
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    if isinstance(x, str):
        base = x.split("T", 1)[0].strip()
        try:
            return date.fromisoformat(base)
        except ValueError:
            raise InvalidInterval(f"Error: invalid date {x!r} (expected YYYY-MM-DD)") from None
    raise InvalidInterval(f"Error: unsupported date {x!r}")


@dataclass(frozen=True)
class Interval:
    """
    Closed rental period [start, end]. Both days are occupied, so a booking
    ending on the 15th and one starting on the 15th share a day.
    """
    start: date
    end: date

    def __post_init__(self):
        if not isinstance(self.start, date) or not isinstance(self.end, date):
            raise InvalidInterval("Error: interval bounds must be dates")
        if self.start > self.end:
            raise InvalidInterval(
                f"Error: start date {self.start.isoformat()} is after end date {self.end.isoformat()}"
            )

    @classmethod
    def parse(cls, start, end) -> "Interval":
        return cls(as_date(start), as_date(end))

    @property
    def days(self) -> int:
        """Number of rental days, counting both ends."""
        return (self.end - self.start).days + 1

    def contains(self, day) -> bool:
        d = as_date(day)
        return self.start <= d <= self.end

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def overlaps(a: Interval, b: Interval) -> bool:
    """
    Check overlap between closed intervals [a.start, a.end] and [b.start, b.end].
    Overlap rule: a.start <= b.end and b.start <= a.end
    """
    for iv in (a, b):
        if not isinstance(iv, Interval):
            raise InvalidInterval(f"Error: not an interval: {iv!r}")
        # also rejects instances altered after construction
        if iv.start > iv.end:
            raise InvalidInterval("Error: malformed interval")
    return a.start <= b.end and b.start <= a.end
