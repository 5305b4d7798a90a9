from dataclasses import dataclass
import math
import re

from pipeline.errors import TimestampParseError


# YYYYMMDDHHMMSS
TIMESTAMP_WIDTH = 14
FIELD_WIDTHS = (4, 2, 2, 2, 2, 2)

_FRACTION_RE = re.compile(r"\.[0-9]*")
_LARGEST_FRACTION = math.nextafter(1.0, 0.0)


@dataclass(frozen=True)
class Timestamp:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    frac: float = 0.0

    @property
    def seconds_mark(self) -> float:
        """Offset of this instant into its minute file, in seconds."""
        return self.second + self.frac

    def __str__(self) -> str:
        text = (
            f"{self.year:04d}{self.month:02d}{self.day:02d}"
            f"{self.hour:02d}{self.minute:02d}{self.second:02d}"
        )
        if self.frac:
            text += f"{self.frac:.6f}".lstrip("0").rstrip("0")
        return text


def parse_timestamp(text: str) -> Timestamp:
    """
    Parse ``YYYYMMDDHHMMSS[.fff]`` into a Timestamp.

    Field ranges are not checked here: month 13 or second 75 are kept as
    given and roll over when the resolver turns them into an instant.
    """
    if text is None or len(text) < TIMESTAMP_WIDTH:
        raise TimestampParseError(f"Timestamp too short: {text!r}")

    frac = 0.0
    body = text
    dot = text.rfind(".")
    if dot != -1:
        if dot < TIMESTAMP_WIDTH:
            raise TimestampParseError(
                f"Fractional part must follow the seconds field: {text!r}"
            )
        suffix = text[dot:]
        if not _FRACTION_RE.fullmatch(suffix):
            raise TimestampParseError(f"Invalid fractional seconds {suffix!r} in {text!r}")
        frac = float("0" + suffix) if len(suffix) > 1 else 0.0
        # Enough nines round up to 1.0; keep the fraction inside the second.
        frac = min(frac, _LARGEST_FRACTION)
        body = text[:dot]

    digits = body[:TIMESTAMP_WIDTH]
    if not digits.isascii() or not digits.isdigit():
        raise TimestampParseError(f"Expected 14 digits YYYYMMDDHHMMSS in {text!r}")

    fields = []
    pos = 0
    for width in FIELD_WIDTHS:
        fields.append(int(digits[pos:pos + width]))
        pos += width

    year, month, day, hour, minute, second = fields
    return Timestamp(
        year=year,
        month=month,
        day=day,
        hour=hour,
        minute=minute,
        second=second,
        frac=frac,
    )
