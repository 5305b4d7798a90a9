import logging
import os
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Iterator, Optional, Sequence

from pipeline.errors import TimestampParseError
from sources.audio_format import AudioFormat, FORMAT_PREFERENCE
from timing.timestamp import Timestamp

logger = logging.getLogger(__name__)

MINUTE_SECONDS = 60


def normalized_wall_time(
    year: int,
    month: int,
    day: int,
    hour: int,
    minute: int,
    second: int,
) -> datetime:
    """
    Build a naive wall-clock datetime, rolling out-of-range fields over
    into the next larger unit (month 13 -> January of the next year,
    day 0 -> last day of the previous month, and so on).
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    base = datetime(year, month, 1)
    return base + timedelta(days=day - 1, hours=hour, minutes=minute, seconds=second)


class MinuteResolver:
    """
    Maps timestamps onto minute windows and minute windows onto source paths.

    ``tz`` is the timezone the recorder names its files in. ``None`` uses the
    process's local time rules.
    """

    def __init__(
        self,
        prefix: str,
        tz: Optional[tzinfo] = None,
        exists: Callable[[str], bool] = os.path.exists,
    ):
        self.prefix = prefix
        self.tz = tz
        self.exists = exists

    # --------------------
    # Absolute time
    # --------------------

    def _to_epoch(self, wall: datetime) -> int:
        if self.tz is not None and wall.tzinfo is None:
            wall = wall.replace(tzinfo=self.tz)
        return int(wall.timestamp())

    def _from_epoch(self, epoch: int) -> datetime:
        return datetime.fromtimestamp(epoch, self.tz)

    def minute_start(self, ts: Timestamp) -> int:
        """Epoch seconds of the start of the minute containing ``ts``."""
        try:
            wall = normalized_wall_time(ts.year, ts.month, ts.day, ts.hour, ts.minute, 0)
            return self._to_epoch(wall)
        except (ValueError, OverflowError) as exc:
            raise TimestampParseError(f"Timestamp {ts} is out of range: {exc}") from exc

    def truncate(self, epoch: int) -> int:
        wall = self._from_epoch(epoch).replace(second=0, microsecond=0)
        return self._to_epoch(wall)

    def timestamp_at(self, epoch: int) -> Timestamp:
        wall = self._from_epoch(epoch)
        return Timestamp(
            year=wall.year,
            month=wall.month,
            day=wall.day,
            hour=wall.hour,
            minute=wall.minute,
            second=wall.second,
            frac=wall.microsecond / 1_000_000,
        )

    # --------------------
    # File namespace
    # --------------------

    def path_for(self, minute: int, suffix: str) -> str:
        wall = self._from_epoch(minute)
        return (
            f"{self.prefix}{wall.year:04d}-{wall.month:02d}-{wall.day:02d}/"
            f"{wall.hour:02d}{wall.minute:02d}{suffix}"
        )

    def minutes_between(self, begin_minute: int, end_minute: int) -> Iterator[int]:
        """Minutes strictly between the two windows, in order."""
        current = begin_minute + MINUTE_SECONDS
        while current < end_minute:
            yield current
            current += MINUTE_SECONDS

    def probe_format(
        self,
        begin_minute: int,
        candidates: Sequence[AudioFormat] = FORMAT_PREFERENCE,
    ) -> Optional[AudioFormat]:
        """First candidate format whose begin-minute file exists, else None."""
        for fmt in candidates:
            path = self.path_for(begin_minute, fmt.suffix)
            if self.exists(path):
                logger.debug("Found begin file %s", path)
                return fmt
            logger.debug("No begin file at %s", path)
        return None
