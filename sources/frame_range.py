# sources/frame_range.py
from dataclasses import dataclass
import math
from typing import Optional


@dataclass(frozen=True)
class FrameRange:
    offset_in: int    # first frame to copy
    offset_out: int   # one past the last frame to copy

    @property
    def frames(self) -> int:
        return self.offset_out - self.offset_in


def seconds_to_frames(mark: float, sample_rate: int) -> int:
    """Round half up: a mark of exactly k.5 frames lands on frame k+1."""
    return int(math.floor(mark * sample_rate + 0.5))


def frame_range_for(
    mark_in: float,
    mark_out: float,
    sample_rate: int,
    frame_count: int,
) -> Optional[FrameRange]:
    """
    Frames of a file of ``frame_count`` frames covered by [mark_in, mark_out].

    Returns None when mark_in is past the end of the file. A mark_out past
    the end is clamped to the frame count, so an oversized mark_out means
    "to the end of the file".
    """
    file_duration = frame_count / sample_rate

    if mark_in > file_duration:
        return None
    offset_in = min(seconds_to_frames(max(mark_in, 0.0), sample_rate), frame_count)

    if mark_out > file_duration:
        offset_out = frame_count
    else:
        offset_out = seconds_to_frames(max(mark_out, 0.0), sample_rate)

    # An end mark before the start mark yields an empty range.
    offset_out = max(offset_in, min(offset_out, frame_count))
    return FrameRange(offset_in=offset_in, offset_out=offset_out)
