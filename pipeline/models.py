from dataclasses import dataclass, field

from sources.audio_format import AudioFormat


STATUS_OK = "ok"
STATUS_MISSING = "missing"
STATUS_PAST_END = "past_end"
STATUS_SEEK_FAILED = "seek_failed"
STATUS_SHORT_READ = "short_read"
STATUS_FORMAT_MISMATCH = "format_mismatch"


@dataclass(frozen=True)
class SpliceSegment:
    minute: int        # epoch seconds of the source minute
    path: str
    mark_in: float     # seconds into the file
    mark_out: float


@dataclass
class SegmentResult:
    path: str
    status: str = STATUS_OK
    frames_written: int = 0
    duration_seconds: float = 0.0
    frames_requested: int = 0
    reason: str | None = None

    @property
    def degraded(self) -> bool:
        return self.status != STATUS_OK


@dataclass
class SpliceResult:
    segments: list[SegmentResult] = field(default_factory=list)
    duration_seconds: float = 0.0
    output_format: AudioFormat | None = None
    sample_rate: int | None = None
    channels: int | None = None

    @property
    def degraded(self) -> list[SegmentResult]:
        return [seg for seg in self.segments if seg.degraded]

    @property
    def files_consulted(self) -> list[str]:
        return [seg.path for seg in self.segments]
