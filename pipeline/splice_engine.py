import logging

import numpy as np

from pipeline.errors import CodecError, OutputError, UsageError
from pipeline.models import (
    STATUS_FORMAT_MISMATCH,
    STATUS_MISSING,
    STATUS_OK,
    STATUS_PAST_END,
    STATUS_SEEK_FAILED,
    STATUS_SHORT_READ,
    SegmentResult,
    SpliceResult,
    SpliceSegment,
)
from pipeline.output_sink import OutputSink
from sources.audio_codec import SAMPLE_DTYPE, AudioCodec, SourceStream
from sources.audio_format import AudioFormat
from sources.frame_range import frame_range_for
from timing.minute_resolver import MinuteResolver
from timing.timestamp import Timestamp

logger = logging.getLogger(__name__)

# Larger than any minute file, so the mark-out clamps to the end of the file.
SENTINEL_MARK_OUT = 999.0

DEFAULT_CHUNK_SECONDS = 5.0


class SpliceEngine:
    """
    Joins the per-minute files covering [begin, end] into one output.

    One engine owns one sink and one read buffer; a run reads one source
    file at a time and never holds more than a chunk of audio in memory.
    """

    def __init__(
        self,
        codec: AudioCodec,
        sink: OutputSink,
        chunk_seconds: float = DEFAULT_CHUNK_SECONDS,
    ):
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be positive")

        self.codec = codec
        self.sink = sink
        self.chunk_seconds = float(chunk_seconds)

        self._buffer: np.ndarray | None = None

    @property
    def buffer_capacity(self) -> int:
        """Samples (frames x channels) the read buffer can hold."""
        return 0 if self._buffer is None else int(self._buffer.size)

    # --------------------
    # Planning
    # --------------------

    def plan(
        self,
        begin: Timestamp,
        end: Timestamp,
        resolver: MinuteResolver,
        input_format: AudioFormat,
    ) -> list[SpliceSegment]:
        begin_minute = resolver.minute_start(begin)
        end_minute = resolver.minute_start(end)
        suffix = input_format.suffix

        # Reversed across minutes is an error; within one minute it is an empty range.
        if end_minute < begin_minute:
            raise UsageError(f"End timestamp {end} is before begin timestamp {begin}")

        if begin_minute == end_minute:
            return [
                SpliceSegment(
                    minute=begin_minute,
                    path=resolver.path_for(begin_minute, suffix),
                    mark_in=begin.seconds_mark,
                    mark_out=end.seconds_mark,
                )
            ]

        segments = [
            SpliceSegment(
                minute=begin_minute,
                path=resolver.path_for(begin_minute, suffix),
                mark_in=begin.seconds_mark,
                mark_out=SENTINEL_MARK_OUT,
            )
        ]
        for minute in resolver.minutes_between(begin_minute, end_minute):
            segments.append(
                SpliceSegment(
                    minute=minute,
                    path=resolver.path_for(minute, suffix),
                    mark_in=0.0,
                    mark_out=SENTINEL_MARK_OUT,
                )
            )
        segments.append(
            SpliceSegment(
                minute=end_minute,
                path=resolver.path_for(end_minute, suffix),
                mark_in=0.0,
                mark_out=end.seconds_mark,
            )
        )
        return segments

    # --------------------
    # Running
    # --------------------

    def run(
        self,
        begin: Timestamp,
        end: Timestamp,
        resolver: MinuteResolver,
        input_format: AudioFormat,
    ) -> SpliceResult:
        """
        Append every planned segment in order and close the output.
        Raises OutputError if the output fails at any point.
        """
        segments = self.plan(begin, end, resolver, input_format)
        logger.debug("Planned %d source file(s)", len(segments))

        result = SpliceResult(output_format=self.sink.audio_format)
        try:
            for segment in segments:
                seg_result = self.append_file(segment.path, segment.mark_in, segment.mark_out)
                result.segments.append(seg_result)
                result.duration_seconds += seg_result.duration_seconds
        except OutputError:
            self._abandon_sink()
            raise

        self.sink.close()

        result.sample_rate = self.sink.sample_rate
        result.channels = self.sink.channels
        return result

    def append_file(self, path: str, mark_in: float, mark_out: float) -> SegmentResult:
        """
        Copy [mark_in, mark_out] seconds of ``path`` to the output.

        A file that cannot be opened, sought or fully read only shortens the
        output; the returned status says which.
        """
        logger.info('Opening "%s"', path)
        try:
            source = self.codec.open_read(path)
        except CodecError as exc:
            logger.warning("Skipping input file %s: %s", path, exc)
            return SegmentResult(path=path, status=STATUS_MISSING, reason=str(exc))

        try:
            return self._copy_frames(source, path, mark_in, mark_out)
        finally:
            try:
                source.close()
            except CodecError as exc:
                logger.error("Error while closing input file %s: %s", path, exc)

    def _copy_frames(
        self,
        source: SourceStream,
        path: str,
        mark_in: float,
        mark_out: float,
    ) -> SegmentResult:
        frame_range = frame_range_for(mark_in, mark_out, source.sample_rate, source.frames)
        if frame_range is None:
            reason = (
                f"mark-in {mark_in:.4f}s is past the end of the file "
                f"({source.frames / source.sample_rate:.4f}s)"
            )
            logger.warning("Nothing to copy from %s: %s", path, reason)
            return SegmentResult(path=path, status=STATUS_PAST_END, reason=reason)

        if not self.sink.is_open:
            self.sink.open_once(source.sample_rate, source.channels)
        elif source.channels != self.sink.channels:
            reason = (
                f"file has {source.channels} channel(s) but output has {self.sink.channels}"
            )
            logger.warning("Skipping input file %s: %s", path, reason)
            return SegmentResult(
                path=path,
                status=STATUS_FORMAT_MISMATCH,
                frames_requested=frame_range.frames,
                reason=reason,
            )
        elif source.sample_rate != self.sink.sample_rate:
            # Written as-is; the output plays this file at the wrong speed.
            logger.warning(
                "Input file %s is %d Hz but output is %d Hz",
                path,
                source.sample_rate,
                self.sink.sample_rate,
            )

        if frame_range.offset_in > 0:
            reason = None
            try:
                position = source.seek(frame_range.offset_in)
            except CodecError as exc:
                position = None
                reason = str(exc)
            if position != frame_range.offset_in:
                reason = reason or f"landed on frame {position}"
                logger.warning(
                    "Error seeking %d frames into input file %s: %s",
                    frame_range.offset_in,
                    path,
                    reason,
                )
                return SegmentResult(
                    path=path,
                    status=STATUS_SEEK_FAILED,
                    frames_requested=frame_range.frames,
                    reason=reason,
                )

        channels = source.channels
        chunk_frames = max(1, int(self.chunk_seconds * source.sample_rate))
        buffer = self._reserve(chunk_frames * channels)

        status = STATUS_OK
        reason = None
        frames_to_read = frame_range.frames
        frames_read = 0
        while frames_read < frames_to_read:
            request = min(frames_to_read - frames_read, chunk_frames)
            block = buffer[: request * channels].reshape(request, channels)

            try:
                got = source.read_into(block)
            except CodecError as exc:
                got = 0
                reason = str(exc)

            if got > 0:
                self.sink.write(block[:got])
            frames_read += got

            if got != request:
                reason = reason or f"expected {request} frames but only got {got}"
                logger.warning(
                    "Expected to read %d frames from input file %s but only got %d",
                    request,
                    path,
                    got,
                )
                status = STATUS_SHORT_READ
                break

        duration = frames_read / self.sink.sample_rate
        logger.info('File "%s": %.4fs output', path, duration)

        return SegmentResult(
            path=path,
            status=status,
            frames_written=frames_read,
            duration_seconds=duration,
            frames_requested=frames_to_read,
            reason=reason,
        )

    def _abandon_sink(self) -> None:
        # The run is already failing; a close error must not hide the first one.
        try:
            self.sink.close()
        except OutputError as exc:
            logger.error("Error while closing output after failure: %s", exc)

    def _reserve(self, samples: int) -> np.ndarray:
        # Grown, never shrunk: later files may have a higher rate or more channels.
        if self._buffer is None or self._buffer.size < samples:
            logger.debug("Allocating read buffer for %d samples", samples)
            self._buffer = np.empty(samples, dtype=SAMPLE_DTYPE)
        return self._buffer
