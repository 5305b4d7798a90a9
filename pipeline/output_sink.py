import logging

import numpy as np

from pipeline.errors import CodecError, OutputError
from sources.audio_codec import STDOUT_DESTINATION, AudioCodec, SinkStream
from sources.audio_format import AudioFormat

logger = logging.getLogger(__name__)


class OutputSink:
    """
    The single output of a run.

    Opened lazily by the splice engine when the first source file opens, and
    bound for good to that file's sample rate and channel count. Every
    failure here raises OutputError.
    """

    def __init__(
        self,
        codec: AudioCodec,
        destination: str = STDOUT_DESTINATION,
        audio_format: AudioFormat | None = None,
    ):
        self.codec = codec
        self.destination = destination
        self.audio_format = audio_format

        self.sample_rate: int | None = None
        self.channels: int | None = None
        self.frames_written = 0

        self._stream: SinkStream | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def is_stdout(self) -> bool:
        return self.destination == STDOUT_DESTINATION

    def open_once(self, sample_rate: int, channels: int) -> None:
        if self._stream is not None or self._closed:
            raise OutputError(f"Output {self.destination} has already been opened")
        if self.audio_format is None:
            raise OutputError("File format unspecified; unable to open output")

        logger.info(
            "Opening %s for output (%s, %d Hz, %d channel(s))",
            "standard output" if self.is_stdout else f'"{self.destination}"',
            self.audio_format.container,
            sample_rate,
            channels,
        )
        try:
            self._stream = self.codec.open_write(
                self.destination,
                self.audio_format,
                sample_rate,
                channels,
            )
        except CodecError as exc:
            raise OutputError(str(exc)) from exc

        self.sample_rate = sample_rate
        self.channels = channels

    def write(self, block: np.ndarray) -> None:
        if self._stream is None:
            raise OutputError(f"Output {self.destination} is not open")

        expected = len(block)
        try:
            written = self._stream.write(block)
        except CodecError as exc:
            raise OutputError(str(exc)) from exc

        if written != expected:
            raise OutputError(
                f"Short write to {self.destination}: {written} of {expected} frames"
            )
        self.frames_written += written

    def close(self) -> None:
        """
        Finish the output. For standard output the encoder is flushed but the
        descriptor itself is left open. A sink that was never opened is a no-op.
        """
        if self._stream is None:
            return

        stream = self._stream
        self._stream = None
        self._closed = True
        try:
            stream.close()
        except CodecError as exc:
            raise OutputError(str(exc)) from exc
