import sys

import numpy as np
import soundfile as sf

from pipeline.errors import CodecError
from sources.audio_codec import STDOUT_DESTINATION, AudioCodec, SinkStream, SourceStream
from sources.audio_format import AudioFormat, OUTPUT_SUBTYPE

# soundfile asserts on a short write (unless run with -O) instead of raising.
_SF_ERRORS = (sf.SoundFileError, OSError, AssertionError)


class SoundFileSource(SourceStream):
    def __init__(self, handle: sf.SoundFile, path: str):
        self._file = handle
        self.path = path
        self.sample_rate = int(handle.samplerate)
        self.channels = int(handle.channels)
        self.frames = int(handle.frames)

    def seek(self, frame: int) -> int:
        try:
            return int(self._file.seek(frame, sf.SEEK_SET))
        except _SF_ERRORS as exc:
            raise CodecError(f"Seek to frame {frame} failed in {self.path}: {exc}") from exc

    def read_into(self, out: np.ndarray) -> int:
        try:
            got = self._file.read(len(out), dtype=out.dtype.name, always_2d=True, out=out)
        except _SF_ERRORS as exc:
            raise CodecError(f"Read failed in {self.path}: {exc}") from exc
        return len(got)

    def close(self) -> None:
        try:
            self._file.close()
        except _SF_ERRORS as exc:
            raise CodecError(f"Close failed for {self.path}: {exc}") from exc


class SoundFileSink(SinkStream):
    def __init__(self, handle: sf.SoundFile, destination: str):
        self._file = handle
        self.destination = destination

    def write(self, block: np.ndarray) -> int:
        before = self._file.frames
        try:
            self._file.write(block)
        except _SF_ERRORS + (ValueError,) as exc:
            # ValueError: block shape does not match the output channel count.
            raise CodecError(f"Write to {self.destination} failed: {exc}") from exc
        return int(self._file.frames - before)

    def close(self) -> None:
        try:
            self._file.close()
        except _SF_ERRORS as exc:
            raise CodecError(f"Close failed for {self.destination}: {exc}") from exc


class SoundFileCodec(AudioCodec):
    """AudioCodec backed by libsndfile through the soundfile package."""

    def open_read(self, path: str) -> SoundFileSource:
        try:
            handle = sf.SoundFile(path, mode="r")
        except _SF_ERRORS as exc:
            raise CodecError(f"Unable to open {path} for reading: {exc}") from exc
        return SoundFileSource(handle, path)

    def open_write(
        self,
        destination: str,
        audio_format: AudioFormat,
        sample_rate: int,
        channels: int,
    ) -> SoundFileSink:
        try:
            if destination == STDOUT_DESTINATION:
                # Hand libsndfile the descriptor itself; stdout stays open afterwards.
                sys.stdout.flush()
                target = sys.stdout.fileno()
                closefd = False
            else:
                target = destination
                closefd = True

            handle = sf.SoundFile(
                target,
                mode="w",
                samplerate=sample_rate,
                channels=channels,
                format=audio_format.container,
                subtype=OUTPUT_SUBTYPE,
                closefd=closefd,
            )
        except _SF_ERRORS + (AttributeError, ValueError) as exc:
            # AttributeError / ValueError: stdout is missing, closed or has no descriptor.
            raise CodecError(f"Unable to open {destination} for writing: {exc}") from exc
        return SoundFileSink(handle, destination)
