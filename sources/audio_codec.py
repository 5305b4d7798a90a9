# sources/audio_codec.py
from abc import ABC, abstractmethod

import numpy as np

from sources.audio_format import AudioFormat

# Reserved destination meaning "write to standard output".
STDOUT_DESTINATION = "-"

# Frames are moved as 16-bit integers, end to end.
SAMPLE_DTYPE = np.int16


class SourceStream(ABC):
    """An open input file, positioned by frame."""

    sample_rate: int
    channels: int
    frames: int

    @abstractmethod
    def seek(self, frame: int) -> int:
        """Move to ``frame`` and return the resulting position."""
        pass

    @abstractmethod
    def read_into(self, out: np.ndarray) -> int:
        """
        Fill ``out`` (shape: frames x channels) from the current position.
        Returns the number of frames actually read.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class SinkStream(ABC):
    @abstractmethod
    def write(self, block: np.ndarray) -> int:
        """Write a frames x channels block and return the frames written."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class AudioCodec(ABC):
    """
    The audio read/write capability the splicer depends on.
    Implementations raise CodecError when a file cannot be used.
    """

    @abstractmethod
    def open_read(self, path: str) -> SourceStream:
        pass

    @abstractmethod
    def open_write(
        self,
        destination: str,
        audio_format: AudioFormat,
        sample_rate: int,
        channels: int,
    ) -> SinkStream:
        """``destination`` of "-" means standard output."""
        pass
