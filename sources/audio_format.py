from enum import Enum
from pathlib import Path
from typing import Optional


class AudioFormat(Enum):
    WAV = ("wav", ".wav", "WAV")
    FLAC = ("flac", ".flac", "FLAC")

    def __init__(self, label: str, suffix: str, container: str):
        self.label = label
        self.suffix = suffix
        self.container = container

    @classmethod
    def from_name(cls, name: str) -> "AudioFormat":
        key = name.strip().lower()
        for fmt in cls:
            if fmt.label == key:
                return fmt
        raise ValueError(f"Unrecognised format {name!r}")

    @classmethod
    def from_path(cls, path: str) -> Optional["AudioFormat"]:
        """Guess the format from a filename extension, or None."""
        suffix = Path(path).suffix.lower()
        for fmt in cls:
            if fmt.suffix == suffix:
                return fmt
        return None


# Highest fidelity first. Probing the begin minute tries these in order.
FORMAT_PREFERENCE: tuple[AudioFormat, ...] = (AudioFormat.FLAC, AudioFormat.WAV)

# All output is written as 16-bit PCM, whatever the container.
OUTPUT_SUBTYPE = "PCM_16"
