import io
import os
import subprocess
import tempfile
import unittest
from pathlib import Path
import sys

import numpy as np
import soundfile as sf

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from cli.main import main, resolve_output_format
from sources.audio_format import AudioFormat
from timing.minute_resolver import MinuteResolver
from timing.timestamp import parse_timestamp

RATE = 8000


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        self.prefix = os.path.join(self.tmp, "rot") + "/"
        # Files are named in local time; build them with a local resolver.
        self.resolver = MinuteResolver(prefix=self.prefix)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write_minute(
        self,
        stamp: str,
        suffix: str = ".wav",
        seconds: int = 60,
        channels: int = 1,
    ) -> str:
        minute = self.resolver.minute_start(parse_timestamp(stamp))
        path = self.resolver.path_for(minute, suffix)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        data = np.full((seconds * RATE, channels), 100, dtype=np.int16)
        fmt = AudioFormat.from_path(path)
        sf.write(path, data, RATE, format=fmt.container, subtype="PCM_16")
        return path

    def _args(self, *extra: str) -> list[str]:
        return [
            "-p", self.prefix,
            "-b", "20120101235930.5",
            "-e", "20120102000030",
            "--timezone", "",
            *extra,
        ]

    def test_joins_two_minutes_to_wav(self) -> None:
        self._write_minute("20120101235900")
        self._write_minute("20120102000000")
        out = os.path.join(self.tmp, "clip.wav")

        with self.assertLogs(level="INFO") as logs:
            code = main(self._args("-o", out))

        self.assertEqual(code, 0)
        info = sf.info(out)
        self.assertEqual(info.format, "WAV")
        self.assertEqual(info.samplerate, RATE)
        self.assertEqual(info.frames, int(29.5 * RATE) + 30 * RATE)
        self.assertTrue(any("Total output duration: 59.5000s" in line for line in logs.output))

    def test_output_format_from_filename(self) -> None:
        self._write_minute("20120101235900")
        self._write_minute("20120102000000")
        out = os.path.join(self.tmp, "clip.flac")

        with self.assertLogs(level="INFO"):
            self.assertEqual(main(self._args("-o", out)), 0)

        self.assertEqual(sf.info(out).format, "FLAC")

    def test_explicit_format_wins(self) -> None:
        self._write_minute("20120101235900", ".flac")
        self._write_minute("20120102000000", ".flac")
        out = os.path.join(self.tmp, "clip.flac")

        with self.assertLogs(level="INFO"):
            self.assertEqual(main(self._args("-o", out, "-f", "WAV")), 0)

        self.assertEqual(sf.info(out).format, "WAV")
        self.assertEqual(sf.info(out).frames, int(29.5 * RATE) + 30 * RATE)

    def test_missing_end_file_still_succeeds(self) -> None:
        self._write_minute("20120101235900")
        out = os.path.join(self.tmp, "clip.wav")

        with self.assertLogs(level="WARNING") as logs:
            self.assertEqual(main(self._args("-o", out)), 0)

        self.assertEqual(sf.info(out).frames, int(29.5 * RATE))
        self.assertTrue(any("less audio than requested" in line for line in logs.output))

    def test_dry_run_writes_nothing(self) -> None:
        self._write_minute("20120101235900")
        out = os.path.join(self.tmp, "clip.wav")

        with self.assertLogs(level="INFO") as logs:
            self.assertEqual(main(self._args("-o", out, "--dry-run")), 0)

        self.assertFalse(os.path.exists(out))
        self.assertEqual(sum("Would copy" in line for line in logs.output), 2)

    def test_missing_begin_file_fails(self) -> None:
        out = os.path.join(self.tmp, "clip.wav")
        with self.assertLogs(level="ERROR"):
            self.assertEqual(main(self._args("-o", out)), 1)
        self.assertFalse(os.path.exists(out))

    def test_missing_timestamps_fail(self) -> None:
        with self.assertLogs(level="ERROR"):
            self.assertEqual(main(["-p", self.prefix, "-b", "20120101235930"]), 1)

    def test_bad_timestamp_fails(self) -> None:
        with self.assertLogs(level="ERROR"):
            self.assertEqual(main(["-b", "2012010100000", "-e", "20120101000100"]), 1)

    def test_unknown_format_fails(self) -> None:
        with self.assertLogs(level="ERROR"):
            self.assertEqual(main(self._args("-f", "mp3")), 1)

    def test_help_exits_zero(self) -> None:
        with open(os.devnull, "w") as devnull:
            stdout = sys.stdout
            sys.stdout = devnull
            try:
                self.assertEqual(main(["-h"]), 0)
            finally:
                sys.stdout = stdout

    def test_streams_flac_to_stdout(self) -> None:
        self._write_minute("20120101235900")
        self._write_minute("20120102000000")

        completed = subprocess.run(
            [sys.executable, str(ROOT_DIR / "runners" / "run_join.py"), *self._args("-f", "flac")],
            capture_output=True,
            check=False,
        )

        self.assertEqual(completed.returncode, 0, completed.stderr.decode(errors="replace"))
        self.assertIn(b"Total output duration: 59.5000s", completed.stderr)
        back, rate = sf.read(io.BytesIO(completed.stdout), dtype="int16", always_2d=True)
        self.assertEqual(rate, RATE)
        self.assertEqual(back.shape[1], 1)
        self.assertGreater(len(back), 0)
        self.assertTrue(np.all(back == 100))

    def test_file_with_other_channel_count_is_skipped(self) -> None:
        self._write_minute("20120101235800")
        self._write_minute("20120101235900", channels=2)
        self._write_minute("20120102000000")
        out = os.path.join(self.tmp, "clip.wav")

        with self.assertLogs(level="WARNING") as logs:
            code = main([*self._args("-o", out), "-b", "20120101235830"])

        self.assertEqual(code, 0)
        info = sf.info(out)
        self.assertEqual(info.channels, 1)
        self.assertEqual(info.frames, 30 * RATE + 30 * RATE)
        self.assertTrue(any("channel" in line for line in logs.output))

    def test_reversed_range_within_one_minute_writes_empty_output(self) -> None:
        self._write_minute("20120101235900")
        out = os.path.join(self.tmp, "clip.wav")
        args = ["-p", self.prefix, "-b", "20120101235940", "-e", "20120101235920", "--timezone", "", "-o", out]

        with self.assertLogs(level="INFO"):
            self.assertEqual(main(args), 0)

        self.assertEqual(sf.info(out).frames, 0)

    def test_reversed_range_across_minutes_fails(self) -> None:
        self._write_minute("20120101235900")
        self._write_minute("20120102000000")
        out = os.path.join(self.tmp, "clip.wav")
        args = ["-p", self.prefix, "-b", "20120102000010", "-e", "20120101235950", "--timezone", "", "-o", out]

        with self.assertLogs(level="ERROR"):
            self.assertEqual(main(args), 1)

    def test_output_format_precedence(self) -> None:
        self.assertIs(
            resolve_output_format(AudioFormat.WAV, "clip.flac", AudioFormat.FLAC),
            AudioFormat.WAV,
        )
        self.assertIs(resolve_output_format(None, "clip.FLAC", AudioFormat.WAV), AudioFormat.FLAC)
        self.assertIs(resolve_output_format(None, "clip.raw", AudioFormat.WAV), AudioFormat.WAV)
        self.assertIs(resolve_output_format(None, "-", AudioFormat.FLAC), AudioFormat.FLAC)
        self.assertIsNone(resolve_output_format(None, "-", None))


if __name__ == "__main__":
    unittest.main()
