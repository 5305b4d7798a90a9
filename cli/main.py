from pathlib import Path
from typing import Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import argparse
import logging
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from cli import config
from pipeline.errors import OutputError, SourceNotFoundError, TimestampParseError, UsageError
from pipeline.output_sink import OutputSink
from pipeline.splice_engine import SENTINEL_MARK_OUT, SpliceEngine
from sources.audio_codec import STDOUT_DESTINATION
from sources.audio_format import AudioFormat, FORMAT_PREFERENCE
from sources.soundfile_codec import SoundFileCodec
from timing.minute_resolver import MinuteResolver
from timing.timestamp import parse_timestamp

logger = logging.getLogger(config.PROG_NAME)

_handler: logging.Handler | None = None

DESCRIPTION = (
    "Creates an output audio file containing all audio between the given timestamps. "
    "Source audio should be in minute-long files named <prefix>YYYY-MM-DD/HHMM.[flac|wav]. "
    "The output has the sample rate and channel count of the first input file opened."
)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise UsageError(message)


def _format_arg(value: str) -> AudioFormat:
    try:
        return AudioFormat.from_name(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Unrecognised format option {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog=config.PROG_NAME, description=DESCRIPTION)
    parser.add_argument(
        "-p", "--prefix",
        default=config.DEFAULT_PREFIX,
        help="Prefix where the minute-long files are located (may contain / characters)",
    )
    parser.add_argument("-b", "--begin", help="Begin timestamp in YYYYMMDDHHMMSS[.xx] format")
    parser.add_argument("-e", "--end", help="End timestamp in YYYYMMDDHHMMSS[.xx] format")
    parser.add_argument(
        "-o", "--output",
        default=STDOUT_DESTINATION,
        help="Output filename (stdout if not specified)",
    )
    parser.add_argument(
        "-f", "--format",
        type=_format_arg,
        help="Output format, flac or wav. If not given, taken from the output filename "
             "if possible, otherwise from the input files",
    )
    parser.add_argument(
        "-i", "--input-format",
        type=_format_arg,
        help="Input format, flac or wav. If not given, detected from the begin file",
    )
    parser.add_argument(
        "--timezone",
        default=config.TIMEZONE,
        help="IANA timezone the files are named in (default: local time)",
    )
    parser.add_argument(
        "-n", "--dry-run",
        action="store_true",
        help="List the files and marks that would be used, without writing output",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug detail")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {config.PROG_VERSION}",
    )
    return parser


def configure_logging(level: str | int) -> None:
    """Send log records to stderr; stdout may be carrying the audio."""
    global _handler

    root = logging.getLogger()
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter(config.LOG_FORMAT))
        root.addHandler(_handler)
    root.setLevel(level)


def resolve_output_format(
    explicit: Optional[AudioFormat],
    output_path: str,
    input_format: Optional[AudioFormat],
) -> Optional[AudioFormat]:
    """Explicit option, then output filename extension, then the input format."""
    if explicit is not None:
        return explicit
    if output_path != STDOUT_DESTINATION:
        guessed = AudioFormat.from_path(output_path)
        if guessed is not None:
            return guessed
    return input_format


def _resolve_timezone(name: str):
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise UsageError(f"Unknown timezone {name!r}") from exc


def _parse(label: str, text: str):
    try:
        return parse_timestamp(text)
    except TimestampParseError as exc:
        raise UsageError(f"Unable to parse {label} timestamp {text}: {exc}") from exc


def join(args: argparse.Namespace) -> int:
    if not args.begin or not args.end:
        raise UsageError("Begin and end timestamps must be specified")

    begin = _parse("begin", args.begin)
    end = _parse("end", args.end)

    resolver = MinuteResolver(prefix=args.prefix, tz=_resolve_timezone(args.timezone))
    begin_minute = resolver.minute_start(begin)

    input_format = args.input_format or resolver.probe_format(begin_minute)
    if input_format is None:
        tried = ", ".join(resolver.path_for(begin_minute, fmt.suffix) for fmt in FORMAT_PREFERENCE)
        raise SourceNotFoundError(f"Unable to locate beginning file (tried {tried})")

    output_format = resolve_output_format(args.format, args.output, input_format)
    if output_format is None:
        raise UsageError("Unable to determine output format")
    logger.info("Output file format will be %s", output_format.container)

    codec = SoundFileCodec()
    sink = OutputSink(codec, destination=args.output, audio_format=output_format)
    engine = SpliceEngine(codec, sink, chunk_seconds=config.CHUNK_SECONDS)

    if args.dry_run:
        for segment in engine.plan(begin, end, resolver, input_format):
            logger.info(
                "Would copy %.4fs -> %s from %s",
                segment.mark_in,
                "end" if segment.mark_out >= SENTINEL_MARK_OUT else f"{segment.mark_out:.4f}s",
                segment.path,
            )
        return 0

    result = engine.run(begin, end, resolver, input_format)

    for seg in result.degraded:
        logger.warning("Short output from %s (%s): %s", seg.path, seg.status, seg.reason)
    if result.degraded:
        logger.warning(
            "%d of %d source file(s) contributed less audio than requested",
            len(result.degraded),
            len(result.segments),
        )
    if result.sample_rate is None:
        logger.warning("No source file could be read; no output was written")

    logger.info("Total output duration: %.4fs", result.duration_seconds)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging(config.LOG_LEVEL)
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
    except UsageError as exc:
        parser.print_usage(sys.stderr)
        logger.error("%s", exc)
        return 1
    except SystemExit as exc:
        # -h and --version
        return 0 if exc.code in (None, 0) else 1

    if args.verbose:
        configure_logging(logging.DEBUG)

    logger.info("%s v%s starting...", config.PROG_NAME, config.PROG_VERSION)

    try:
        return join(args)
    except (UsageError, SourceNotFoundError, TimestampParseError) as exc:
        logger.error("%s", exc)
        return 1
    except OutputError as exc:
        logger.error("Fatal output error: %s", exc)
        return 1


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
