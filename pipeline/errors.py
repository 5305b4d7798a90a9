class RotJoinError(Exception):
    pass


class TimestampParseError(RotJoinError):
    pass


class UsageError(RotJoinError):
    pass


class SourceNotFoundError(RotJoinError):
    pass


class CodecError(RotJoinError):
    pass


class OutputError(RotJoinError):
    """
    The output cannot be opened, written or closed.
    Always fatal: a partly written output cannot be trusted.
    """
    pass
