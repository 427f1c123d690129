"""Exceptions raised while reading Intan RHS data files.
"""


class IntanError(Exception):
    """Base class for all errors raised when loading Intan RHS data.
    Raised directly for descriptive failures like a missing path or an empty
    directory.
    """


class UnrecognizedFileError(IntanError):
    """Exception returned when the magic number at the start of a file does
    not identify it as an Intan RHS2000 data file.
    """


FormatError = UnrecognizedFileError


class InvalidChannelTypeError(IntanError):
    """Exception returned when a channel in the header has a signal type that
    RHS files cannot contain (auxiliary inputs, supply voltages, or an
    unknown code).
    """


class FileSizeError(IntanError):
    """Exception returned when file reading fails due to the file size
    being invalid or the calculated file size differing from the actual
    file size.
    """


class StringReadError(IntanError):
    """Exception returned when a length-prefixed string in the header claims
    more bytes than remain in the file.
    """


class HeaderMismatchError(IntanError):
    """Exception returned when two files cannot be combined because their
    headers describe different recording setups.
    """


class ChannelNotFoundError(IntanError):
    """Exception returned when a requested channel name is not present."""
