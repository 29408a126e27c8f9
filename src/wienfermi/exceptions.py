"""Errors raised when solver output cannot be turned into a Fermi surface."""

__all__ = [
    "ParseError",
    "MissingSectionError",
    "DimensionMismatchError",
    "UnreadableInputError",
]


class ParseError(ValueError):
    """Base class for fatal errors encountered while importing solver output."""


class MissingSectionError(ParseError):
    """A structural section required to rebuild the data is absent.

    Args:
        section: The marker text of the missing section.
        filename: Optional description of the file that was being parsed.
    """

    def __init__(self, section: str, filename: str = ""):
        self.section = section
        self.filename = filename
        where = f" in {filename}" if filename else ""
        super().__init__(f'Could not find "{section}" section{where}.')


class DimensionMismatchError(ParseError):
    """The amount of data does not agree with the declared dimensions."""


class UnreadableInputError(ParseError):
    """The input is empty or is not text."""
