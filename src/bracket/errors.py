"""
Exceptions raised by the bracket engine and its stores.
"""


class BracketError(Exception):
    """Base class for bracket engine errors."""


class InvalidInputError(BracketError):
    """Item records or bracket options that cannot be used to build a bracket."""


class DegenerateBracketError(BracketError):
    """Padding would pair two byes against each other."""


class StorageError(BracketError):
    """A data file could not be read or parsed."""
