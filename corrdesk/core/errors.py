"""Exceptions raised by the retrieval and reference-graph engine."""


class CorrdeskError(Exception):
    """Base class for engine errors."""


class InvalidSearchFilter(CorrdeskError):
    """Raised when a structured search filter is malformed.

    Raised before any store query is issued.
    """


class DocumentNotFound(CorrdeskError):
    """Raised when an identifier does not resolve to any letter.

    For island and chain extraction this is the terminal "seed not found"
    outcome; a resolved seed always yields at least itself.
    """

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Letter not found: {identifier!r}")


class StoreUnavailable(CorrdeskError):
    """Raised when the document store cannot be reached for a non-search operation."""
