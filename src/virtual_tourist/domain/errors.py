"""Errors raised by album acquisition and the record store."""


class AlbumError(Exception):
    """Base class for album acquisition failures."""


class NetworkError(AlbumError):
    """The remote photo service could not be reached or refused the request."""


class EmptyResult(AlbumError):
    """The remote service answered, but with no usable photos."""


class PersistenceError(AlbumError):
    """A write to the record store failed."""


class NotFound(AlbumError):
    """The referenced record does not exist."""


class HasDependents(AlbumError):
    """A location cannot be deleted while photos still reference it."""
