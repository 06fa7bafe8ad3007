class InvalidAmount(ValueError):
    """Monetary input that cannot be read as an unsigned amount."""


class NotFound(ValueError):
    """A referenced record does not exist."""


class StorageUnavailable(RuntimeError):
    """The database could not be reached or a statement failed."""


class IOFailure(OSError):
    """A receipt file could not be written."""
