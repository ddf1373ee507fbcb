# zmongo_mapper/errors.py
from pymongo.errors import BulkWriteError, DuplicateKeyError

DUPLICATE_KEY_CODES = (11000, 11001)


class ZMapperError(Exception):
    """Base class for errors raised by the mapper itself."""


class MappingError(ZMapperError):
    """An object could not be marshalled, or a document could not be unmarshalled."""


class QueryError(ZMapperError, ValueError):
    """A query template is malformed or its parameters do not match its placeholders."""

    def __init__(self, message: str, template: str = None, position: int = None):
        if template is not None and position is not None:
            message = f"{message} at position {position} in query: {template}"
        elif template is not None:
            message = f"{message} in query: {template}"
        super().__init__(message)
        self.template = template
        self.position = position


def as_duplicate_key_error(exc: BulkWriteError):
    """Return a DuplicateKeyError for a bulk failure caused by a duplicate key, else None."""
    for write_error in (exc.details or {}).get("writeErrors", []):
        if write_error.get("code") in DUPLICATE_KEY_CODES:
            return DuplicateKeyError(
                write_error.get("errmsg", "duplicate key error"),
                code=write_error.get("code"),
                details=write_error,
            )
    return None
