# zmongo_mapper/__init__.py
"""
Public package API.
Use only relative imports here to avoid circular imports.
"""
from pymongo.errors import DuplicateKeyError

from .zmapper import ZMapper
from .async_mapper import AsyncMappedCollection, AsyncZMapper
from .mapped_collection import MappedCollection
from .marshalling import ObjectMapper
from .object_id_updater import ObjectIdUpdater
from .query import QueryFactory
from .results import WriteResult
from .errors import MappingError, QueryError, ZMapperError

__version__ = "0.1.0"

__all__ = [
    "ZMapper",
    "AsyncZMapper",
    "MappedCollection",
    "AsyncMappedCollection",
    "ObjectMapper",
    "ObjectIdUpdater",
    "QueryFactory",
    "WriteResult",
    "ZMapperError",
    "MappingError",
    "QueryError",
    "DuplicateKeyError",
]
