# zmongo_mapper/zmapper.py
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pymongo import MongoClient

from .config import MapperSettings
from .mapped_collection import MappedCollection
from .marshalling import ObjectMapper
from .query import QueryFactory

logger = logging.getLogger(__name__)


class ZMapper:
    """
    Entry point of the mapper: wraps a pymongo (or mongomock) database and hands
    out MappedCollection handles that read and write Python objects.

        zmapper = ZMapper(MongoClient()["test"])
        friends = zmapper.get_collection("friends")
    """

    def __init__(self, database, mapper: Optional[ObjectMapper] = None):
        self.database = database
        self.mapper = mapper or ObjectMapper()
        self.query_factory = QueryFactory(self.mapper)

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        uri: Optional[str] = None,
        db_name: Optional[str] = None,
        mapper: Optional[ObjectMapper] = None,
    ) -> "ZMapper":
        """Connect using MONGO_URI / MONGO_DATABASE_NAME from the environment or a .env file."""
        settings = MapperSettings.load(env_file, uri=uri, db_name=db_name)
        client = MongoClient(settings.uri, maxPoolSize=settings.max_pool_size)
        logger.info(f"Connected mapper to database '{settings.db_name}'")
        return cls(client[settings.db_name], mapper=mapper)

    def __enter__(self) -> "ZMapper":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def get_database(self):
        return self.database

    def get_mapper(self) -> ObjectMapper:
        return self.mapper

    def get_collection(self, name: str) -> MappedCollection:
        return MappedCollection(self.database[name], self.mapper, self.query_factory)

    def get_query(self, query: str, *parameters: Any) -> Dict[str, Any]:
        """Parse a query template without running it."""
        return self.query_factory.create(query, *parameters)

    def close(self):
        """Closes the underlying MongoDB client connection."""
        client = getattr(self.database, "client", None)
        if client is not None:
            client.close()
            logger.info("MongoDB connection closed.")
