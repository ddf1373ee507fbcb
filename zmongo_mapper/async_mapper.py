# zmongo_mapper/async_mapper.py
"""
Asynchronous flavour of the mapper on top of motor.

The builders mirror the synchronous ones; their terminal calls (``as_``,
``map``, ``with_``, ``merge``) return awaitables.
"""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import motor.motor_asyncio
from pymongo.errors import PyMongoError
from pymongo.write_concern import WriteConcern

from .config import DEFAULT_QUERY_LIMIT, MapperSettings
from .find import Find, FindOne, ResultHandler
from .mapped_collection import ID_KEY, MappedCollectionBase, handle_driver_error
from .marshalling import ObjectMapper
from .query import QueryFactory, QueryLike
from .results import WriteResult
from .update import Update

logger = logging.getLogger(__name__)


class AsyncFind(Find):

    async def map(self, handler: ResultHandler) -> List[Any]:
        cursor = self._cursor()
        documents = await self._collection.execute(
            "find", cursor.to_list, length=self._limit or DEFAULT_QUERY_LIMIT
        )
        return [handler(document) for document in documents]


class AsyncFindOne(FindOne):

    async def map(self, handler: ResultHandler) -> Any:
        document = await self._collection.execute(
            "find_one", self._collection.get_db_collection().find_one, self._query, projection=self._projection
        )
        return handler(document) if document is not None else None


class AsyncUpdate(Update):

    # with_() and merge() hand their modifier to _apply, so they return this coroutine.
    async def _apply(self, modifier: Dict[str, Any]) -> WriteResult:
        db_collection = self._collection.get_db_collection()
        operation = db_collection.update_many if self._multi else db_collection.update_one
        res = await self._collection.execute(
            "update", operation, self._query, self._collection.as_modifier(modifier), upsert=self._upsert
        )
        result = WriteResult.from_driver(res, self._collection.write_concern)
        logger.info(f"Updated {result.n} document(s) in '{self._collection.name}' matching {self._query}")
        return result


class AsyncMappedCollection(MappedCollectionBase):
    """A motor collection handle that reads and writes Python objects."""

    async def execute(self, operation: str, fn: Callable, *args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as e:
            error = handle_driver_error(self.name, operation, e)
            if error is e:
                raise
            raise error from e

    def with_write_concern(self, write_concern: WriteConcern) -> "AsyncMappedCollection":
        collection = self._collection.with_options(write_concern=write_concern)
        return AsyncMappedCollection(collection, self.mapper, self.query_factory, write_concern)

    async def insert(self, *args: Any) -> WriteResult:
        documents = self._documents_for_insert(args)
        if len(documents) == 1:
            res = await self.execute("insert", self._collection.insert_one, documents[0])
        else:
            res = await self.execute("insert", self._collection.insert_many, documents, ordered=True)
        result = WriteResult.from_driver(res, self.write_concern)
        logger.info(f"Inserted {result.n} document(s) into '{self.name}'")
        return result

    async def save(self, obj: Any) -> WriteResult:
        document = self._prepare_documents([obj])[0]
        if ID_KEY not in document:
            res = await self.execute("save", self._collection.insert_one, document)
        else:
            res = await self.execute(
                "save", self._collection.replace_one, {ID_KEY: document[ID_KEY]}, document, upsert=True
            )
        return WriteResult.from_driver(res, self.write_concern)

    def update(self, query: QueryLike = None, *parameters: Any) -> AsyncUpdate:
        return AsyncUpdate(self, self._query(query, parameters))

    async def remove(self, query: Any = None, *parameters: Any) -> WriteResult:
        res = await self.execute("remove", self._collection.delete_many, self._query(query, parameters))
        return WriteResult.from_driver(res, self.write_concern)

    def find(self, query: QueryLike = None, *parameters: Any) -> AsyncFind:
        return AsyncFind(self, self._query(query, parameters))

    def find_one(self, query: Any = None, *parameters: Any) -> AsyncFindOne:
        return AsyncFindOne(self, self._query(query, parameters))

    async def count(self, query: QueryLike = None, *parameters: Any) -> int:
        return await self.execute("count", self._collection.count_documents, self._query(query, parameters))


class AsyncZMapper:
    """Entry point of the mapper over a motor database."""

    def __init__(self, database: motor.motor_asyncio.AsyncIOMotorDatabase, mapper: Optional[ObjectMapper] = None):
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
    ) -> "AsyncZMapper":
        settings = MapperSettings.load(env_file, uri=uri, db_name=db_name)
        client = motor.motor_asyncio.AsyncIOMotorClient(settings.uri, maxPoolSize=settings.max_pool_size)
        return cls(client[settings.db_name], mapper=mapper)

    async def __aenter__(self) -> "AsyncZMapper":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def get_collection(self, name: str) -> AsyncMappedCollection:
        return AsyncMappedCollection(self.database[name], self.mapper, self.query_factory)

    def close(self):
        """Closes the underlying motor client."""
        if self.database is not None and self.database.client is not None:
            self.database.client.close()
            logger.info("MongoDB connection closed.")
