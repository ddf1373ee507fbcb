# zmongo_mapper/mapped_collection.py
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from bson import ObjectId
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError
from pymongo.write_concern import WriteConcern

from .aggregate import Aggregate, Distinct
from .errors import MappingError, QueryError, as_duplicate_key_error
from .find import Find, FindAndModify, FindOne, sort_spec
from .marshalling import ObjectMapper
from .query import QueryFactory, QueryLike
from .results import WriteResult
from .update import Update

logger = logging.getLogger(__name__)

ID_KEY = "_id"


def handle_driver_error(collection_name: str, operation: str, exc: PyMongoError) -> PyMongoError:
    """Log a driver failure and return the exception the caller should see."""
    if isinstance(exc, DuplicateKeyError):
        logger.warning(f"[{operation}] Duplicate key in '{collection_name}': {exc.details}")
        return exc
    if isinstance(exc, BulkWriteError):
        duplicate = as_duplicate_key_error(exc)
        if duplicate is not None:
            logger.warning(f"[{operation}] Duplicate key in '{collection_name}': {duplicate.details}")
            return duplicate
        logger.error(f"[{operation}] Mongo BulkWriteError in '{collection_name}': {exc.details}")
        return exc
    logger.error(f"[{operation}] Mongo error in '{collection_name}': {exc}")
    return exc


class MappedCollectionBase:
    """Marshalling, identifier and query handling shared by the sync and async handles."""

    def __init__(
        self,
        collection,
        mapper: Optional[ObjectMapper] = None,
        query_factory: Optional[QueryFactory] = None,
        write_concern: Optional[WriteConcern] = None,
    ):
        self._collection = collection
        self.mapper = mapper or ObjectMapper()
        self.query_factory = query_factory or QueryFactory(self.mapper)
        self._write_concern = write_concern

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def write_concern(self) -> Optional[WriteConcern]:
        if self._write_concern is not None:
            return self._write_concern
        return self._collection.write_concern

    @property
    def read_preference(self):
        return self._collection.read_preference

    def get_db_collection(self):
        return self._collection

    def as_modifier(self, modifier: Dict[str, Any]) -> Dict[str, Any]:
        # Non-operator updates are applied as $set.
        if not any(isinstance(k, str) and k.startswith("$") for k in modifier):
            return {"$set": modifier}
        return modifier

    def _query(self, query: Any, parameters: Sequence[Any]) -> Dict[str, Any]:
        if query is None or isinstance(query, (str, dict)):
            return self.query_factory.create(query, *parameters)
        if parameters:
            raise QueryError("Parameters can only be bound to a query template")
        return {ID_KEY: self.mapper.marshall_value(query)}

    def _prepare_documents(self, objects: Sequence[Any]) -> List[Dict[str, Any]]:
        documents = []
        id_updater = self.mapper.id_updater
        for obj in objects:
            if obj is None:
                raise MappingError("Unable to insert None")
            if id_updater.must_generate_object_id(obj):
                id_updater.set_object_id(obj, ObjectId())
            documents.append(self.mapper.marshall(obj))
        return documents

    def _documents_for_insert(self, args: Sequence[Any]) -> List[Dict[str, Any]]:
        if not args:
            raise MappingError("Nothing to insert")
        if isinstance(args[0], str):
            return [self.query_factory.create(args[0], *args[1:])]
        return self._prepare_documents(args)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, write_concern={self.write_concern!r})"


class MappedCollection(MappedCollectionBase):
    """
    A collection handle that reads and writes Python objects.

    Queries are template strings with ``#`` placeholders::

        friends = zmapper.get_collection("friends")
        friends.insert(Friend(name="John"))
        john = friends.find_one("{name: #}", "John").as_(Friend)
    """

    def execute(self, operation: str, fn: Callable, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except PyMongoError as e:
            error = handle_driver_error(self.name, operation, e)
            if error is e:
                raise
            raise error from e

    # ---------- handles ----------
    def with_write_concern(self, write_concern: WriteConcern) -> "MappedCollection":
        """A new handle whose writes use, and report, ``write_concern``. This handle is unchanged."""
        collection = self._collection.with_options(write_concern=write_concern)
        return MappedCollection(collection, self.mapper, self.query_factory, write_concern)

    def with_read_preference(self, read_preference) -> "MappedCollection":
        collection = self._collection.with_options(read_preference=read_preference)
        return MappedCollection(collection, self.mapper, self.query_factory, self._write_concern)

    # ---------- writes ----------
    def insert(self, *args: Any) -> WriteResult:
        """
        Insert objects, or a single document built from a query template.

        ``insert(friend)``, ``insert(friend, other)`` and ``insert("{name: #}", "Abby")``
        are all accepted. Objects whose ObjectId identifier is empty get one generated
        and set on them before the write.
        """
        documents = self._documents_for_insert(args)
        if len(documents) == 1:
            res = self.execute("insert", self._collection.insert_one, documents[0])
        else:
            res = self.execute("insert", self._collection.insert_many, documents, ordered=True)
        result = WriteResult.from_driver(res, self.write_concern)
        logger.info(f"Inserted {result.n} document(s) into '{self.name}'")
        return result

    def save(self, obj: Any) -> WriteResult:
        """Insert ``obj``, or replace the stored document with the same identifier."""
        document = self._prepare_documents([obj])[0]
        if ID_KEY not in document:
            res = self.execute("save", self._collection.insert_one, document)
        else:
            res = self.execute(
                "save", self._collection.replace_one, {ID_KEY: document[ID_KEY]}, document, upsert=True
            )
        return WriteResult.from_driver(res, self.write_concern)

    def update(self, query: QueryLike = None, *parameters: Any) -> Update:
        return Update(self, self._query(query, parameters))

    def remove(self, query: Any = None, *parameters: Any) -> WriteResult:
        """Remove matching documents; a non-template argument removes by identifier."""
        selector = self._query(query, parameters)
        res = self.execute("remove", self._collection.delete_many, selector)
        result = WriteResult.from_driver(res, self.write_concern)
        logger.info(f"Removed {result.n} document(s) from '{self.name}'")
        return result

    # ---------- reads ----------
    def find(self, query: QueryLike = None, *parameters: Any) -> Find:
        return Find(self, self._query(query, parameters))

    def find_one(self, query: Any = None, *parameters: Any) -> FindOne:
        return FindOne(self, self._query(query, parameters))

    def find_and_modify(self, query: Any = None, *parameters: Any) -> FindAndModify:
        return FindAndModify(self, self._query(query, parameters))

    def count(self, query: QueryLike = None, *parameters: Any) -> int:
        return self.execute("count", self._collection.count_documents, self._query(query, parameters))

    def distinct(self, key: str) -> Distinct:
        return Distinct(self, key)

    def aggregate(self, stage: QueryLike, *parameters: Any) -> Aggregate:
        return Aggregate(self, self.query_factory.create(stage, *parameters))

    # ---------- indexes & lifecycle ----------
    def ensure_index(self, keys: QueryLike, options: QueryLike = None) -> str:
        """Create an index, e.g. ``ensure_index("{name: 1}", "{unique: true}")``."""
        spec = sort_spec(self, keys)
        index_options = self.query_factory.create(options)
        return self.execute("ensure_index", self._collection.create_index, spec, **index_options)

    def drop_index(self, keys: QueryLike) -> None:
        self.execute("drop_index", self._collection.drop_index, sort_spec(self, keys))

    def drop_indexes(self) -> None:
        self.execute("drop_indexes", self._collection.drop_indexes)

    def get_index_info(self) -> Dict[str, Any]:
        return self.execute("get_index_info", self._collection.index_information)

    def drop(self) -> None:
        self.execute("drop", self._collection.drop)
        logger.info(f"Dropped collection '{self.name}'")
