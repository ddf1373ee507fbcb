# zmongo_mapper/find.py
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from pymongo import ReturnDocument

from .errors import QueryError
from .query import QueryLike

T = TypeVar("T")
ResultHandler = Callable[[Dict[str, Any]], Any]


def sort_spec(collection, sort: QueryLike, *parameters: Any) -> List[Tuple[str, int]]:
    """Turn a sort template such as ``{age: -1, name: 1}`` into pymongo's key/direction list."""
    return list(collection.query_factory.create(sort, *parameters).items())


class MappedCursor:
    """Iterates a driver cursor, passing every document through a result handler."""

    def __init__(self, cursor, handler: ResultHandler):
        self._cursor = cursor
        self._handler = handler

    def __iter__(self):
        return self

    def __next__(self):
        return self._handler(next(self._cursor))

    def __enter__(self) -> "MappedCursor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def to_list(self) -> list:
        return list(self)

    def close(self):
        self._cursor.close()


class Find:

    def __init__(self, collection, query: Dict[str, Any]):
        self._collection = collection
        self._query = query
        self._projection: Optional[Dict[str, Any]] = None
        self._sort: Optional[List[Tuple[str, int]]] = None
        self._hint: Optional[List[Tuple[str, int]]] = None
        self._skip = 0
        self._limit = 0

    def projection(self, fields: QueryLike, *parameters: Any) -> "Find":
        self._projection = self._collection.query_factory.create(fields, *parameters)
        return self

    def sort(self, sort: QueryLike, *parameters: Any) -> "Find":
        self._sort = sort_spec(self._collection, sort, *parameters)
        return self

    def hint(self, hint: QueryLike) -> "Find":
        self._hint = sort_spec(self._collection, hint)
        return self

    def skip(self, skip: int) -> "Find":
        if skip < 0:
            raise QueryError(f"skip must be positive, got {skip}")
        self._skip = skip
        return self

    def limit(self, limit: int) -> "Find":
        self._limit = limit
        return self

    def as_(self, cls: Type[T]) -> MappedCursor:
        mapper = self._collection.mapper
        return self.map(lambda document: mapper.unmarshall(document, cls))

    def map(self, handler: ResultHandler) -> MappedCursor:
        return MappedCursor(self._cursor(), handler)

    def _cursor(self):
        cursor = self._collection.get_db_collection().find(self._query, projection=self._projection)
        if self._sort:
            cursor = cursor.sort(self._sort)
        if self._skip:
            cursor = cursor.skip(self._skip)
        if self._limit:
            cursor = cursor.limit(self._limit)
        if self._hint:
            cursor = cursor.hint(self._hint)
        return cursor


class FindOne:

    def __init__(self, collection, query: Dict[str, Any]):
        self._collection = collection
        self._query = query
        self._projection: Optional[Dict[str, Any]] = None

    def projection(self, fields: QueryLike, *parameters: Any) -> "FindOne":
        self._projection = self._collection.query_factory.create(fields, *parameters)
        return self

    def as_(self, cls: Type[T]) -> Optional[T]:
        mapper = self._collection.mapper
        return self.map(lambda document: mapper.unmarshall(document, cls))

    def map(self, handler: ResultHandler) -> Any:
        document = self._collection.execute(
            "find_one", self._collection.get_db_collection().find_one, self._query, projection=self._projection
        )
        return handler(document) if document is not None else None


class FindAndModify:
    """Atomically modifies (or removes) one document and returns it."""

    def __init__(self, collection, query: Dict[str, Any]):
        self._collection = collection
        self._query = query
        self._modifier: Optional[Dict[str, Any]] = None
        self._projection: Optional[Dict[str, Any]] = None
        self._sort: Optional[List[Tuple[str, int]]] = None
        self._upsert = False
        self._return_new = False
        self._remove = False

    def with_(self, modifier: QueryLike, *parameters: Any) -> "FindAndModify":
        self._modifier = self._collection.query_factory.create(modifier, *parameters)
        return self

    def projection(self, fields: QueryLike, *parameters: Any) -> "FindAndModify":
        self._projection = self._collection.query_factory.create(fields, *parameters)
        return self

    def sort(self, sort: QueryLike, *parameters: Any) -> "FindAndModify":
        self._sort = sort_spec(self._collection, sort, *parameters)
        return self

    def upsert(self) -> "FindAndModify":
        self._upsert = True
        return self

    def return_new(self) -> "FindAndModify":
        self._return_new = True
        return self

    def remove(self) -> "FindAndModify":
        self._remove = True
        return self

    def as_(self, cls: Type[T]) -> Optional[T]:
        mapper = self._collection.mapper
        return self.map(lambda document: mapper.unmarshall(document, cls))

    def map(self, handler: ResultHandler) -> Any:
        db_collection = self._collection.get_db_collection()
        if self._remove:
            document = self._collection.execute(
                "find_and_remove", db_collection.find_one_and_delete,
                self._query, projection=self._projection, sort=self._sort,
            )
        else:
            if self._modifier is None:
                raise QueryError("find_and_modify requires a modifier unless remove() is set")
            document = self._collection.execute(
                "find_and_modify", db_collection.find_one_and_update,
                self._query, self._collection.as_modifier(self._modifier),
                projection=self._projection,
                sort=self._sort,
                upsert=self._upsert,
                return_document=ReturnDocument.AFTER if self._return_new else ReturnDocument.BEFORE,
            )
        return handler(document) if document is not None else None
