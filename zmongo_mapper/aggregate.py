# zmongo_mapper/aggregate.py
from typing import Any, Dict, List, Optional, Type, TypeVar

from .find import MappedCursor, ResultHandler
from .query import QueryLike

T = TypeVar("T")


class Aggregate:
    """Aggregation pipeline built one stage template at a time."""

    def __init__(self, collection, first_stage: Dict[str, Any]):
        self._collection = collection
        self._pipeline: List[Dict[str, Any]] = [first_stage]
        self._allow_disk_use = False

    def and_(self, stage: QueryLike, *parameters: Any) -> "Aggregate":
        self._pipeline.append(self._collection.query_factory.create(stage, *parameters))
        return self

    def allow_disk_use(self) -> "Aggregate":
        self._allow_disk_use = True
        return self

    @property
    def pipeline(self) -> List[Dict[str, Any]]:
        return list(self._pipeline)

    def as_(self, cls: Type[T]) -> MappedCursor:
        mapper = self._collection.mapper
        return self.map(lambda document: mapper.unmarshall(document, cls))

    def map(self, handler: ResultHandler) -> MappedCursor:
        options = {"allowDiskUse": True} if self._allow_disk_use else {}
        cursor = self._collection.execute(
            "aggregate", self._collection.get_db_collection().aggregate, self._pipeline, **options
        )
        return MappedCursor(cursor, handler)


class Distinct:

    def __init__(self, collection, key: str):
        self._collection = collection
        self._key = key
        self._query: Optional[Dict[str, Any]] = None

    def query(self, query: QueryLike, *parameters: Any) -> "Distinct":
        self._query = self._collection.query_factory.create(query, *parameters)
        return self

    def as_(self, cls: Type[T]) -> List[T]:
        values = self._collection.execute(
            "distinct", self._collection.get_db_collection().distinct, self._key, self._query
        )
        mapper = self._collection.mapper
        return [mapper.unmarshall(value, cls) for value in values]
