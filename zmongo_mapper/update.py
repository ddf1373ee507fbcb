# zmongo_mapper/update.py
import logging
from typing import Any, Dict

from .query import QueryLike
from .results import WriteResult

logger = logging.getLogger(__name__)


class Update:
    """
    Pending update of the documents matching a query.

    Nothing is sent until ``with_`` or ``merge`` is called::

        coll.update("{name: #}", "John").upsert().with_("{$inc: {age: 1}}")
    """

    def __init__(self, collection, query: Dict[str, Any]):
        self._collection = collection
        self._query = query
        self._upsert = False
        self._multi = False

    def upsert(self) -> "Update":
        self._upsert = True
        return self

    def multi(self) -> "Update":
        self._multi = True
        return self

    def with_(self, modifier: QueryLike, *parameters: Any) -> WriteResult:
        return self._apply(self._collection.query_factory.create(modifier, *parameters))

    def merge(self, obj: Any) -> WriteResult:
        """$set every field of ``obj`` (except its identifier) on the matching documents."""
        document = self._collection.mapper.marshall(obj)
        document.pop("_id", None)
        return self._apply({"$set": document})

    def _apply(self, modifier: Dict[str, Any]) -> WriteResult:
        db_collection = self._collection.get_db_collection()
        operation = db_collection.update_many if self._multi else db_collection.update_one
        res = self._collection.execute(
            "update", operation, self._query, self._collection.as_modifier(modifier), upsert=self._upsert
        )
        result = WriteResult.from_driver(res, self._collection.write_concern)
        logger.info(f"Updated {result.n} document(s) in '{self._collection.name}' matching {self._query}")
        return result
