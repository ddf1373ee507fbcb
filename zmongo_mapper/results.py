# zmongo_mapper/results.py
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pymongo.write_concern import WriteConcern


@dataclass
class WriteResult:
    """Outcome of a write, carrying the write concern it was issued with."""
    n: int
    last_concern: Optional[WriteConcern] = None
    upserted_id: Optional[Any] = None
    update_of_existing: bool = False
    inserted_ids: List[Any] = field(default_factory=list)
    acknowledged: bool = True

    @classmethod
    def from_driver(cls, res: Any, write_concern: Optional[WriteConcern]) -> "WriteResult":
        """Converts raw driver result objects (pymongo, motor or mongomock) into a WriteResult."""
        acknowledged = getattr(res, "acknowledged", True)
        if hasattr(res, "inserted_ids"):
            return cls(n=len(res.inserted_ids), last_concern=write_concern,
                       inserted_ids=list(res.inserted_ids), acknowledged=acknowledged)
        if hasattr(res, "inserted_id"):
            return cls(n=1, last_concern=write_concern, inserted_ids=[res.inserted_id],
                       acknowledged=acknowledged)
        if not acknowledged:
            return cls(n=0, last_concern=write_concern, acknowledged=False)
        if hasattr(res, "deleted_count"):
            return cls(n=res.deleted_count, last_concern=write_concern)
        if hasattr(res, "matched_count"):
            upserted_id = res.upserted_id
            return cls(
                n=res.matched_count + (1 if upserted_id is not None else 0),
                last_concern=write_concern,
                upserted_id=upserted_id,
                update_of_existing=res.matched_count > 0,
            )
        raise TypeError(f"Unsupported driver result: {type(res).__name__}")

    @property
    def inserted_id(self) -> Optional[Any]:
        return self.inserted_ids[0] if self.inserted_ids else None
