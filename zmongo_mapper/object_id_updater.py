# zmongo_mapper/object_id_updater.py
"""
Identifier discovery for mapped objects.

An object's identifier attribute is stored under ``_id`` in its document. The
attribute is found, in order, from a ``__mongo_id__`` class attribute, a field
named ``_id``, or a field named ``id``. When the identifier is empty and its
declared type admits an ObjectId, one is generated before the object is written
and set back on the object.
"""
import dataclasses
import logging
import types
import typing
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel

from .errors import MappingError

logger = logging.getLogger(__name__)

ID_KEY = "_id"
_CANDIDATE_ID_FIELDS = ("_id", "id")
_MISSING = object()
_UNION_TYPES = (typing.Union, getattr(types, "UnionType", typing.Union))


def type_hints_of(cls: type) -> Dict[str, Any]:
    """Resolved annotations of a class, or an empty dict when they cannot be resolved."""
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return {name: field.annotation for name, field in cls.model_fields.items()}
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        return dict(getattr(cls, "__annotations__", {}))


def declared_fields_of(cls: type) -> Optional[list]:
    """Names of the fields a class declares, or None when it declares none."""
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return list(cls.model_fields)
    hints = type_hints_of(cls)
    return list(hints) if hints else None


def unwrap_optional(hint: Any) -> Any:
    """Optional[X] -> X; anything else is returned as-is."""
    if typing.get_origin(hint) in _UNION_TYPES:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


class ObjectIdUpdater:

    def id_field(self, target: Any) -> Optional[str]:
        """Return the identifier attribute name of an object or class, if it has one."""
        cls = target if isinstance(target, type) else type(target)
        explicit = getattr(cls, "__mongo_id__", None)
        if explicit:
            return explicit
        fields = declared_fields_of(cls)
        if fields is None and not isinstance(target, type):
            fields = list(vars(target)) if hasattr(target, "__dict__") else []
        for candidate in _CANDIDATE_ID_FIELDS:
            if candidate in (fields or []):
                return candidate
        return None

    def get_id(self, obj: Any) -> Any:
        if isinstance(obj, dict):
            return obj.get(ID_KEY)
        field = self.id_field(obj)
        if field is None:
            return None
        return getattr(obj, field, None)

    def must_generate_object_id(self, obj: Any) -> bool:
        if isinstance(obj, dict):
            return False
        field = self.id_field(obj)
        if field is None or getattr(obj, field, None) is not None:
            return False
        hint = unwrap_optional(type_hints_of(type(obj)).get(field, _MISSING))
        return hint is _MISSING or hint is Any or hint is ObjectId

    def set_object_id(self, obj: Any, object_id: ObjectId) -> None:
        field = self.id_field(obj)
        if field is None:
            raise MappingError(f"{type(obj).__name__} has no identifier attribute to set")
        setattr(obj, field, object_id)
        logger.debug(f"Generated ObjectId {object_id} for {type(obj).__name__}.{field}")
