# zmongo_mapper/marshalling.py
"""
Conversion between Python objects and MongoDB documents.

Supported object shapes:

- dataclasses
- pydantic models (dumped by alias, validated back with ``model_validate``)
- plain classes (public instance attributes)
- dicts, which pass through with their values converted

Nested values are converted recursively. When reading documents back, the
target class's type hints drive the conversion of nested values.
"""
import dataclasses
import datetime
import enum
import inspect
import logging
import re
import typing
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional, Type, TypeVar

from bson import ObjectId
from bson.binary import Binary, UuidRepresentation
from bson.code import Code
from bson.decimal128 import Decimal128
from bson.int64 import Int64
from bson.max_key import MaxKey
from bson.min_key import MinKey
from bson.regex import Regex
from bson.timestamp import Timestamp
from pydantic import BaseModel, ValidationError

from .errors import MappingError
from .object_id_updater import (
    ID_KEY,
    ObjectIdUpdater,
    declared_fields_of,
    type_hints_of,
    unwrap_optional,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BSON_NATIVE_TYPES = (
    str, int, float, bool, bytes,
    ObjectId, Binary, Code, Decimal128, Int64, Regex, Timestamp, MinKey, MaxKey,
    datetime.datetime, re.Pattern,
)
_SEQUENCE_ORIGINS = (list, tuple, set, frozenset)


class ObjectMapper:
    """Marshalls objects to documents and unmarshalls documents to objects."""

    def __init__(self, id_updater: Optional[ObjectIdUpdater] = None):
        self.id_updater = id_updater or ObjectIdUpdater()

    # ---------- object -> document ----------
    def marshall(self, obj: Any) -> Dict[str, Any]:
        """Convert an object into a document. Raises MappingError for non-document values."""
        document = self.marshall_value(obj)
        if not isinstance(document, dict):
            raise MappingError(f"Unable to marshall {type(obj).__name__} into a document")
        return document

    def marshall_value(self, value: Any) -> Any:
        """Convert any value into its BSON-compatible representation."""
        if value is None or isinstance(value, BSON_NATIVE_TYPES):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())
        if isinstance(value, uuid.UUID):
            return Binary.from_uuid(value, UuidRepresentation.STANDARD)
        if isinstance(value, Decimal):
            return Decimal128(value)
        if isinstance(value, enum.Enum):
            return self.marshall_value(value.value)
        if isinstance(value, dict):
            return {str(k): self.marshall_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.marshall_value(v) for v in value]
        if isinstance(value, BaseModel):
            return self._object_to_document(value, value.model_dump(by_alias=True))
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
            return self._object_to_document(value, fields)
        if hasattr(value, "__dict__") and not isinstance(value, type):
            id_field = self.id_updater.id_field(value)
            fields = {
                k: v for k, v in vars(value).items()
                if not k.startswith("_") or k == id_field
            }
            return self._object_to_document(value, fields)
        raise MappingError(f"Unable to marshall value of type {type(value).__name__}")

    def _object_to_document(self, obj: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        id_field = self.id_updater.id_field(obj)
        id_key = _pydantic_alias(type(obj), id_field) if id_field else None
        object_id = fields.pop(id_key, None) if id_key else None

        document: Dict[str, Any] = {}
        if object_id is not None:
            document[ID_KEY] = self.marshall_value(object_id)
        for key, value in fields.items():
            document[key] = self.marshall_value(value)
        return document

    # ---------- document -> object ----------
    def unmarshall(self, document: Optional[Dict[str, Any]], cls: Type[T]) -> Optional[T]:
        """Build an instance of ``cls`` from a document; ``dict`` returns the document itself."""
        if document is None:
            return None
        if cls is None or cls is dict or cls is Any:
            return document
        try:
            return self._convert(document, cls)
        except MappingError:
            raise
        except (TypeError, ValueError, ValidationError) as e:
            logger.debug(f"Unmarshalling into {cls} failed for document {document}: {e}")
            raise MappingError(f"Unable to unmarshall document into {getattr(cls, '__name__', cls)}: {e}") from e

    def _convert(self, value: Any, hint: Any) -> Any:
        if hint is None or hint is Any:
            return value
        hint = unwrap_optional(hint)
        if value is None:
            return None

        origin = typing.get_origin(hint)
        if origin in _SEQUENCE_ORIGINS and isinstance(value, list):
            args = typing.get_args(hint)
            item_hint = args[0] if args else None
            return origin(self._convert(v, item_hint) for v in value)
        if origin is dict and isinstance(value, dict):
            args = typing.get_args(hint)
            value_hint = args[1] if len(args) == 2 else None
            return {k: self._convert(v, value_hint) for k, v in value.items()}
        if not isinstance(hint, type):
            return value

        if issubclass(hint, BaseModel) and isinstance(value, dict):
            return hint.model_validate(self._map_id_key(value, hint))
        if dataclasses.is_dataclass(hint) and isinstance(value, dict):
            return self._build_dataclass(value, hint)
        if issubclass(hint, enum.Enum):
            return hint(value)
        if hint is Decimal and isinstance(value, Decimal128):
            return value.to_decimal()
        if hint is datetime.date and isinstance(value, datetime.datetime):
            return value.date()
        if hint is uuid.UUID and isinstance(value, Binary):
            return value.as_uuid(UuidRepresentation.STANDARD)
        if isinstance(value, dict) and hint.__module__ != "builtins":
            return self._build_plain(value, hint)
        return value

    def _map_id_key(self, document: Dict[str, Any], cls: type) -> Dict[str, Any]:
        id_field = self.id_updater.id_field(cls)
        data = dict(document)
        if id_field and ID_KEY in data and _pydantic_alias(cls, id_field) != ID_KEY:
            data[id_field] = data.pop(ID_KEY)
        return data

    def _build_dataclass(self, document: Dict[str, Any], cls: type) -> Any:
        data = self._map_id_key(document, cls)
        hints = type_hints_of(cls)
        kwargs = {}
        late = {}
        for f in dataclasses.fields(cls):
            if f.name in data:
                converted = self._convert(data[f.name], hints.get(f.name))
                if f.init:
                    kwargs[f.name] = converted
                else:
                    late[f.name] = converted
            elif f.init and f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                kwargs[f.name] = None
        obj = cls(**kwargs)
        for name, value in late.items():
            setattr(obj, name, value)
        return obj

    def _build_plain(self, document: Dict[str, Any], cls: type) -> Any:
        data = self._map_id_key(document, cls)
        hints = type_hints_of(cls)
        declared = declared_fields_of(cls)
        id_field = self.id_updater.id_field(cls)
        obj = _instantiate(cls)
        for key, value in data.items():
            if declared is not None and key not in declared and key != id_field:
                continue
            setattr(obj, key, self._convert(value, hints.get(key)))
        return obj


def _pydantic_alias(cls: type, field: str) -> str:
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        info = cls.model_fields.get(field)
        if info is not None and info.alias:
            return info.alias
    return field


def _instantiate(cls: type) -> Any:
    """Call the no-argument constructor when there is one, else allocate without __init__."""
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return cls.__new__(cls)
    required = [
        p for p in signature.parameters.values()
        if p.default is inspect.Parameter.empty
        and p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD,
                       inspect.Parameter.KEYWORD_ONLY)
    ]
    if required:
        return cls.__new__(cls)
    return cls()
