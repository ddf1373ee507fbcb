# zmongo_mapper/query.py
"""
Query templates.

A template is written in mongo shell syntax, for example::

    {name: 'John', age: {$gt: #}}

Keys may be unquoted, strings may use single or double quotes, and every bare
``#`` is a positional placeholder bound to the next parameter. Extended JSON
objects such as ``{$oid: '...'}`` are decoded with ``bson.json_util``.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import json_util
from bson.regex import Regex

from .errors import QueryError
from .marshalling import ObjectMapper

logger = logging.getLogger(__name__)

PLACEHOLDER = "#"
_NUMBER_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_$.\-]+")
_REGEX_FLAGS_RE = re.compile(r"[imxlsu]*")
_ESCAPES = {'"': '"', "'": "'", "\\": "\\", "/": "/", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t"}
_LITERALS = {"true": True, "false": False, "null": None}

QueryLike = Union[str, Dict[str, Any], None]


class _TemplateParser:
    """Recursive-descent parser binding placeholders while it reads the template."""

    def __init__(self, template: str, parameters: Tuple[Any, ...], mapper: ObjectMapper):
        self.template = template
        self.parameters = parameters
        self.mapper = mapper
        self.pos = 0
        self.bound = 0

    def parse(self) -> Any:
        value = self._value()
        self._skip_ws()
        if self.pos != len(self.template):
            self._fail("Unexpected trailing characters")
        if self.bound != len(self.parameters):
            raise QueryError(
                f"Query has {len(self.parameters)} parameters but only {self.bound} placeholders",
                self.template,
            )
        return value

    # ---------- low level ----------
    def _fail(self, message: str):
        raise QueryError(message, self.template, self.pos)

    def _skip_ws(self):
        while self.pos < len(self.template) and self.template[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str:
        self._skip_ws()
        if self.pos >= len(self.template):
            self._fail("Unexpected end of query")
        return self.template[self.pos]

    def _expect(self, char: str):
        if self._peek() != char:
            self._fail(f"Expected '{char}'")
        self.pos += 1

    def _next_parameter(self) -> Any:
        if self.bound >= len(self.parameters):
            raise QueryError(
                f"Query has more placeholders than the {len(self.parameters)} parameters supplied",
                self.template,
                self.pos,
            )
        parameter = self.parameters[self.bound]
        self.bound += 1
        return parameter

    # ---------- grammar ----------
    def _value(self) -> Any:
        char = self._peek()
        if char == "{":
            return self._object()
        if char == "[":
            return self._array()
        if char in "'\"":
            return self._string()
        if char == "/":
            return self._regex()
        if char == PLACEHOLDER:
            self.pos += 1
            return self.mapper.marshall_value(self._next_parameter())
        number = _NUMBER_RE.match(self.template, self.pos)
        if number:
            self.pos = number.end()
            text = number.group()
            if any(c in text for c in ".eE"):
                return float(text)
            return int(text)
        word = _IDENTIFIER_RE.match(self.template, self.pos)
        if word and word.group() in _LITERALS:
            self.pos = word.end()
            return _LITERALS[word.group()]
        self._fail(f"Unexpected character '{char}'")

    def _object(self) -> Dict[str, Any]:
        self._expect("{")
        document: Dict[str, Any] = {}
        if self._peek() == "}":
            self.pos += 1
            return document
        while True:
            key = self._key()
            self._expect(":")
            document[key] = self._value()
            char = self._peek()
            self.pos += 1
            if char == "}":
                break
            if char != ",":
                self.pos -= 1
                self._fail("Expected ',' or '}'")
        return json_util.object_hook(document)

    def _key(self) -> str:
        char = self._peek()
        if char in "'\"":
            return self._string()
        if char == PLACEHOLDER:
            self.pos += 1
            key = self._next_parameter()
            if not isinstance(key, str):
                self._fail(f"Placeholder used as a key must be bound to a string, got {type(key).__name__}")
            return key
        word = _IDENTIFIER_RE.match(self.template, self.pos)
        if not word:
            self._fail("Expected a key")
        self.pos = word.end()
        return word.group()

    def _array(self) -> List[Any]:
        self._expect("[")
        items: List[Any] = []
        if self._peek() == "]":
            self.pos += 1
            return items
        while True:
            items.append(self._value())
            char = self._peek()
            self.pos += 1
            if char == "]":
                return items
            if char != ",":
                self.pos -= 1
                self._fail("Expected ',' or ']'")

    def _string(self) -> str:
        quote = self.template[self.pos]
        self.pos += 1
        chars = []
        while self.pos < len(self.template):
            char = self.template[self.pos]
            if char == quote:
                self.pos += 1
                return "".join(chars)
            if char == "\\":
                self.pos += 1
                if self.pos >= len(self.template):
                    break
                escaped = self.template[self.pos]
                if escaped == "u":
                    code = self.template[self.pos + 1:self.pos + 5]
                    if len(code) != 4:
                        self._fail("Invalid unicode escape")
                    chars.append(chr(int(code, 16)))
                    self.pos += 5
                    continue
                chars.append(_ESCAPES.get(escaped, escaped))
                self.pos += 1
                continue
            chars.append(char)
            self.pos += 1
        self._fail("Unterminated string")

    def _regex(self) -> Regex:
        self.pos += 1
        start = self.pos
        while self.pos < len(self.template) and self.template[self.pos] != "/":
            if self.template[self.pos] == "\\":
                self.pos += 1
            self.pos += 1
        if self.pos >= len(self.template):
            self._fail("Unterminated regular expression")
        pattern = self.template[start:self.pos]
        self.pos += 1
        flags = _REGEX_FLAGS_RE.match(self.template, self.pos)
        self.pos = flags.end()
        return Regex(pattern, flags.group())


class QueryFactory:
    """Builds query documents from templates and positional parameters."""

    def __init__(self, mapper: Optional[ObjectMapper] = None):
        self.mapper = mapper or ObjectMapper()

    def create(self, query: QueryLike, *parameters: Any) -> Dict[str, Any]:
        if query is None:
            if parameters:
                raise QueryError("Parameters supplied without a query")
            return {}
        if isinstance(query, dict):
            if parameters:
                raise QueryError("Parameters can only be bound to a query template")
            return query
        if not isinstance(query, str):
            raise QueryError(f"Query must be a template string or a dict, got {type(query).__name__}")

        value = _TemplateParser(query, parameters, self.mapper).parse()
        if not isinstance(value, dict):
            raise QueryError("Query must be a document", query)
        logger.debug(f"Parsed query {query!r} -> {value}")
        return value
