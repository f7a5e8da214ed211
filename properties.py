"""
properties.py - Per-request configuration resolution

Clients override the server defaults through a ``properties`` query parameter
holding a flat object literal such as
``{"annotators":"tokenize,ssplit","outputFormat":"xml"}``. The literal is not
parsed as JSON: escape sequences are swapped for placeholder tokens, then
entries are split on the commas and colons that sit outside double quotes.
Only flat string-to-string configuration is supported; nested objects or
arrays are not.
"""
import re
import uuid
from collections.abc import Mapping
from typing import Dict, Iterator, List, Optional
from urllib.parse import unquote_plus

from exceptions import MalformedRequest
from logger import get_logger

logger = get_logger(__name__)

PROPERTIES_FIELD = "properties"

# Two-character escapes and the characters they denote
ESCAPES = {
    "\\": "\\",
    '"': '"',
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

_ESCAPE_PATTERN = re.compile(r'\\([\\"bfnrt])')
_BAD_PERCENT_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')


class EffectiveConfiguration(Mapping):
    """
    Immutable string-to-string configuration for one request.

    Equality and hashing are by content so value-equal instances collide when
    used as cache keys.
    """

    __slots__ = ("_items", "_hash")

    def __init__(self, items: Optional[Mapping] = None, **kwargs: str):
        merged = dict(items or {})
        merged.update(kwargs)
        self._items: Dict[str, str] = {str(k): str(v) for k, v in merged.items()}
        self._hash: Optional[int] = None

    def __getitem__(self, key: str) -> str:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._items.items()))
        return self._hash

    def __eq__(self, other) -> bool:
        if isinstance(other, EffectiveConfiguration):
            return self._items == other._items
        if isinstance(other, Mapping):
            return self._items == dict(other.items())
        return NotImplemented

    def __repr__(self) -> str:
        return f"EffectiveConfiguration({self._items!r})"

    def overlay(self, overrides: Mapping) -> "EffectiveConfiguration":
        """Return a new configuration with ``overrides`` applied on top"""
        merged = dict(self._items)
        merged.update(overrides)
        return EffectiveConfiguration(merged)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._items)


def _split_unquoted(text: str, separator: str, maxsplit: int = -1) -> List[str]:
    """Split ``text`` on ``separator`` wherever it is not inside double quotes"""
    parts: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in text:
        if char == '"':
            in_quotes = not in_quotes
        if char == separator and not in_quotes and (maxsplit < 0 or len(parts) < maxsplit):
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    if in_quotes:
        raise MalformedRequest("Properties contain an unterminated quoted string")
    parts.append("".join(current))
    return parts


def _unquote(field: str) -> str:
    if field.startswith('"'):
        field = field[1:]
    if field.endswith('"'):
        field = field[:-1]
    return field.strip()


def parse_properties(literal: str) -> Dict[str, str]:
    """
    Parse a flat ``{key:value, ...}`` literal into a dict.

    Raises:
        MalformedRequest: missing braces, an entry without a colon, or an
            empty key.
    """
    # Placeholders carry a per-call nonce so they cannot occur in the input
    nonce = uuid.uuid4().hex
    placeholders = {
        name: f"__ESCAPED_{index}_{nonce}__" for index, name in enumerate(ESCAPES)
    }
    restore = {token: ESCAPES[name] for name, token in placeholders.items()}

    protected = _ESCAPE_PATTERN.sub(lambda m: placeholders[m.group(1)], literal).strip()
    if len(protected) < 2 or not (protected.startswith("{") and protected.endswith("}")):
        raise MalformedRequest("Properties must be an object literal enclosed in braces")

    def unescape(field: str) -> str:
        for token, char in restore.items():
            field = field.replace(token, char)
        return field

    result: Dict[str, str] = {}
    body = protected[1:-1]
    if not body.strip():
        return result

    for entry in _split_unquoted(body, ","):
        fields = _split_unquoted(entry, ":", maxsplit=1)
        if len(fields) < 2:
            raise MalformedRequest(f"Properties entry has no colon: {unescape(entry).strip()!r}")
        key = _unquote(unescape(fields[0].strip()))
        if not key:
            raise MalformedRequest("Properties entry has an empty key")
        result[key] = _unquote(unescape(fields[1].strip()))

    return result


def _decode(component: str) -> str:
    try:
        return unquote_plus(component, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as e:
        raise MalformedRequest(f"Query string is not valid UTF-8: {e}", original_error=e)


def parse_query(raw_query: str) -> Dict[str, str]:
    """
    Split a raw query string into URL-decoded fields.

    Fields are split on ``&`` before decoding so encoded ampersands stay inside
    their value.
    """
    if not raw_query:
        return {}

    if _BAD_PERCENT_ESCAPE.search(raw_query):
        raise MalformedRequest("Query string contains a malformed percent escape")

    fields: Dict[str, str] = {}
    for field in raw_query.split("&"):
        if not field:
            continue
        key, _, value = field.partition("=")
        fields[_decode(key)] = _decode(value)
    return fields


def resolve(defaults: EffectiveConfiguration, raw_query: str) -> EffectiveConfiguration:
    """Merge client overrides from ``raw_query`` over the server defaults"""
    fields = parse_query(raw_query)
    if PROPERTIES_FIELD not in fields:
        return defaults

    overrides = parse_properties(fields[PROPERTIES_FIELD])
    logger.debug(f"Client overrides: {sorted(overrides)}")
    return defaults.overlay(overrides)
