"""Type vocabulary shared by the validator, the tree search and the metrics pass.

Values are what ``json.loads`` produces: ``None``, ``bool``, ``int``,
``float``, ``str``, ``list`` and ``dict``. Type tags use the JSON Schema
type names.
"""

import json
import math
from typing import Any, Dict, Iterator, List, Tuple, Union

JsonNode = Union[Dict[str, 'JsonNode'], List['JsonNode'], str, bool, int, float, None]

NULL = 'null'
BOOLEAN = 'boolean'
NUMBER = 'number'
INTEGER = 'integer'
STRING = 'string'
ARRAY = 'array'
OBJECT = 'object'

TYPE_TAGS = (NULL, BOOLEAN, NUMBER, INTEGER, STRING, ARRAY, OBJECT)


def is_number(value: Any) -> bool:
    """True for JSON numbers. ``bool`` is an ``int`` subclass and is excluded."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_finite(value: Any) -> bool:
    return is_number(value) and (isinstance(value, int) or math.isfinite(value))


def is_integral(value: Any) -> bool:
    """True for finite numbers without a fractional part (``5`` and ``5.0``)."""
    if not is_number(value):
        return False
    if isinstance(value, int):
        return True
    return math.isfinite(value) and value.is_integer()


def is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def classify(value: Any) -> str:
    """Returns the plain type tag of a value.

    Numbers are always ``number`` here; see ``classify_schema`` for the
    integer distinction.
    """
    if value is None:
        return NULL
    if isinstance(value, list):
        return ARRAY
    if isinstance(value, dict):
        return OBJECT
    if isinstance(value, bool):
        return BOOLEAN
    if is_number(value):
        return NUMBER
    if isinstance(value, str):
        return STRING
    raise TypeError(f"Not a JSON value: {type(value).__name__}")


def classify_schema(value: Any) -> str:
    """Returns the type tag as JSON Schema sees it.

    A number is ``integer`` iff it is finite and has no fractional part.
    """
    tag = classify(value)
    if tag == NUMBER and is_integral(value):
        return INTEGER
    return tag


def children(value: Any) -> Iterator[Tuple[Union[str, int], Any]]:
    """Yields ``(key, child)`` pairs of a container in insertion order."""
    if isinstance(value, dict):
        yield from value.items()
    elif isinstance(value, list):
        yield from enumerate(value)


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_json(value: Any) -> str:
    """Serializes a value so that structurally equal values serialize identically.

    Object keys are sorted and integral floats are written as integers, so
    ``{"a": 1, "b": 2.0}`` and ``{"b": 2, "a": 1}`` share one form.
    """
    return json.dumps(_normalize(value), sort_keys=True, separators=(',', ':'))


def json_equal(a: Any, b: Any) -> bool:
    """Deep equality over JSON values. Objects compare as unordered key sets."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) or is_number(b):
        return is_number(a) and is_number(b) and a == b
    if isinstance(a, dict):
        if not isinstance(b, dict) or a.keys() != b.keys():
            return False
        return all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, list):
        if not isinstance(b, list) or len(a) != len(b):
            return False
        return all(json_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def to_json_text(value: Any) -> str:
    """String form of a primitive as it appears in JSON text (strings unquoted).

    JSON has a single number type, so integral floats render without a
    fractional part: ``1.0`` reads as ``1``. Exponent notation takes over
    from 1e21 on.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return json.dumps(value)
