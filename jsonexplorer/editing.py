"""In-place editing of parsed JSON documents.

Edits never mutate the document they are given: ``update_value_at_path``
returns an edited deep copy, so the caller can keep the original for
comparison or undo.
"""

import copy
import json
import logging
import math
import os
import re
from typing import Any, List, Optional, Union

from jsonexplorer.jsontypes import (
    ARRAY, BOOLEAN, NULL, NUMBER, OBJECT, STRING, JsonNode, classify
)
from jsonexplorer.metrics import parse_json

logger = logging.getLogger(__name__)

PathElement = Union[str, int]

_PATH_TOKEN = re.compile(r'([^.\[\]]+)|\[(\d+)\]')
_NUMBER_TEXT = re.compile(r"^-?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?$")


class EditError(ValueError):
    """
    Exception raised when an edit cannot be applied.

    Attributes:
        message: Human-readable error description
        path: The path the edit was aimed at, if any
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.message = message
        self.path = path
        full_message = message
        if path:
            full_message = f"{message} (path: {path})"
        super().__init__(full_message)


def parse_path(path: Union[str, List[PathElement]]) -> List[PathElement]:
    """Splits a dot/bracket path such as ``a.b[2].c`` into keys and indices.

    Lists are returned unchanged, so paths taken from a tree view can be
    passed straight through. The empty string is the root.
    """
    if isinstance(path, list):
        return path

    elements: List[PathElement] = []
    position = 0
    while position < len(path):
        if path[position] == '.':
            position += 1
            continue
        match = _PATH_TOKEN.match(path, position)
        if not match:
            raise EditError(f"Malformed path at offset {position}", path)
        key, index = match.groups()
        elements.append(int(index) if index is not None else key)
        position = match.end()
    return elements


def _step(current: Any, element: PathElement, path: Any) -> Any:
    if isinstance(current, dict):
        key = str(element)
        if key not in current:
            raise EditError(f"No property '{key}'", str(path))
        return current[key]
    if isinstance(current, list):
        index = _to_index(current, element, path)
        return current[index]
    raise EditError(f"Cannot descend into {classify(current)}", str(path))


def _to_index(array: list, element: PathElement, path: Any) -> int:
    try:
        index = int(element)
    except (TypeError, ValueError):
        raise EditError(f"'{element}' is not an array index", str(path))
    if not 0 <= index < len(array):
        raise EditError(f"Index {index} out of range for array of length {len(array)}", str(path))
    return index


def get_value_at_path(data: JsonNode, path: Union[str, List[PathElement]]) -> JsonNode:
    current = data
    for element in parse_path(path):
        current = _step(current, element, path)
    return current


def update_value_at_path(data: JsonNode, path: Union[str, List[PathElement]], value: JsonNode) -> JsonNode:
    """Returns a copy of ``data`` with the value at ``path`` replaced.

    Args:
        data: The parsed JSON document
        path: Dot/bracket path or list of keys and indices; must not be empty
        value: The new value

    Returns:
        The edited copy

    Raises:
        EditError: If the path does not address an existing value
    """
    elements = parse_path(path)
    if not elements:
        raise EditError("Cannot replace the document root", '')

    new_data = copy.deepcopy(data)
    parent = new_data
    for element in elements[:-1]:
        parent = _step(parent, element, path)

    last = elements[-1]
    if isinstance(parent, dict):
        key = str(last)
        if key not in parent:
            raise EditError(f"No property '{key}'", str(path))
        parent[key] = value
    elif isinstance(parent, list):
        parent[_to_index(parent, last, path)] = value
    else:
        raise EditError(f"Cannot descend into {classify(parent)}", str(path))

    logger.debug("Updated value at %s", path)
    return new_data


def parse_edit_value(text: str, type_tag: str) -> JsonNode:
    """Converts edited text back into a value of the node's type.

    Args:
        text: The text the user typed
        type_tag: Plain type tag of the node being edited

    Returns:
        The converted value

    Raises:
        EditError: If the text is not a valid value of that type, or the
            node is a container
    """
    if type_tag == STRING:
        if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
            return text[1:-1]
        return text

    if type_tag == NUMBER:
        stripped = text.strip()
        if not _NUMBER_TEXT.match(stripped):
            raise EditError(f"Invalid number: {text}")
        try:
            number = json.loads(stripped)
        except ValueError as e:
            raise EditError(f"Invalid number: {e}")
        if isinstance(number, float) and not math.isfinite(number):
            raise EditError(f"Invalid number: {text}")
        return number

    if type_tag == BOOLEAN:
        lowered = text.strip().lower()
        if lowered == 'true':
            return True
        if lowered == 'false':
            return False
        raise EditError(f"Invalid boolean: {text}")

    if type_tag == NULL:
        if text.strip().lower() == 'null':
            return None
        raise EditError(f"Invalid null: {text}")

    if type_tag in (ARRAY, OBJECT):
        raise EditError(f"Values of type {type_tag} cannot be edited inline")

    raise EditError(f"Unknown type: {type_tag}")


def format_json(data: JsonNode, indent: int = 2) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False)


def count_lines(data: JsonNode) -> int:
    """Number of lines in the pretty-printed document (0 when there is none)."""
    if data is None:
        return 0
    return len(format_json(data).split('\n'))


# Command entry points for the jsonexplorer CLI
def edit_file(input: str, out: str, path: str, value: str) -> None:
    """Replaces one primitive value in a JSON file.

    The new value is read in the type of the value it replaces.

    Args:
        input: Path to the JSON document
        out: Output path for the edited document
        path: Dot/bracket path of the value to replace
        value: The new value as text
    """
    with open(input, 'r', encoding='utf-8') as f:
        data = parse_json(f.read())

    current = get_value_at_path(data, path)
    new_data = update_value_at_path(data, path, parse_edit_value(value, classify(current)))
    _write_json(new_data, out)


def format_file(input: str, out: str, indent: int = 2) -> None:
    """Pretty-prints a JSON file."""
    with open(input, 'r', encoding='utf-8') as f:
        data = parse_json(f.read())
    _write_json(data, out, indent)


def _write_json(data: JsonNode, out: str, indent: int = 2) -> None:
    output_dir = os.path.dirname(out)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)

    with open(out, 'w', encoding='utf-8') as f:
        f.write(format_json(data, indent))
        f.write('\n')
