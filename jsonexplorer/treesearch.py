"""Full-text search over the keys and values of a parsed JSON document.

The search walks the document depth first with an explicit stack, so its
memory use is bounded by the document rather than the Python call stack.
Results come out in pre-order: an object key is reported right before the
matches inside its value, and siblings keep their insertion order.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, List, Optional, Tuple, Union

from jsonexplorer.common import process_template
from jsonexplorer.jsontypes import JsonNode, is_container, to_json_text
from jsonexplorer.metrics import parse_json

logger = logging.getLogger(__name__)

KEY = 'key'
VALUE = 'value'

PathElement = Union[str, int]


@dataclass(frozen=True)
class SearchResult:
    """A single match.

    ``position`` is the order in which the match was found and drives
    next/previous navigation.
    """
    path: str
    kind: str
    text: str
    position: int


def _join_path(path: Tuple[PathElement, ...]) -> str:
    return '.'.join(str(element) for element in path)


def search(data: JsonNode, term: str, case_sensitive: bool = False) -> List[SearchResult]:
    """Finds every key and primitive value containing ``term``.

    Args:
        data: The parsed JSON document
        term: Text to look for; an empty term matches nothing
        case_sensitive: Compare without lower-casing both sides

    Returns:
        List of SearchResult in navigation order
    """
    results: List[SearchResult] = []
    if not term:
        return results

    needle = term if case_sensitive else term.lower()

    def matches(text: str) -> bool:
        return needle in (text if case_sensitive else text.lower())

    def emit(path: Tuple[PathElement, ...], kind: str, text: str) -> None:
        results.append(SearchResult(_join_path(path), kind, text, len(results)))

    visited = set()
    # (value, path, key the value was reached through when its parent is an object)
    stack: List[Tuple[Any, Tuple[PathElement, ...], Optional[str]]] = [(data, (), None)]

    while stack:
        value, path, key = stack.pop()

        if key is not None and matches(key):
            emit(path, KEY, key)

        if is_container(value):
            if id(value) in visited:
                continue
            visited.add(id(value))
            if isinstance(value, dict):
                entries = [(child, path + (child_key,), child_key) for child_key, child in value.items()]
            else:
                entries = [(child, path + (index,), None) for index, child in enumerate(value)]
            stack.extend(reversed(entries))
        else:
            text = to_json_text(value)
            if matches(text):
                emit(path, VALUE, text)

    logger.debug("Search for %r found %d result(s)", term, len(results))
    return results


class SearchSession:
    """Holds a result set and the currently selected result.

    Every term change replaces the result set wholesale. Debouncing the
    term is left to the caller.
    """

    def __init__(self, data: JsonNode = None, case_sensitive: bool = False):
        self.data = data
        self.case_sensitive = case_sensitive
        self.term = ''
        self.results: List[SearchResult] = []
        self.current_index = -1

    def update(self, term: str, case_sensitive: Optional[bool] = None) -> List[SearchResult]:
        if case_sensitive is not None:
            self.case_sensitive = case_sensitive
        self.term = term
        if self.data is not None and term:
            self.results = search(self.data, term, self.case_sensitive)
        else:
            self.results = []
        self.current_index = 0 if self.results else -1
        return self.results

    def set_data(self, data: JsonNode) -> List[SearchResult]:
        """Replaces the document and re-runs the current term against it."""
        self.data = data
        return self.update(self.term)

    def clear(self) -> None:
        self.update('')

    @property
    def current(self) -> Optional[SearchResult]:
        if not self.results:
            return None
        return self.results[self.current_index]

    def next(self) -> Optional[SearchResult]:
        if not self.results:
            return None
        self.current_index = (self.current_index + 1) % len(self.results)
        return self.current

    def previous(self) -> Optional[SearchResult]:
        if not self.results:
            return None
        self.current_index = (self.current_index - 1 + len(self.results)) % len(self.results)
        return self.current

    def __len__(self) -> int:
        return len(self.results)


# Command entry point for the jsonexplorer CLI
def search_file(input: str, term: str, case_sensitive: bool = False, as_json: bool = False) -> None:
    """Searches a JSON file and prints the matches.

    Args:
        input: Path to the JSON document
        term: Text to look for
        case_sensitive: Match case exactly
        as_json: Print the results as a JSON array instead of text lines
    """
    with open(input, 'r', encoding='utf-8') as f:
        data = parse_json(f.read())

    results = search(data, term, case_sensitive)
    if as_json:
        print(json.dumps([asdict(result) for result in results], indent=2, ensure_ascii=False))
        return

    print(process_template("reports/search.txt.jinja", results=results, term=term).strip())
