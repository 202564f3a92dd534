"""Parses JSON text and measures the parsed document.

The parse is the only step that can fail; malformed text raises
JsonParseError. The node count, depth and type distribution are computed
with explicit stacks so deeply nested documents do not exhaust the Python
call stack.
"""

import json
import logging
import os
import time
import tracemalloc
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from jsonexplorer.common import process_template
from jsonexplorer.jsontypes import JsonNode, classify, is_container

logger = logging.getLogger(__name__)

# Keys of the persisted metrics record
_RECORD_KEYS = {
    'parse_time_ms': 'parseTime',
    'file_size_kb': 'fileSize',
    'character_count': 'characterCount',
    'node_count': 'nodeCount',
    'max_depth': 'maxDepth',
    'memory_usage_mb': 'memoryUsage',
    'type_distribution': 'typeDistribution',
}


class JsonParseError(ValueError):
    """
    Exception raised when the input is not well-formed JSON.

    Attributes:
        message: The decoder's description of the syntax error
        line: 1-based line of the error, if known
        column: 1-based column of the error, if known
    """

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        self.message = message
        self.line = line
        self.column = column
        full_message = message
        if line is not None:
            full_message = f"{message} (line {line}, column {column})"
        super().__init__(full_message)


@dataclass(frozen=True)
class ParseMetrics:
    """Measurements taken once per successful parse."""
    parse_time_ms: int
    file_size_kb: int
    character_count: int
    node_count: int
    max_depth: int
    memory_usage_mb: int
    type_distribution: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Returns the record with the field names used by the stats view."""
        return {_RECORD_KEYS[k]: v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> 'ParseMetrics':
        names = {v: k for k, v in _RECORD_KEYS.items()}
        return cls(**{names[k]: v for k, v in record.items() if k in names})


class MemoryProbe:
    """Measures memory allocated while a block of code runs.

    The default implementation reports nothing; hosts without memory
    introspection use it as is. Inactive probes are never started, so the
    document is parsed only once.
    """
    active = False

    def start(self) -> None:
        pass

    def stop(self) -> int:
        """Returns the number of bytes allocated since ``start``."""
        return 0


class TracemallocProbe(MemoryProbe):
    """Reports the allocation traced between ``start`` and ``stop``.

    When the probe starts tracing itself it reports the peak. When the host
    is already tracing, its peak is left alone and the growth of current
    traced memory is reported instead.
    """
    active = True

    def __init__(self):
        self._owns_trace = False
        self._baseline = 0

    def start(self) -> None:
        self._owns_trace = not tracemalloc.is_tracing()
        if self._owns_trace:
            tracemalloc.start()
        self._baseline, _ = tracemalloc.get_traced_memory()

    def stop(self) -> int:
        current, peak = tracemalloc.get_traced_memory()
        if self._owns_trace:
            tracemalloc.stop()
            return max(0, peak - self._baseline)
        return max(0, current - self._baseline)


def count_nodes(data: JsonNode) -> int:
    """Counts every value in the document: scalars, arrays and objects alike."""
    count = 0
    stack = [data]
    visited = set()

    while stack:
        current = stack.pop()
        count += 1
        if is_container(current):
            if id(current) in visited:
                continue
            visited.add(id(current))
            stack.extend(current.values() if isinstance(current, dict) else current)

    return count


def get_max_depth(data: JsonNode) -> int:
    """Returns the greatest nesting depth reached; the root is depth 0."""
    max_depth = 0
    stack: List[Tuple[Any, int]] = [(data, 0)]
    visited = set()

    while stack:
        current, depth = stack.pop()
        if depth > max_depth:
            max_depth = depth
        if is_container(current):
            if id(current) in visited:
                continue
            visited.add(id(current))
            values = current.values() if isinstance(current, dict) else current
            stack.extend((value, depth + 1) for value in values)

    return max_depth


def get_type_distribution(data: JsonNode) -> Dict[str, int]:
    """Counts the values of each plain type tag."""
    distribution: Dict[str, int] = {}
    stack = [data]
    visited = set()

    while stack:
        current = stack.pop()
        type_tag = classify(current)
        distribution[type_tag] = distribution.get(type_tag, 0) + 1
        if is_container(current):
            if id(current) in visited:
                continue
            visited.add(id(current))
            stack.extend(current.values() if isinstance(current, dict) else current)

    return distribution


def _reject_constant(name: str) -> None:
    raise JsonParseError(f"Invalid constant {name}")


def parse_json(raw_text: str) -> JsonNode:
    """Parses RFC 8259 JSON text, raising JsonParseError on malformed input.

    ``NaN`` and ``Infinity`` are rejected, and so are number literals the
    interpreter refuses to convert.
    """
    try:
        return json.loads(raw_text, parse_constant=_reject_constant)
    except JsonParseError:
        raise
    except json.JSONDecodeError as e:
        raise JsonParseError(e.msg, e.lineno, e.colno) from e
    except ValueError as e:
        raise JsonParseError(str(e)) from e
    except RecursionError as e:
        raise JsonParseError("Document is nested too deeply") from e


def collect_metrics(raw_text: str, memory_probe: Optional[MemoryProbe] = None) -> Tuple[JsonNode, ParseMetrics]:
    """Parses JSON text and measures the result.

    Args:
        raw_text: The JSON document text
        memory_probe: Measures allocation during the parse; defaults to a
            tracemalloc based probe

    Returns:
        Tuple of (parsed value, ParseMetrics)

    Raises:
        JsonParseError: If the text is not well-formed JSON
    """
    probe = memory_probe if memory_probe is not None else TracemallocProbe()

    start_time = time.perf_counter()
    data = parse_json(raw_text)
    end_time = time.perf_counter()

    # Memory is measured on a separate parse, outside the timed window
    allocated = 0
    if probe.active:
        probe.start()
        try:
            measured = parse_json(raw_text)
        finally:
            allocated = probe.stop()
        del measured

    metrics = ParseMetrics(
        parse_time_ms=round((end_time - start_time) * 1000),
        file_size_kb=round(len(raw_text.encode('utf-8')) / 1024),
        character_count=len(raw_text),
        node_count=count_nodes(data),
        max_depth=get_max_depth(data),
        memory_usage_mb=round(allocated / 1024 / 1024),
        type_distribution=get_type_distribution(data),
    )
    logger.debug("Parsed %d characters into %d nodes (depth %d) in %d ms",
                 metrics.character_count, metrics.node_count, metrics.max_depth, metrics.parse_time_ms)
    return data, metrics


def parse_json_with_metrics(raw_text: str) -> Dict[str, Any]:
    """Parses JSON text and returns ``{'data': ..., 'metrics': ParseMetrics}``."""
    data, metrics = collect_metrics(raw_text)
    return {'data': data, 'metrics': metrics}


def save_metrics(metrics: ParseMetrics, metrics_file: str) -> None:
    """Writes the metrics record as JSON so a later session can display it."""
    output_dir = os.path.dirname(metrics_file)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)

    with open(metrics_file, 'w', encoding='utf-8') as f:
        json.dump(metrics.to_dict(), f, indent=2)


def load_metrics(metrics_file: str) -> ParseMetrics:
    """Reads a metrics record written by ``save_metrics``."""
    with open(metrics_file, 'r', encoding='utf-8') as f:
        return ParseMetrics.from_dict(json.load(f))


# Command entry point for the jsonexplorer CLI
def print_stats(input: str, metrics_out: Optional[str] = None) -> None:
    """Parses a JSON file and prints its metrics.

    Args:
        input: Path to the JSON document
        metrics_out: Optional path to persist the metrics record
    """
    with open(input, 'r', encoding='utf-8') as f:
        raw_text = f.read()

    _, metrics = collect_metrics(raw_text)

    distribution = sorted(metrics.type_distribution.items(), key=lambda item: -item[1])
    print(process_template("reports/stats.txt.jinja", metrics=metrics, distribution=distribution).strip())

    if metrics_out:
        save_metrics(metrics, metrics_out)
