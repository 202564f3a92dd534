"""Tests for parse metrics collection."""

import json
import os
import sys
import tempfile
import unittest
from unittest.mock import patch

from jsoncomparison import NO_DIFF, Compare

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from jsonexplorer.metrics import (
    JsonParseError, MemoryProbe, ParseMetrics, TracemallocProbe, collect_metrics, count_nodes,
    get_max_depth, get_type_distribution, load_metrics, parse_json_with_metrics, print_stats,
    save_metrics
)


class FixedProbe(MemoryProbe):
    """Reports a fixed allocation size."""
    active = True

    def __init__(self, allocated):
        self.allocated = allocated
        self.started = False

    def start(self):
        self.started = True

    def stop(self):
        return self.allocated


class TestTraversals(unittest.TestCase):
    """Test cases for node count, depth and type distribution."""

    def test_node_count_and_depth(self):
        data = json.loads('{"a":[1,2,3]}')
        self.assertEqual(count_nodes(data), 5)
        self.assertEqual(get_max_depth(data), 2)

    def test_scalar_root(self):
        self.assertEqual(count_nodes(7), 1)
        self.assertEqual(get_max_depth(7), 0)
        self.assertEqual(get_type_distribution(None), {"null": 1})

    def test_empty_containers_count(self):
        self.assertEqual(count_nodes({"a": {}, "b": []}), 3)
        self.assertEqual(get_max_depth({"a": {}, "b": []}), 1)

    def test_type_distribution(self):
        data = json.loads('{"s": "x", "n": 1, "f": 1.5, "b": false, "z": null, "a": [{}]}')
        expected = {"object": 2, "string": 1, "number": 2, "boolean": 1, "null": 1, "array": 1}
        diff = Compare().check(get_type_distribution(data), expected)
        self.assertEqual(diff, NO_DIFF)

    def test_deep_nesting(self):
        data = 0
        for _ in range(10000):
            data = {"k": data}
        self.assertEqual(count_nodes(data), 10001)
        self.assertEqual(get_max_depth(data), 10000)

    def test_aliased_containers_terminate(self):
        data = {"x": [1]}
        data["self"] = data
        self.assertEqual(count_nodes(data), 4)
        self.assertEqual(get_type_distribution(data), {"object": 2, "array": 1, "number": 1})


class TestCollectMetrics(unittest.TestCase):
    """Test cases for the parse and measure pass."""

    def test_metrics_record(self):
        raw_text = '{"a":[1,2,3]}'
        data, metrics = collect_metrics(raw_text, memory_probe=FixedProbe(3 * 1024 * 1024))
        self.assertEqual(data, {"a": [1, 2, 3]})
        self.assertEqual(metrics.node_count, 5)
        self.assertEqual(metrics.max_depth, 2)
        self.assertEqual(metrics.character_count, len(raw_text))
        self.assertEqual(metrics.file_size_kb, 0)
        self.assertEqual(metrics.memory_usage_mb, 3)
        self.assertGreaterEqual(metrics.parse_time_ms, 0)
        self.assertEqual(metrics.type_distribution, {"object": 1, "array": 1, "number": 3})

    def test_size_counts_utf8_bytes(self):
        raw_text = json.dumps("é" * 1024, ensure_ascii=False)
        _, metrics = collect_metrics(raw_text, memory_probe=MemoryProbe())
        self.assertEqual(metrics.character_count, 1026)
        self.assertEqual(metrics.file_size_kb, 2)
        self.assertEqual(metrics.memory_usage_mb, 0)

    def test_default_probe(self):
        _, metrics = collect_metrics('[1, 2]')
        self.assertGreaterEqual(metrics.memory_usage_mb, 0)

    def test_tracemalloc_probe_leaves_tracing_off(self):
        import tracemalloc
        probe = TracemallocProbe()
        probe.start()
        allocated = probe.stop()
        self.assertGreaterEqual(allocated, 0)
        self.assertFalse(tracemalloc.is_tracing())

    def test_malformed_json(self):
        probe = FixedProbe(0)
        with self.assertRaises(JsonParseError) as context:
            collect_metrics('{"a": [1, 2', memory_probe=probe)
        self.assertEqual(context.exception.line, 1)
        self.assertTrue(context.exception.message)
        self.assertFalse(probe.started)

    def test_non_finite_constants_are_rejected(self):
        for raw_text in ['{"a": NaN}', '[Infinity]', '-Infinity']:
            with self.subTest(raw_text=raw_text):
                with self.assertRaises(JsonParseError) as context:
                    collect_metrics(raw_text, memory_probe=MemoryProbe())
                self.assertIn("Invalid constant", context.exception.message)

    def test_oversized_integer_literal(self):
        with self.assertRaises(JsonParseError):
            collect_metrics('[' + '1' * 5000 + ']', memory_probe=MemoryProbe())

    def test_inactive_probe_is_not_started(self):
        probe = FixedProbe(1024 * 1024)
        probe.active = False
        _, metrics = collect_metrics('[1]', memory_probe=probe)
        self.assertFalse(probe.started)
        self.assertEqual(metrics.memory_usage_mb, 0)

    def test_host_tracing_peak_is_preserved(self):
        import tracemalloc
        tracemalloc.start()
        try:
            buffer = bytearray(4 * 1024 * 1024)
            del buffer
            _, peak_before = tracemalloc.get_traced_memory()
            collect_metrics('{"a": [1, 2, 3]}')
            _, peak_after = tracemalloc.get_traced_memory()
            self.assertTrue(tracemalloc.is_tracing())
        finally:
            tracemalloc.stop()
        self.assertGreaterEqual(peak_after, peak_before)

    def test_metrics_are_immutable(self):
        _, metrics = collect_metrics('{}', memory_probe=MemoryProbe())
        with self.assertRaises(Exception):
            metrics.node_count = 10

    def test_parse_json_with_metrics(self):
        result = parse_json_with_metrics('[true]')
        self.assertEqual(result['data'], [True])
        self.assertIsInstance(result['metrics'], ParseMetrics)


class TestMetricsPersistence(unittest.TestCase):
    """Test cases for saving and loading the metrics record."""

    def test_round_trip(self):
        metrics = ParseMetrics(12, 1, 900, 40, 3, 0, {"object": 10, "string": 30})
        with tempfile.TemporaryDirectory() as temp_dir:
            metrics_file = os.path.join(temp_dir, 'stats', 'metrics.json')
            save_metrics(metrics, metrics_file)
            with open(metrics_file, 'r', encoding='utf-8') as f:
                record = json.load(f)
            expected = {
                "parseTime": 12, "fileSize": 1, "characterCount": 900, "nodeCount": 40,
                "maxDepth": 3, "memoryUsage": 0, "typeDistribution": {"object": 10, "string": 30}
            }
            self.assertEqual(Compare().check(record, expected), NO_DIFF)
            self.assertEqual(load_metrics(metrics_file), metrics)

    def test_print_stats(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            json_file = os.path.join(temp_dir, 'data.json')
            metrics_file = os.path.join(temp_dir, 'metrics.json')
            with open(json_file, 'w', encoding='utf-8') as f:
                json.dump({"a": [1, 2, 3]}, f)

            with patch('builtins.print') as mock_print:
                print_stats(json_file, metrics_out=metrics_file)

            output = mock_print.call_args[0][0]
            self.assertIn("5 nodes • 2 levels deep", output)
            self.assertIn("number", output)
            self.assertIn("60.0%", output)
            self.assertEqual(load_metrics(metrics_file).node_count, 5)


if __name__ == '__main__':
    unittest.main()
