"""Tests for the JSON value type model."""

import json
import os
import sys
import unittest

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from jsonexplorer.jsontypes import (
    TYPE_TAGS, canonical_json, children, classify, classify_schema, json_equal, to_json_text
)


class TestClassify(unittest.TestCase):
    """Test cases for the plain and schema classifiers."""

    def test_plain_tags(self):
        self.assertEqual(classify(None), 'null')
        self.assertEqual(classify(True), 'boolean')
        self.assertEqual(classify(False), 'boolean')
        self.assertEqual(classify(3), 'number')
        self.assertEqual(classify(3.5), 'number')
        self.assertEqual(classify("x"), 'string')
        self.assertEqual(classify([]), 'array')
        self.assertEqual(classify({}), 'object')

    def test_schema_classifier_distinguishes_integers(self):
        self.assertEqual(classify_schema(5), 'integer')
        self.assertEqual(classify_schema(5.0), 'integer')
        self.assertEqual(classify_schema(5.5), 'number')
        self.assertEqual(classify_schema(float('inf')), 'number')
        self.assertEqual(classify_schema(float('nan')), 'number')
        self.assertEqual(classify_schema(True), 'boolean')

    def test_classifiers_agree_except_on_integral_numbers(self):
        """Every node of a parsed document gets one tag; the two classifiers differ only on integers."""
        data = json.loads('{"a": [1, 2.5, "s", null, true, {"b": []}], "c": -0.0}')
        stack = [data]
        while stack:
            current = stack.pop()
            plain = classify(current)
            schema = classify_schema(current)
            self.assertIn(plain, TYPE_TAGS)
            self.assertIn(schema, TYPE_TAGS)
            if plain != schema:
                self.assertEqual((plain, schema), ('number', 'integer'))
            stack.extend(value for _, value in children(current))

    def test_rejects_non_json_values(self):
        with self.assertRaises(TypeError):
            classify(object())


class TestStructuralEquality(unittest.TestCase):
    """Test cases for deep equality and canonical serialization."""

    def test_key_order_does_not_matter(self):
        self.assertTrue(json_equal({"a": 1, "b": [1, 2]}, {"b": [1, 2], "a": 1}))
        self.assertEqual(canonical_json({"a": 1, "b": 2}), canonical_json({"b": 2, "a": 1}))

    def test_array_order_matters(self):
        self.assertFalse(json_equal([1, 2], [2, 1]))

    def test_booleans_are_not_numbers(self):
        self.assertFalse(json_equal(True, 1))
        self.assertFalse(json_equal(0, False))
        self.assertNotEqual(canonical_json(True), canonical_json(1))

    def test_integral_floats_equal_integers(self):
        self.assertTrue(json_equal(1, 1.0))
        self.assertEqual(canonical_json({"n": 2.0}), canonical_json({"n": 2}))

    def test_null_and_strings(self):
        self.assertTrue(json_equal(None, None))
        self.assertFalse(json_equal(None, "null"))
        self.assertFalse(json_equal("1", 1))

    def test_to_json_text(self):
        self.assertEqual(to_json_text("plain"), "plain")
        self.assertEqual(to_json_text(True), "true")
        self.assertEqual(to_json_text(None), "null")
        self.assertEqual(to_json_text(42), "42")
        self.assertEqual(to_json_text(1.0), "1")
        self.assertEqual(to_json_text(-0.0), "0")
        self.assertEqual(to_json_text(1e16), "10000000000000000")
        self.assertEqual(to_json_text(2.5), "2.5")


if __name__ == '__main__':
    unittest.main()
