"""Validates JSON values against JSON Schema documents.

This module implements a recursive-descent validator for a subset of the
Draft-07 vocabulary:
- type (including the integer/number distinction and type lists)
- required, properties, additionalProperties
- items, minItems, maxItems, uniqueItems
- minLength, maxLength, pattern, format (email, uri, date, date-time, uuid)
- minimum, maximum, exclusiveMinimum, exclusiveMaximum, multipleOf
- enum, const
- oneOf, anyOf, allOf

Violations never raise. They are collected as ValidationError records with
dot/bracket paths from the root ("" is the root, "a.b[2]" is nested).
"""

import datetime
import json
import logging
import re
import sys
from fractions import Fraction
from typing import Any, Callable, Dict, List, Set, Tuple, Union
from urllib.parse import urlparse

from jsonexplorer.common import process_template
from jsonexplorer.jsontypes import (
    INTEGER, NUMBER, JsonNode, canonical_json, classify, classify_schema,
    is_finite, is_integral, is_number, json_equal
)
from jsonexplorer.metrics import collect_metrics

logger = logging.getLogger(__name__)

SchemaNode = Union[Dict[str, Any], bool]

# Format predicates. Unknown format names have no predicate and always pass.
_EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_URI_SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+\-.]*$')
_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$', re.IGNORECASE
)

# Relative tolerance for float quotients in multipleOf.
MULTIPLE_OF_EPSILON = 1e-9


def _is_email(value: str) -> bool:
    return bool(_EMAIL_PATTERN.match(value))


def _is_uri(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    if not parsed.scheme or not _URI_SCHEME_PATTERN.match(parsed.scheme):
        return False
    return bool(parsed.netloc or parsed.path or parsed.query or parsed.fragment)


def _is_date(value: str) -> bool:
    if not _DATE_PATTERN.match(value):
        return False
    try:
        datetime.date.fromisoformat(value)
        return True
    except ValueError:
        return False


def _is_date_time(value: str) -> bool:
    text = value.strip()
    if not text:
        return False
    if text[-1] in 'zZ':
        text = text[:-1] + '+00:00'
    try:
        datetime.datetime.fromisoformat(text)
        return True
    except ValueError:
        return False


def _is_uuid(value: str) -> bool:
    return bool(_UUID_PATTERN.match(value))


FORMAT_VALIDATORS: Dict[str, Callable[[str], bool]] = {
    'email': _is_email,
    'uri': _is_uri,
    'date': _is_date,
    'date-time': _is_date_time,
    'uuid': _is_uuid,
}


def _fmt(value: Any) -> str:
    """Renders a value for an error message the way it reads in JSON text."""
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return f"<{type(value).__name__}>"


def _key_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _index_path(path: str, index: int) -> str:
    return f"{path}[{index}]"


class ValidationError:
    """A single schema violation.

    Attributes:
        path: Dot/bracket path of the offending value ("" for the root)
        message: Human-readable description with expected and actual values
        value: The offending value; None for missing properties
        missing: True when the error reports an absent property
    """

    def __init__(self, path: str, message: str, value: Any = None, missing: bool = False):
        self.path = path
        self.message = message
        self.value = value
        self.missing = missing

    def to_dict(self) -> Dict[str, Any]:
        result = {'path': self.path, 'message': self.message}
        if not self.missing:
            result['value'] = self.value
        return result

    def __eq__(self, other) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return (self.path, self.message, self.missing) == (other.path, other.message, other.missing) \
            and json_equal(self.value, other.value)

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: {self.message}"

    def __repr__(self) -> str:
        return f"ValidationError(path={self.path!r}, message={self.message!r})"


class SchemaValidator:
    """Validates JSON values against a parsed JSON Schema document."""

    def __init__(self, schema: SchemaNode):
        """Initialize the validator.

        Args:
            schema: The parsed schema (an object, or a boolean schema)
        """
        self.schema = schema

    def validate(self, instance: JsonNode) -> List[ValidationError]:
        """Validates a value and returns every violation in validation order.

        Args:
            instance: The JSON value to validate

        Returns:
            List of ValidationError (empty if valid)
        """
        errors: List[ValidationError] = []
        self._check_node(instance, self.schema, '', errors, set())
        logger.debug("Validation finished with %d error(s)", len(errors))
        return errors

    def _check_node(self, value: Any, schema: Any, path: str,
                    errors: List[ValidationError], active: Set[Tuple[int, int]]) -> None:
        """Applies every constraint present on ``schema`` to ``value``.

        ``active`` holds the (value, schema) identity pairs on the current
        descent chain; re-entering a pair means the graph is aliased.
        """
        if schema is False:
            errors.append(ValidationError(path, "Schema false does not allow any value", value))
            return
        if not isinstance(schema, dict):
            return

        marker = (id(value), id(schema))
        if marker in active:
            logger.debug("Skipping revisited node at '%s'", path)
            return
        active.add(marker)
        try:
            self._check_constraints(value, schema, path, errors, active)
        finally:
            active.discard(marker)

    def _check_constraints(self, value: Any, schema: Dict[str, Any], path: str,
                           errors: List[ValidationError], active: Set[Tuple[int, int]]) -> None:
        if 'type' in schema and not self._check_type(value, schema['type'], path, errors):
            return

        is_object = isinstance(value, dict)
        is_array = isinstance(value, list)

        required = schema.get('required')
        if isinstance(required, list) and is_object:
            for prop in required:
                if isinstance(prop, str) and prop not in value:
                    errors.append(ValidationError(
                        _key_path(path, prop), f"Missing required property: {prop}", missing=True))

        properties = schema.get('properties')
        if isinstance(properties, dict) and is_object:
            for prop, prop_schema in properties.items():
                if prop in value:
                    self._check_node(value[prop], prop_schema, _key_path(path, prop), errors, active)

            if schema.get('additionalProperties') is False:
                allowed = set(properties.keys())
                for key in value:
                    if key not in allowed:
                        errors.append(ValidationError(
                            _key_path(path, key), f"Additional property not allowed: {key}", value[key]))

        if is_array:
            items = schema.get('items')
            if isinstance(items, (dict, bool)):
                for index, item in enumerate(value):
                    self._check_node(item, items, _index_path(path, index), errors, active)
            self._check_array(value, schema, path, errors)

        if isinstance(value, str):
            self._check_string(value, schema, path, errors)

        if is_finite(value):
            self._check_number(value, schema, path, errors)

        if isinstance(schema.get('enum'), list):
            candidates = schema['enum']
            if not any(json_equal(value, candidate) for candidate in candidates):
                listed = ', '.join(_fmt(c) for c in candidates)
                errors.append(ValidationError(
                    path, f"Value must be one of: {listed}. Got: {_fmt(value)}", value))

        if 'const' in schema and not json_equal(value, schema['const']):
            errors.append(ValidationError(
                path, f"Value must be exactly: {_fmt(schema['const'])}. Got: {_fmt(value)}", value))

        if isinstance(schema.get('oneOf'), list):
            matched = self._count_matches(value, schema['oneOf'], path, active)
            if matched != 1:
                errors.append(ValidationError(
                    path, f"Data must match exactly one schema. Matched {matched} schemas.", value))

        if isinstance(schema.get('anyOf'), list):
            matched = self._count_matches(value, schema['anyOf'], path, active)
            if matched == 0:
                errors.append(ValidationError(
                    path, "Data must match at least one schema. Matched 0 schemas.", value))

        if isinstance(schema.get('allOf'), list):
            for sub_schema in schema['allOf']:
                self._check_node(value, sub_schema, path, errors, active)

    def _check_type(self, value: Any, expected: Any, path: str, errors: List[ValidationError]) -> bool:
        """Checks the ``type`` keyword. Returns False when the node failed and
        no further constraints should run on it."""
        if isinstance(expected, list):
            if any(self._type_matches(value, name) for name in expected):
                return True
            names = ' or '.join(str(name) for name in expected)
            errors.append(ValidationError(
                path, f"Expected type {names}, got {classify_schema(value)}", value))
            return False

        if expected == INTEGER:
            if not is_number(value):
                message = f"Expected integer, got {classify_schema(value)}"
            elif not is_finite(value):
                message = f"Expected finite integer, got {_fmt(value)}"
            elif not is_integral(value):
                message = f"Expected integer, got decimal number {_fmt(value)}"
            else:
                return True
            errors.append(ValidationError(path, message, value))
            return False

        if expected == NUMBER:
            if not is_number(value):
                message = f"Expected number, got {classify_schema(value)}"
            elif not is_finite(value):
                message = f"Expected finite number, got {_fmt(value)}"
            else:
                return True
            errors.append(ValidationError(path, message, value))
            return False

        if classify(value) != expected:
            errors.append(ValidationError(
                path, f"Expected type {expected}, got {classify_schema(value)}", value))
            return False
        return True

    @staticmethod
    def _type_matches(value: Any, name: Any) -> bool:
        if name == INTEGER:
            return is_integral(value)
        if name == NUMBER:
            return is_finite(value)
        return classify(value) == name

    def _check_array(self, value: List[Any], schema: Dict[str, Any], path: str,
                     errors: List[ValidationError]) -> None:
        min_items = schema.get('minItems')
        if is_number(min_items) and len(value) < min_items:
            errors.append(ValidationError(
                path, f"Array too short. Minimum items: {_fmt(min_items)}, got {len(value)}", value))

        max_items = schema.get('maxItems')
        if is_number(max_items) and len(value) > max_items:
            errors.append(ValidationError(
                path, f"Array too long. Maximum items: {_fmt(max_items)}, got {len(value)}", value))

        if schema.get('uniqueItems') is True:
            seen = set()
            duplicates = []
            for index, item in enumerate(value):
                key = canonical_json(item)
                if key in seen:
                    duplicates.append(index)
                else:
                    seen.add(key)
            if duplicates:
                indices = ', '.join(str(i) for i in duplicates)
                errors.append(ValidationError(
                    path, f"Array items must be unique. Duplicate items at indices: {indices}", value))

    def _check_string(self, value: str, schema: Dict[str, Any], path: str,
                      errors: List[ValidationError]) -> None:
        min_length = schema.get('minLength')
        if is_number(min_length) and len(value) < min_length:
            errors.append(ValidationError(
                path, f"String too short. Minimum length: {_fmt(min_length)}, got {len(value)}", value))

        max_length = schema.get('maxLength')
        if is_number(max_length) and len(value) > max_length:
            errors.append(ValidationError(
                path, f"String too long. Maximum length: {_fmt(max_length)}, got {len(value)}", value))

        pattern = schema.get('pattern')
        if isinstance(pattern, str):
            try:
                regex = re.compile(pattern)
            except re.error as e:
                logger.warning("Invalid regex pattern %r at '%s': %s", pattern, path, e)
                errors.append(ValidationError(path, f"Invalid regex pattern: {pattern}", pattern))
            else:
                if not regex.search(value):
                    errors.append(ValidationError(
                        path, f"String does not match pattern: {pattern}", value))

        fmt = schema.get('format')
        predicate = FORMAT_VALIDATORS.get(fmt) if isinstance(fmt, str) else None
        if predicate is not None and not predicate(value):
            errors.append(ValidationError(path, f"String does not match format: {fmt}", value))

    def _check_number(self, value: Union[int, float], schema: Dict[str, Any], path: str,
                      errors: List[ValidationError]) -> None:
        minimum = schema.get('minimum')
        if is_number(minimum) and value < minimum:
            errors.append(ValidationError(
                path, f"Number too small. Minimum: {_fmt(minimum)}, got {_fmt(value)}", value))

        maximum = schema.get('maximum')
        if is_number(maximum) and value > maximum:
            errors.append(ValidationError(
                path, f"Number too large. Maximum: {_fmt(maximum)}, got {_fmt(value)}", value))

        exclusive_minimum = schema.get('exclusiveMinimum')
        if is_number(exclusive_minimum) and value <= exclusive_minimum:
            errors.append(ValidationError(
                path, f"Number must be greater than {_fmt(exclusive_minimum)}, got {_fmt(value)}", value))

        exclusive_maximum = schema.get('exclusiveMaximum')
        if is_number(exclusive_maximum) and value >= exclusive_maximum:
            errors.append(ValidationError(
                path, f"Number must be less than {_fmt(exclusive_maximum)}, got {_fmt(value)}", value))

        multiple_of = schema.get('multipleOf')
        if is_number(multiple_of) and multiple_of > 0 and not _is_multiple(value, multiple_of):
            errors.append(ValidationError(
                path, f"Number must be a multiple of {_fmt(multiple_of)}, got {_fmt(value)}", value))

    def _count_matches(self, value: Any, sub_schemas: List[Any], path: str,
                       active: Set[Tuple[int, int]]) -> int:
        """Counts the subschemas that accept ``value``, each checked with its own error list."""
        matched = 0
        for sub_schema in sub_schemas:
            sub_errors: List[ValidationError] = []
            self._check_node(value, sub_schema, path, sub_errors, active)
            if not sub_errors:
                matched += 1
        return matched


def _is_multiple(value: Union[int, float], multiple_of: Union[int, float]) -> bool:
    if isinstance(value, int) and isinstance(multiple_of, int):
        return value % multiple_of == 0
    try:
        quotient = value / multiple_of
    except OverflowError:
        return (Fraction(value) / Fraction(multiple_of)).denominator == 1
    if quotient in (float('inf'), float('-inf')):
        return False
    return abs(quotient - round(quotient)) <= MULTIPLE_OF_EPSILON * max(1.0, abs(quotient))


def validate_json_schema(instance: JsonNode, schema_text: Union[str, SchemaNode]) -> List[ValidationError]:
    """Validates a JSON value against schema text.

    Args:
        instance: The parsed JSON value
        schema_text: The schema as JSON text (an already parsed schema is accepted too)

    Returns:
        List of ValidationError. A schema that cannot be parsed yields a single
        error at path "schema" and nothing else is checked.
    """
    if isinstance(schema_text, str):
        try:
            schema = json.loads(schema_text)
        except json.JSONDecodeError as e:
            logger.warning("Schema is not valid JSON: %s", e)
            return [ValidationError('schema', "Invalid schema format", schema_text)]
    else:
        schema = schema_text

    if not isinstance(schema, (dict, bool)):
        logger.warning("Schema must be an object or a boolean, got %s", classify(schema))
        return [ValidationError('schema', "Invalid schema format", schema_text)]

    return SchemaValidator(schema).validate(instance)


# Command entry point for the jsonexplorer CLI
def validate(input: str, schema: str, quiet: bool = False) -> None:
    """Validates a JSON file against a JSON Schema file.

    Args:
        input: Path to the JSON document
        schema: Path to the schema document
        quiet: Suppress output, exit with code 0 if valid, 1 if invalid
    """
    with open(input, 'r', encoding='utf-8') as f:
        data, _ = collect_metrics(f.read())
    with open(schema, 'r', encoding='utf-8') as f:
        schema_text = f.read()

    errors = validate_json_schema(data, schema_text)
    if not quiet:
        print(process_template("reports/validation.txt.jinja", errors=errors).strip())

    if errors:
        sys.exit(1)
