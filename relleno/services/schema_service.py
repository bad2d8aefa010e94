"""JSON Schema compilation and document validation.

Compilation is the gate every document write passes through: the schema is
checked against its metaschema and every ``$ref`` in it must resolve locally.
Remote retrieval is disabled, so a schema pointing at a remote document is
rejected when it is compiled rather than when a document is validated.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft202012Validator, validators
from jsonschema.exceptions import SchemaError as JsonSchemaError
from jsonschema.exceptions import ValidationError as JsonValidationError
from jsonschema.protocols import Validator
from referencing import Registry, Resource, Specification
from referencing.exceptions import NoSuchResource, Unresolvable
from referencing.jsonschema import DRAFT202012, specification_with

from relleno.core.errors import DocumentValidationError, SchemaError, ValidationIssue
from relleno.core.json_values import canonical_json, json_pointer, non_finite_paths

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 128

# Keywords whose values are data, not subschemas.
_DATA_KEYWORDS = frozenset({"const", "enum", "examples", "default"})

# Keywords whose values map arbitrary names to subschemas.
_SCHEMA_MAPS = frozenset({"properties", "patternProperties", "$defs", "definitions", "dependentSchemas"})


def _no_remote_retrieval(uri: str) -> Resource[Any]:
    raise NoSuchResource(ref=uri)


@dataclass(frozen=True)
class CompiledSchema:
    """A schema that passed compilation, ready to validate documents."""

    schema: Any
    fingerprint: str
    validator: Validator

    def iter_errors(self, document: Any) -> Iterator[JsonValidationError]:
        return self.validator.iter_errors(document)


class SchemaValidator:
    """Compile schemas and validate documents against them.

    Compiled schemas are kept in a small LRU cache keyed by the hash of the
    schema's canonical JSON; compilation of the same schema always yields an
    equivalent validator so caching never changes results.
    """

    def __init__(self, cache_size: int = DEFAULT_CACHE_SIZE) -> None:
        self._cache: OrderedDict[str, CompiledSchema] = OrderedDict()
        self._cache_size = cache_size
        self._cache_lock = threading.Lock()
        self._registry: Registry[Any] = Registry(retrieve=_no_remote_retrieval)  # type: ignore[call-arg]

    def compile(self, schema: Any) -> CompiledSchema:
        """Compile a schema given as JSON text or an already parsed value.

        Raises:
            SchemaError: If the schema is not valid JSON, not a JSON Schema,
                or contains a ``$ref`` that cannot be resolved
        """
        if isinstance(schema, (str, bytes)):
            try:
                schema = json.loads(schema)
            except ValueError as exc:
                raise SchemaError(f"Schema is not valid JSON: {exc}") from exc

        if not isinstance(schema, (dict, bool)):
            raise SchemaError(f"Schema must be a JSON object or boolean, got {type(schema).__name__}")

        try:
            fingerprint = hashlib.sha256(canonical_json(schema).encode("utf-8")).hexdigest()
        except (TypeError, ValueError) as exc:
            raise SchemaError(f"Schema is not serializable as JSON: {exc}") from exc

        with self._cache_lock:
            cached = self._cache.get(fingerprint)
            if cached is not None:
                self._cache.move_to_end(fingerprint)
                return cached

        compiled = self._build(schema, fingerprint)

        with self._cache_lock:
            self._cache[fingerprint] = compiled
            self._cache.move_to_end(fingerprint)
            while len(self._cache) > self._cache_size:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug("Evicted compiled schema %s from cache", evicted[:12])
        return compiled

    def validate(self, compiled: CompiledSchema, document: Any) -> None:
        """Validate a document.

        Raises:
            DocumentValidationError: With every failing assertion, in a stable order
        """
        issues = [
            ValidationIssue(keyword="type", path=path, schema_path="", message="NaN and Infinity are not JSON numbers")
            for path in non_finite_paths(document)
        ]
        issues += [
            ValidationIssue(
                keyword=str(error.validator) if error.validator is not None else "false",
                path=json_pointer(list(error.absolute_path)),
                schema_path=json_pointer(list(error.absolute_schema_path)),
                message=error.message,
            )
            for error in compiled.iter_errors(document)
        ]
        if issues:
            issues.sort(key=lambda i: (i.path, i.keyword, i.schema_path, i.message))
            raise DocumentValidationError(issues)

    def check(self, schema: Any, document: Any) -> CompiledSchema:
        """Compile ``schema`` and validate ``document`` against it."""
        compiled = self.compile(schema)
        self.validate(compiled, document)
        return compiled

    def _build(self, schema: dict[str, Any] | bool, fingerprint: str) -> CompiledSchema:
        validator_cls = validators.validator_for(schema, default=Draft202012Validator)
        try:
            validator_cls.check_schema(schema)
        except JsonSchemaError as exc:
            location = json_pointer(list(exc.absolute_path)) or "/"
            raise SchemaError(f"Invalid JSON Schema at '{location}': {exc.message}") from exc

        registry = self._registry
        if isinstance(schema, dict):
            specification = specification_with(str(schema.get("$schema", "")), default=DRAFT202012)
            resource = specification.create_resource(schema)
            base_uri = resource.id() or ""
            registry = registry.with_resource(uri=base_uri, resource=resource)
            self._check_refs(schema, registry.resolver(base_uri=base_uri), specification)

        validator = validator_cls(schema, registry=registry)
        logger.debug("Compiled schema %s with %s", fingerprint[:12], validator_cls.__name__)
        return CompiledSchema(schema=schema, fingerprint=fingerprint, validator=validator)

    def _check_refs(self, node: Any, resolver: Any, specification: Specification[Any]) -> None:
        """Resolve every ``$ref``/``$dynamicRef`` reachable from ``node``."""
        if isinstance(node, list):
            for item in node:
                self._check_refs(item, resolver, specification)
            return
        if not isinstance(node, dict):
            return

        if isinstance(node.get("$id"), str):
            resolver = resolver.in_subresource(specification.create_resource(node))

        for keyword in ("$ref", "$dynamicRef"):
            ref = node.get(keyword)
            if isinstance(ref, str):
                try:
                    resolver.lookup(ref)
                except Unresolvable as exc:
                    raise SchemaError(f"Unresolvable reference '{ref}': {exc}") from exc

        for key, value in node.items():
            if key in _DATA_KEYWORDS:
                continue
            if key in _SCHEMA_MAPS:
                if isinstance(value, dict):
                    for sub in value.values():
                        self._check_refs(sub, resolver, specification)
                continue
            if isinstance(value, (dict, list)):
                self._check_refs(value, resolver, specification)


__all__ = ["CompiledSchema", "SchemaValidator", "canonical_json", "json_pointer"]
