# apiharness/schema_sampler.py
"""
Schema Sample Synthesizer

Turns JSON-Schema-like fragments (as found in OpenAPI documents) into
representative example values. This is a best-effort example generator,
not a validator: every lookup is tolerant and sampling never raises.

Two flavours share one walker:
- plain (``synthesize``): used when composing test cases. Strings fall back
  to "string", numbers to 123, unknown shapes to "value".
- detail (``detail_sample``): the richer endpoint-detail sample. Resolves
  local ``$ref``s, honours string formats / patterns and numeric bounds.

Features:
✅ Depth-first traversal in property declaration order
✅ oneOf / anyOf → first alternative
✅ $ref resolution against components.schemas with cycle guard
✅ Deterministic optional-property policy (all, or required only)
✅ Seeded Faker values for realistic samples
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Optional, Tuple

from faker import Faker

logger = logging.getLogger(__name__)

# ==================== Constants ====================

PLACEHOLDER_STRING = "string"
PLACEHOLDER_NUMBER = 123
PLACEHOLDER_VALUE = "value"

DETAIL_STRING = "string value"
DETAIL_INTEGER = 42
DETAIL_NUMBER = 42.5

DEFAULT_MAX_DEPTH = 10

REF_PREFIX = "#/components/schemas/"
REF_NOT_FOUND = "Reference not found"

FORMAT_SAMPLES: Dict[str, str] = {
    "date-time": "2023-01-01T12:00:00Z",
    "date": "2023-01-01",
    "uuid": "123e4567-e89b-12d3-a456-426614174000",
    "email": "user@example.com",
    "uri": "https://example.com",
}

_FAKER_FORMATS: Dict[str, Callable[[Faker], Any]] = {
    "date-time": lambda f: f.iso8601(),
    "date": lambda f: f.date(),
    "uuid": lambda f: f.uuid4(),
    "email": lambda f: f.email(),
    "uri": lambda f: f.url(),
    "url": lambda f: f.url(),
    "hostname": lambda f: f.hostname(),
    "ipv4": lambda f: f.ipv4(),
    "ipv6": lambda f: f.ipv6(),
}

# keyed by property name, lower-cased with "_" and "-" removed
_FAKER_NAMES: Dict[str, Callable[[Faker], Any]] = {
    "name": lambda f: f.name(),
    "fullname": lambda f: f.name(),
    "firstname": lambda f: f.first_name(),
    "lastname": lambda f: f.last_name(),
    "username": lambda f: f.user_name(),
    "email": lambda f: f.email(),
    "phone": lambda f: f.phone_number(),
    "phonenumber": lambda f: f.phone_number(),
    "address": lambda f: f.address(),
    "street": lambda f: f.street_address(),
    "city": lambda f: f.city(),
    "country": lambda f: f.country(),
    "postcode": lambda f: f.postcode(),
    "zipcode": lambda f: f.postcode(),
    "company": lambda f: f.company(),
    "url": lambda f: f.url(),
    "website": lambda f: f.url(),
    "description": lambda f: f.sentence(),
    "title": lambda f: f.sentence(nb_words=4),
}


# ==================== Sampler ====================

class SchemaSampler:
    """
    Configurable schema walker.

    Args:
        components: OpenAPI ``components`` mapping; enables ``$ref`` resolution
        detail: use the endpoint-detail fallbacks instead of the plain ones
        use_formats: honour string ``format`` hints (implied by ``detail``)
        include_optional: include properties not listed in ``required``
        realistic: draw string values from a seeded Faker instance
        seed: Faker seed; same seed gives the same sample
        max_depth: nesting limit; deeper fragments sample as ``None``
    """

    def __init__(
        self,
        components: Optional[Dict[str, Any]] = None,
        *,
        detail: bool = False,
        use_formats: Optional[bool] = None,
        include_optional: bool = True,
        realistic: bool = False,
        seed: Optional[int] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.components = components if isinstance(components, dict) else None
        self.detail = detail
        self.use_formats = detail if use_formats is None else use_formats
        self.include_optional = include_optional
        self.max_depth = max_depth
        self._faker: Optional[Faker] = None
        if realistic:
            self._faker = Faker()
            if seed is not None:
                self._faker.seed_instance(seed)

    # ==================== Public API ====================

    def synthesize(self, schema: Any) -> Any:
        if not isinstance(schema, dict):
            return None if self.detail else {}
        return self._sample(schema, depth=0, refs=(), prop_name=None)

    # ==================== Internals ====================

    def _sample(self, schema: Any, depth: int, refs: Tuple[str, ...], prop_name: Optional[str]) -> Any:
        if not isinstance(schema, dict):
            return None if self.detail else PLACEHOLDER_VALUE

        if depth > self.max_depth:
            logger.debug(f"Schema depth limit ({self.max_depth}) reached; sampling null")
            return None

        ref = schema.get("$ref")
        if isinstance(ref, str) and (self.components is not None or self.detail):
            return self._sample_ref(ref, depth, refs, prop_name)

        kind = self._schema_type(schema)

        if kind == "object":
            return self._sample_object(schema, depth, refs)
        if kind == "array":
            items = schema.get("items")
            return [self._sample(items if items is not None else {}, depth + 1, refs, prop_name)]
        if kind == "string":
            return self._sample_string(schema, prop_name)
        if kind in ("number", "integer"):
            return self._sample_number(schema, kind)
        if kind == "boolean":
            if "example" in schema:
                return schema["example"]
            return True

        alternatives = schema.get("oneOf") or schema.get("anyOf")
        if isinstance(alternatives, list) and alternatives:
            return self._sample(alternatives[0], depth + 1, refs, prop_name)

        if "example" in schema:
            return schema["example"]
        return None if self.detail else PLACEHOLDER_VALUE

    def _sample_ref(self, ref: str, depth: int, refs: Tuple[str, ...], prop_name: Optional[str]) -> Any:
        if ref in refs:
            logger.debug(f"Schema cycle through {ref}; sampling null")
            return None

        name = ref[len(REF_PREFIX):] if ref.startswith(REF_PREFIX) else ref
        target = resolve_ref(ref, self.components)
        if target is None:
            return {name: REF_NOT_FOUND}
        return self._sample(target, depth + 1, refs + (ref,), prop_name)

    def _sample_object(self, schema: Dict[str, Any], depth: int, refs: Tuple[str, ...]) -> Dict[str, Any]:
        props = schema.get("properties")
        if not isinstance(props, dict):
            return {}

        required = schema.get("required")
        required_set = set(required) if isinstance(required, list) else set()

        out: Dict[str, Any] = {}
        for name, prop in props.items():
            if not self.include_optional and name not in required_set:
                continue
            out[name] = self._sample(prop, depth + 1, refs, name)
        return out

    def _sample_string(self, schema: Dict[str, Any], prop_name: Optional[str]) -> Any:
        if "example" in schema:
            return schema["example"]

        fmt = schema.get("format")
        if self._faker is not None:
            fake = _FAKER_FORMATS.get(fmt) if isinstance(fmt, str) else None
            if fake is None and prop_name:
                fake = _FAKER_NAMES.get(prop_name.lower().replace("_", "").replace("-", ""))
            if fake is not None and not schema.get("enum"):
                return fake(self._faker)

        if self.use_formats and isinstance(fmt, str) and fmt in FORMAT_SAMPLES:
            return FORMAT_SAMPLES[fmt]

        enum = schema.get("enum")
        if isinstance(enum, list) and enum:
            return enum[0]

        if self.detail:
            pattern = schema.get("pattern")
            if pattern:
                return f"string matching pattern: {pattern}"
            return DETAIL_STRING
        return PLACEHOLDER_STRING

    def _sample_number(self, schema: Dict[str, Any], kind: str) -> Any:
        if "example" in schema:
            return schema["example"]
        if not self.detail:
            return PLACEHOLDER_NUMBER

        lo = schema.get("minimum")
        hi = schema.get("maximum")
        if _is_number(lo) and _is_number(hi):
            return math.floor((lo + hi) / 2)
        if _is_number(lo):
            return lo
        if _is_number(hi):
            return hi
        return DETAIL_INTEGER if kind == "integer" else DETAIL_NUMBER

    @staticmethod
    def _schema_type(schema: Dict[str, Any]) -> Optional[str]:
        kind = schema.get("type")
        if isinstance(kind, list):
            # OpenAPI 3.1 style ["string", "null"]
            kind = next((k for k in kind if k != "null"), None)
        return kind if isinstance(kind, str) else None


# ==================== Helpers ====================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def resolve_ref(ref: str, components: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Look up a local ``#/components/schemas/Name`` reference."""
    if not ref.startswith(REF_PREFIX) or not isinstance(components, dict):
        return None
    schemas = components.get("schemas")
    if not isinstance(schemas, dict):
        return None
    target = schemas.get(ref[len(REF_PREFIX):])
    return target if isinstance(target, dict) else None


_PLAIN = SchemaSampler()


def synthesize(schema: Any) -> Any:
    """Representative value for ``schema`` using the plain fallbacks."""
    return _PLAIN.synthesize(schema)


def detail_sample(schema: Any, components: Optional[Dict[str, Any]] = None, **options: Any) -> Any:
    """Endpoint-detail sample: formats, bounds and ``$ref`` resolution."""
    return SchemaSampler(components, detail=True, **options).synthesize(schema)
