# apiharness/endpoint_catalog.py
"""
Endpoint Catalog

Flattens an OpenAPI document's ``paths`` map into Operation records and
groups them by tag. A document without ``paths`` is simply an empty catalog.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import yaml

from apiharness.models import EndpointGroup, Operation, SpecLoadError, endpoint_key

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
DEFAULT_TAG = "default"
SUCCESS_CODES = (200, 201, 202, 204)


# ==================== Parsing ====================

def parse_operations(doc: Any) -> List[Operation]:
    """One Operation per (path, HTTP verb) pair, in document order."""
    if not isinstance(doc, dict):
        return []
    paths = doc.get("paths")
    if not isinstance(paths, dict):
        return []

    operations: List[Operation] = []
    for path, methods in paths.items():
        if not isinstance(methods, dict):
            continue
        for method, op in methods.items():
            if str(method).lower() not in HTTP_METHODS or not isinstance(op, dict):
                continue
            tags = op.get("tags")
            operations.append(Operation(
                path=str(path),
                method=str(method).upper(),
                operation_id=op.get("operationId"),
                summary=op.get("summary"),
                description=op.get("description"),
                parameters=tuple(p for p in (op.get("parameters") or []) if isinstance(p, dict)),
                request_body=op.get("requestBody") if isinstance(op.get("requestBody"), dict) else None,
                responses=op.get("responses") if isinstance(op.get("responses"), dict) else {},
                tags=tuple(str(t) for t in tags) if tags else (DEFAULT_TAG,),
            ))
    return operations


def group_by_tag(operations: Iterable[Operation]) -> List[EndpointGroup]:
    """
    Tag → operations multimap. An operation tagged ``["a", "b"]`` is listed
    under both groups; groups are ordered by first appearance of the tag.
    """
    groups: Dict[str, EndpointGroup] = {}
    for op in operations:
        for tag in op.tags:
            groups.setdefault(tag, EndpointGroup(tag=tag)).operations.append(op)
    return list(groups.values())


def expected_status(responses: Any) -> int:
    """
    Status a generated test should expect.

    First of 200/201/202/204 declared; otherwise the first declared key that
    is a number ("default" and "2XX" style keys are skipped); otherwise 200.
    """
    if not isinstance(responses, dict) or not responses:
        return 200

    declared = {str(k) for k in responses}
    for code in SUCCESS_CODES:
        if str(code) in declared:
            return code

    for key in responses:
        try:
            return int(str(key))
        except ValueError:
            continue
    return 200


def response_for(responses: Any, code: int) -> Optional[Dict[str, Any]]:
    """Response object declared for ``code``; YAML may key it as int or str."""
    if not isinstance(responses, dict):
        return None
    found = next((v for k, v in responses.items() if str(k) == str(code)), None)
    return found if isinstance(found, dict) else None


def all_endpoint_keys(groups: Iterable[EndpointGroup]) -> Set[str]:
    return {op.key for group in groups for op in group.operations}


def default_base_url(doc: Any) -> Optional[str]:
    """``servers[0].url`` when the document declares one."""
    if not isinstance(doc, dict):
        return None
    servers = doc.get("servers")
    if isinstance(servers, list) and servers and isinstance(servers[0], dict):
        url = servers[0].get("url")
        if isinstance(url, str) and url:
            return url
    return None


def load_spec_file(path: str | Path) -> Dict[str, Any]:
    """Read an OpenAPI document from a JSON or YAML file."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Cannot read spec {p}: {e}") from e

    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            doc = yaml.safe_load(text)
        else:
            doc = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise SpecLoadError(f"Spec {p} is not valid {p.suffix.lstrip('.') or 'JSON'}: {e}") from e

    if not isinstance(doc, dict):
        raise SpecLoadError(f"Spec {p} must contain a mapping at the top level")
    return doc


# ==================== Catalog ====================

class EndpointCatalog:
    """Parsed view of one OpenAPI document."""

    def __init__(self, doc: Dict[str, Any]):
        self.doc = doc if isinstance(doc, dict) else {}
        self.operations = parse_operations(self.doc)
        self.groups = group_by_tag(self.operations)
        self._by_key = {op.key: op for op in self.operations}

        info = self.doc.get("info") if isinstance(self.doc.get("info"), dict) else {}
        self.title = str(info.get("title") or "Untitled API")
        self.version = str(info.get("version") or "")
        logger.info(f"📚 Catalog '{self.title}': {len(self.operations)} operations in {len(self.groups)} groups")

    @property
    def components(self) -> Optional[Dict[str, Any]]:
        comp = self.doc.get("components")
        return comp if isinstance(comp, dict) else None

    @property
    def base_url(self) -> Optional[str]:
        return default_base_url(self.doc)

    def find(self, key: str) -> Optional[Operation]:
        method, _, path = key.partition(":")
        return self._by_key.get(endpoint_key(method, path))

    def all_keys(self) -> Set[str]:
        return all_endpoint_keys(self.groups)
