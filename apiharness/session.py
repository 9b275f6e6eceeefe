# apiharness/session.py
"""
Harness Session

Non-UI workbench that wires the pipeline together for one working session:

    stored spec → EndpointCatalog → selection → TestCaseComposer
        → test cases → TestExecutionEngine (+ selected token) → results

Persistence goes through the injected BlobStore; the engine only ever sees
plain values.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from apiharness.api_test_engine import ProgressCallback, TestExecutionEngine
from apiharness.blob_store import BlobStore
from apiharness.config import HarnessSettings, get_settings
from apiharness.credential_manager import TokenStore
from apiharness.endpoint_catalog import EndpointCatalog
from apiharness.models import AuthToken, EndpointGroup, RunSummary, SpecLoadError, TestCase, TestResult, endpoint_key
from apiharness import reporter
from apiharness.test_composer import (
    TestCaseParseError,
    built_in_samples,
    compose_from_selection,
    parse_test_cases,
)

logger = logging.getLogger(__name__)

SPEC_KIND = "spec"


class HarnessSession:
    def __init__(
        self,
        store: BlobStore,
        settings: Optional[HarnessSettings] = None,
        engine: Optional[TestExecutionEngine] = None,
        progress_cb: Optional[ProgressCallback] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.tokens = TokenStore(store)
        self.engine = engine or TestExecutionEngine(self.settings, progress_cb=progress_cb)

        self.catalog: Optional[EndpointCatalog] = None
        self.spec_id: Optional[str] = None
        self.selected_keys: Set[str] = set()
        self.test_cases: List[TestCase] = []
        self.selected_token_id: Optional[str] = None
        self._base_url = self.settings.base_url
        self._base_url_explicit = False

    # ==================== Specs ====================

    def save_spec(self, spec_id: str, doc: Dict[str, Any]) -> None:
        self.store.put(SPEC_KIND, spec_id, doc)

    def list_specs(self) -> List[Dict[str, str]]:
        specs = []
        for spec_id, doc in self.store.list(SPEC_KIND).items():
            info = doc.get("info") if isinstance(doc, dict) and isinstance(doc.get("info"), dict) else {}
            specs.append({
                "id": spec_id,
                "title": str(info.get("title") or spec_id),
                "version": str(info.get("version") or ""),
            })
        return specs

    def delete_spec(self, spec_id: str) -> bool:
        if spec_id == self.spec_id:
            self.use_spec(None)
        return self.store.delete(SPEC_KIND, spec_id)

    def load_spec(self, spec_id: str) -> EndpointCatalog:
        doc = self.store.get(SPEC_KIND, spec_id)
        if not isinstance(doc, dict):
            raise SpecLoadError(f"No stored spec with id {spec_id!r}")
        catalog = self.use_spec(doc)
        self.spec_id = spec_id
        return catalog

    def use_spec(self, doc: Optional[Dict[str, Any]]) -> Optional[EndpointCatalog]:
        """Make ``doc`` the active spec; None clears it."""
        self.selected_keys = set()
        self.spec_id = None
        if doc is None:
            self.catalog = None
            return None

        self.catalog = EndpointCatalog(doc)
        if not self._base_url_explicit:
            if self.catalog.base_url:
                self._base_url = self.catalog.base_url
                logger.info(f"🌐 Base URL from spec servers: {self._base_url}")
            else:
                self._base_url = self.settings.base_url
        return self.catalog

    @property
    def groups(self) -> List[EndpointGroup]:
        return self.catalog.groups if self.catalog else []

    # ==================== Base URL ====================

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_base_url(self, url: str) -> None:
        self._base_url = url
        self._base_url_explicit = True

    # ==================== Selection ====================

    def toggle_endpoint(self, method: str, path: str) -> bool:
        """Flip selection of one endpoint; returns whether it is now selected."""
        key = endpoint_key(method, path)
        if key in self.selected_keys:
            self.selected_keys.discard(key)
            return False
        self.selected_keys.add(key)
        return True

    def select_all(self) -> None:
        self.selected_keys = self.catalog.all_keys() if self.catalog else set()

    def deselect_all(self) -> None:
        self.selected_keys = set()

    # ==================== Test Cases ====================

    def generate_tests(self) -> List[TestCase]:
        components = self.catalog.components if self.catalog else None
        self.test_cases = compose_from_selection(self.groups, self.selected_keys, components)
        return self.test_cases

    def load_samples(self) -> List[TestCase]:
        self.test_cases = built_in_samples()
        return self.test_cases

    def import_test_cases(self, text: str) -> Tuple[bool, str]:
        """Replace the test cases with parsed JSON; on error nothing changes."""
        try:
            cases = parse_test_cases(text)
        except TestCaseParseError as e:
            logger.warning(f"Test case import rejected: {e}")
            return False, str(e)
        self.test_cases = cases
        return True, f"Parsed {len(cases)} test case(s)"

    # ==================== Tokens ====================

    def select_token(self, token_id: Optional[str]) -> None:
        self.selected_token_id = token_id or None

    @property
    def selected_token(self) -> Optional[AuthToken]:
        return self.tokens.get_token(self.selected_token_id) if self.selected_token_id else None

    def delete_token(self, token_id: str) -> bool:
        deleted = self.tokens.delete_token(token_id)
        if deleted and self.selected_token_id == token_id:
            self.selected_token_id = None
        return deleted

    # ==================== Running ====================

    async def run(self) -> RunSummary:
        return await self.engine.run_all(self.test_cases, self.base_url, self.selected_token)

    def run_sync(self) -> RunSummary:
        return self.engine.run_all_sync(self.test_cases, self.base_url, self.selected_token)

    @property
    def results(self) -> List[TestResult]:
        return self.engine.results

    def copy_results(self) -> str:
        return reporter.copy_text(self.results)

    def export_results(self, directory: Optional[str | Path] = None, on: Optional[date] = None) -> Path:
        return reporter.export_results(self.results, directory or self.settings.export_dir, on)
