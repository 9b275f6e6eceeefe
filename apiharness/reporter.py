# apiharness/reporter.py
"""
Result reporting: condensed summary for the clipboard and full JSON export.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from apiharness.models import TestResult

logger = logging.getLogger(__name__)

EXPORT_PREFIX = "api-test-results"


def summarize(results: Iterable[TestResult]) -> List[Dict[str, Any]]:
    return [
        {
            "test": r.test_case.name,
            "status": r.status,
            "passed": r.ok,
            "duration": f"{r.duration_ms}ms",
            "error": r.error,
        }
        for r in results
    ]


def copy_text(results: Iterable[TestResult]) -> str:
    """Condensed summary as indented JSON, ready for the clipboard."""
    return json.dumps(summarize(results), indent=2)


def export_filename(on: Optional[date] = None) -> str:
    return f"{EXPORT_PREFIX}-{(on or date.today()).isoformat()}.json"


def export_results(results: Iterable[TestResult], directory: str | Path, on: Optional[date] = None) -> Path:
    """Write the full result list to ``api-test-results-YYYY-MM-DD.json``."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(on)
    _atomic_json_dump(path, [r.to_dict() for r in results])
    logger.info(f"✅ JSON results → {path}")
    return path


def tally(results: Iterable[TestResult]) -> Dict[str, int]:
    items = list(results)
    passed = sum(1 for r in items if r.ok)
    return {"total": len(items), "passed": passed, "failed": len(items) - passed}


def _atomic_json_dump(path: Path, data: Any) -> None:
    """Atomic JSON write"""
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    tmp.replace(path)
