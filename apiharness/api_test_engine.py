# apiharness/api_test_engine.py
"""
API Test Engine

Runs test cases against a live base URL, one at a time, in the order given.

FEATURES:
✅ Async httpx client, one request per test case
✅ Auth headers bound from a stored token (Bearer / API Key / Basic)
✅ Wall-clock latency in whole milliseconds
✅ JSON response decoding with raw-text fallback
✅ Transport failures captured per test (status 0), never abort a batch
✅ Progress callbacks + async result stream
✅ A newer run supersedes the remaining work of an older one
✅ Structured per-test logging (secrets redacted)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

import httpx

from apiharness.auth_binder import build_request_headers, redact_headers
from apiharness.config import HarnessSettings, get_settings
from apiharness.models import AuthToken, RunSummary, TestCase, TestResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]


# ==================== Utilities ====================

def _elapsed_ms(t0: float) -> int:
    return int(round((time.perf_counter() - t0) * 1000))


def _parse_body(resp: httpx.Response) -> Any:
    """Decoded JSON when possible, otherwise the raw text, stored verbatim."""
    try:
        return resp.json()
    except ValueError:
        return resp.text


# ==================== Main Engine ====================

class TestExecutionEngine:
    """
    Sequential test runner.

    One logical run at a time per engine: starting a new run replaces the
    results list and makes any older run stop before its next request.
    ``running_index`` and ``results`` are read-only views for callers that
    want to show progress.
    """
    __test__ = False

    def __init__(
        self,
        settings: Optional[HarnessSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        progress_cb: Optional[ProgressCallback] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._progress_cb = progress_cb
        self._running_index: Optional[int] = None
        self._results: List[TestResult] = []
        self._generation = 0

    # ==================== Public API ====================

    @property
    def running_index(self) -> Optional[int]:
        return self._running_index

    @property
    def results(self) -> List[TestResult]:
        return list(self._results)

    async def run_one(
        self,
        test_case: TestCase,
        base_url: str,
        token: Optional[AuthToken] = None,
        *,
        index: int = 0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> TestResult:
        """Execute a single test case and return its result."""
        if client is not None:
            return await self._execute(client, test_case, base_url, token, index, self._generation)
        async with self._client() as own_client:
            return await self._execute(own_client, test_case, base_url, token, index, self._generation)

    async def run_all(
        self,
        test_cases: Iterable[TestCase],
        base_url: str,
        token: Optional[AuthToken] = None,
    ) -> RunSummary:
        """Execute all test cases in order and return the tallied summary."""
        summary = RunSummary()
        async for _ in self._iter_run(list(test_cases), base_url, token, summary):
            pass
        return summary

    async def stream(
        self,
        test_cases: Iterable[TestCase],
        base_url: str,
        token: Optional[AuthToken] = None,
    ) -> AsyncIterator[TestResult]:
        """Yield each TestResult as soon as its request has resolved."""
        summary = RunSummary()
        async for result in self._iter_run(list(test_cases), base_url, token, summary):
            yield result

    def run_all_sync(
        self,
        test_cases: Iterable[TestCase],
        base_url: str,
        token: Optional[AuthToken] = None,
    ) -> RunSummary:
        """Synchronous wrapper for run_all"""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            raise RuntimeError("run_all_sync() called inside running loop; use await run_all()")

        return asyncio.run(self.run_all(test_cases, base_url, token))

    # ==================== Internals ====================

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout_sec),
            verify=self.settings.verify_ssl,
            follow_redirects=self.settings.follow_redirects,
            transport=self._transport,
        )

    def _emit(self, event: str, **data: Any) -> None:
        """Emit progress event"""
        if self._progress_cb:
            try:
                self._progress_cb({"event": event, **data})
            except Exception:
                logger.debug("progress_cb failed", exc_info=True)

    async def _iter_run(
        self,
        cases: List[TestCase],
        base_url: str,
        token: Optional[AuthToken],
        summary: RunSummary,
    ) -> AsyncIterator[TestResult]:
        if not cases:
            logger.warning("No test cases to run")
            return

        self._generation += 1
        generation = self._generation
        self._results = []

        start = time.perf_counter()
        self._emit("run_start", total=len(cases), base_url=base_url)
        logger.info(f"🚀 Running {len(cases)} test case(s) against {base_url}")

        async with self._client() as client:
            for index, case in enumerate(cases):
                if generation != self._generation:
                    summary.superseded = True
                    logger.warning(f"⏹️ Run superseded; {len(cases) - index} test(s) not started")
                    break

                result = await self._execute(client, case, base_url, token, index, generation)
                summary.results.append(result)

                if generation != self._generation:
                    # a newer run owns the results list now
                    summary.superseded = True
                    logger.warning(f"⏹️ Run superseded; {len(cases) - index - 1} test(s) not started")
                    break

                self._results.append(result)
                self._emit("test_done", index=index, result=result)
                yield result

        summary.total = len(summary.results)
        summary.passed = sum(1 for r in summary.results if r.ok)
        summary.failed = summary.total - summary.passed
        summary.duration_ms = _elapsed_ms(start)

        self._emit(
            "run_done",
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            duration_ms=summary.duration_ms,
            superseded=summary.superseded,
        )
        if summary.all_passed:
            logger.info(f"🎉 All {summary.total} tests passed ({summary.duration_ms}ms)")
        else:
            logger.warning(f"❌ {summary.passed}/{summary.total} tests passed ({summary.duration_ms}ms)")

    async def _execute(
        self,
        client: httpx.AsyncClient,
        case: TestCase,
        base_url: str,
        token: Optional[AuthToken],
        index: int,
        generation: int,
    ) -> TestResult:
        name = case.name or f"{case.method} {case.endpoint}"
        url = base_url + case.endpoint
        headers = build_request_headers(case, token)

        if generation == self._generation:
            self._running_index = index
        self._emit("test_start", index=index, name=name, method=case.method, url=url)
        logger.debug(f"→ {case.method} {url} headers={redact_headers(headers)}")

        t0 = time.perf_counter()
        try:
            content = json.dumps(case.body) if case.body is not None else None
            resp = await client.request(case.method, url, headers=headers, content=content)
            body = _parse_body(resp)
            elapsed_ms = _elapsed_ms(t0)

        except httpx.TimeoutException as e:
            elapsed_ms = _elapsed_ms(t0)
            logger.error(f"⏱️ {name}: Request timeout after {elapsed_ms}ms")
            return self._failure(case, f"Request timeout: {e}" if str(e) else "Request timeout", elapsed_ms)

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            elapsed_ms = _elapsed_ms(t0)
            logger.error(f"🔌 {name}: {type(e).__name__}: {e}")
            return self._failure(case, str(e) or type(e).__name__, elapsed_ms)

        except Exception as e:
            elapsed_ms = _elapsed_ms(t0)
            logger.error(f"❌ {name}: request failed - {e!r}")
            return self._failure(case, str(e) or type(e).__name__, elapsed_ms)

        finally:
            if generation == self._generation and self._running_index == index:
                self._running_index = None

        ok = resp.status_code == case.expected_status
        if ok:
            logger.info(f"✅ {name}: {case.method} {url} → {resp.status_code} ({elapsed_ms}ms)")
        else:
            logger.warning(f"❌ {name}: Expected {case.expected_status}, got {resp.status_code} ({elapsed_ms}ms)")

        return TestResult(
            test_case=case,
            status=resp.status_code,
            ok=ok,
            response_body=body,
            duration_ms=elapsed_ms,
        )

    @staticmethod
    def _failure(case: TestCase, message: str, elapsed_ms: int) -> TestResult:
        return TestResult(
            test_case=case,
            status=0,
            ok=False,
            response_body=None,
            duration_ms=elapsed_ms,
            error=message,
        )
