"""Image probing and batched validation of candidate URLs."""

from __future__ import annotations

import csv
import io
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from constants import ACCEPT_IMAGE, BATCH_SIZE, PROBE_TIMEOUT, USER_AGENT
from models import Candidate, ProbeResult, ValidatedCandidate, ValidationOutcome

__all__ = [
    "ScanRun",
    "build_session",
    "looks_like_image",
    "probe_image",
    "progress_percent",
    "validate_candidates",
    "filter_results",
    "list_regions",
    "group_by_region",
    "to_links_text",
    "to_csv_bytes",
]

logger = logging.getLogger(__name__)

ProbeFunc = Callable[[requests.Session, str, float], ProbeResult]
ProgressCallback = Callable[[int], None]

_IMAGE_SIGNATURES = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",
    b"GIF87a",
    b"GIF89a",
)


class ScanRun:
    """Context of a single validation run, carrying its cancellation flag."""

    def __init__(self, run_id: Optional[str] = None) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self._cancel = threading.Event()

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def __repr__(self) -> str:
        return f"ScanRun(run_id={self.run_id!r}, cancelled={self.cancelled})"


def build_session(pool_size: int = BATCH_SIZE) -> requests.Session:
    """Create a `requests.Session` sized for one batch of parallel probes.

    Retries are disabled: a failed probe is final for the run.
    """
    session = requests.Session()
    retry = Retry(total=0, raise_on_status=False)
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": ACCEPT_IMAGE,
    })
    return session


def looks_like_image(head: bytes) -> bool:
    """Return True if the leading bytes match a PNG/JPEG/GIF/WEBP signature."""
    if head.startswith(_IMAGE_SIGNATURES):
        return True
    return head[:4] == b"RIFF" and head[8:12] == b"WEBP"


def _make_empty_result(url: str) -> ProbeResult:
    """Build an empty probe result for the provided URL."""
    return {
        "url": url,
        "status": None,
        "http_status": None,
        "content_type": None,
        "error": None,
    }


def probe_image(session: requests.Session, url: str, timeout: float = PROBE_TIMEOUT) -> ProbeResult:
    """Fetch an URL and report whether it loads as an image."""
    request_url = url.strip()
    result = _make_empty_result(request_url)
    if not request_url:
        result["status"] = "skipped"
        return result

    try:
        resp = session.get(request_url, timeout=timeout, stream=True, allow_redirects=True)
        try:
            result["http_status"] = resp.status_code
            content_type = resp.headers.get("Content-Type", "")
            result["content_type"] = content_type or None

            if resp.status_code != 200:
                result["status"] = f"http_{resp.status_code}"
                return result

            if content_type.lower().startswith("image/"):
                result["status"] = "ok"
            else:
                head = next(resp.iter_content(chunk_size=16), b"")
                result["status"] = "ok" if looks_like_image(head) else "not_image"
            return result
        finally:
            resp.close()

    except requests.exceptions.SSLError as exc:
        result["status"] = "ssl_error"
        result["error"] = str(exc)
    except requests.exceptions.Timeout as exc:
        result["status"] = "timeout"
        result["error"] = str(exc)
    except requests.exceptions.RequestException as exc:
        result["status"] = "request_error"
        result["error"] = str(exc)

    return result


def progress_percent(processed: int, total: int) -> int:
    """Percentage of processed candidates, rounded half up and held below 100 until done."""
    if total <= 0:
        return 100
    percent = (processed * 200 + total) // (total * 2)
    if processed < total:
        percent = min(percent, 99)
    return percent


def _settled(future: "Future[ProbeResult]", url: str) -> ProbeResult:
    exc = future.exception()
    if exc is None:
        return future.result()
    result = _make_empty_result(url)
    result["status"] = "request_error"
    result["error"] = str(exc)
    return result


def _timed_out(url: str, timeout: float) -> ProbeResult:
    result = _make_empty_result(url)
    result["status"] = "timeout"
    result["error"] = f"No response within {timeout:g}s"
    return result


def _probe_batch(
    session: requests.Session,
    batch: Sequence[Candidate],
    timeout: float,
    probe: ProbeFunc,
    stragglers: List["Future[ProbeResult]"],
) -> List[ProbeResult]:
    """Probe one batch concurrently and block until every probe settled or timed out.

    Futures still pending at the deadline are reported as timeouts and
    never read again; their threads finish in the background and are
    appended to ``stragglers``.
    """
    executor = ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="probe")
    try:
        futures = [executor.submit(probe, session, c["url"], timeout) for c in batch]
        done, pending = wait(futures, timeout=timeout)
        stragglers.extend(pending)
        return [
            _settled(future, c["url"]) if future in done else _timed_out(c["url"], timeout)
            for future, c in zip(futures, batch)
        ]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def _close_when_settled(session: requests.Session, pending: Iterable["Future[ProbeResult]"]) -> None:
    """Close the session once every straggling probe has let go of it."""
    remaining = [f for f in pending if not f.done()]
    if not remaining:
        session.close()
        return

    lock = threading.Lock()
    left = [len(remaining)]

    def _one_done(_future: "Future[ProbeResult]") -> None:
        with lock:
            left[0] -= 1
            last = left[0] == 0
        if last:
            session.close()

    for future in remaining:
        future.add_done_callback(_one_done)


def _mark_working(candidate: Candidate) -> ValidatedCandidate:
    return {
        "url": candidate["url"],
        "region": candidate["region"],
        "category": candidate["category"],
        "priority": candidate["priority"],
        "is_working": True,
    }


def _cancelled(processed: int, total: int) -> ValidationOutcome:
    return {"status": "cancelled", "results": [], "processed": processed, "total": total}


def validate_candidates(
    candidates: Sequence[Candidate],
    *,
    run: Optional[ScanRun] = None,
    on_progress: Optional[ProgressCallback] = None,
    batch_size: int = BATCH_SIZE,
    timeout: float = PROBE_TIMEOUT,
    session: Optional[requests.Session] = None,
    probe: Optional[ProbeFunc] = None,
) -> ValidationOutcome:
    """Probe candidates in sequential batches and keep the ones that load.

    Cancellation is polled before each batch; a cancelled run returns no
    results at all. Working candidates are returned with priority groups
    first, input order preserved inside each group.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size}")

    probe_fn = probe or probe_image
    total = len(candidates)

    if total == 0:
        if run is not None and run.cancelled:
            return _cancelled(0, 0)
        if on_progress is not None:
            on_progress(progress_percent(0, 0))
        return {"status": "completed", "results": [], "processed": 0, "total": 0}

    http = session if session is not None else build_session(pool_size=batch_size)
    working: List[ValidatedCandidate] = []
    stragglers: List["Future[ProbeResult]"] = []
    processed = 0
    try:
        for start in range(0, total, batch_size):
            if run is not None and run.cancelled:
                logger.info("Run %s cancelled after %d/%d candidates", run.run_id, processed, total)
                return _cancelled(processed, total)

            batch = candidates[start:start + batch_size]
            outcomes = _probe_batch(http, batch, timeout, probe_fn, stragglers)
            for candidate, outcome in zip(batch, outcomes):
                if outcome["status"] == "ok":
                    working.append(_mark_working(candidate))
            processed += len(batch)
            logger.debug("Batch done: %d/%d probed, %d working so far", processed, total, len(working))

            if on_progress is not None:
                on_progress(progress_percent(processed, total))
    finally:
        if session is None:
            _close_when_settled(http, stragglers)

    working.sort(key=lambda item: not item["priority"])
    logger.info("Validated %d candidates, %d working", total, len(working))
    return {"status": "completed", "results": working, "processed": processed, "total": total}


def filter_results(
    results: Iterable[ValidatedCandidate],
    region: Optional[str] = None,
    category: Optional[str] = None,
) -> List[ValidatedCandidate]:
    """Keep results matching the given region and/or category label."""
    return [
        r for r in results
        if (not region or r["region"] == region) and (not category or r["category"] == category)
    ]


def list_regions(results: Iterable[ValidatedCandidate]) -> List[str]:
    """Distinct region labels in the order they first appear."""
    return list(dict.fromkeys(r["region"] for r in results))


def group_by_region(results: Iterable[ValidatedCandidate]) -> Dict[str, List[ValidatedCandidate]]:
    """Group results by region label, keeping result order inside each group."""
    groups: Dict[str, List[ValidatedCandidate]] = {}
    for r in results:
        groups.setdefault(r["region"], []).append(r)
    return groups


def to_links_text(results: Iterable[ValidatedCandidate]) -> str:
    """Newline-separated URLs, ready for the clipboard."""
    return "\n".join(r["url"] for r in results)


def to_csv_bytes(rows: Iterable[ValidatedCandidate]) -> bytes:
    """Serialize validated candidates into CSV and return the encoded bytes."""
    output = io.StringIO()
    fieldnames = ["url", "region", "category", "priority", "is_working"]
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()
    for r in rows:
        row: Dict[str, Any] = dict(r)
        writer.writerow(row)
    return output.getvalue().encode("utf-8")
