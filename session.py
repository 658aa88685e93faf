"""Scan session state shared between the web layer and the validation worker."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from constants import BATCH_SIZE, PROBE_TIMEOUT
from generator import InvalidNameError, generate_candidates, normalize_name
from models import Candidate, ValidatedCandidate, ValidationOutcome
from scanner import (
    ScanRun,
    filter_results,
    list_regions,
    to_csv_bytes,
    to_links_text,
    validate_candidates,
)

__all__ = ["ScanSession"]

logger = logging.getLogger(__name__)

Validator = Callable[..., ValidationOutcome]


class ScanSession:
    """Holds the current search and the single validation run allowed in flight.

    Every read and write of the state goes through ``_lock``. Swapping
    runs, cancelling and resetting happen in a single critical section;
    joins happen outside it. Each worker joins its predecessor before it
    validates, so at most one run probes at a time and a detached run
    never writes to the result list.
    """

    def __init__(
        self,
        *,
        batch_size: int = BATCH_SIZE,
        timeout: float = PROBE_TIMEOUT,
        validator: Validator = validate_candidates,
    ) -> None:
        self.batch_size = batch_size
        self.timeout = timeout
        self._validator = validator
        self._lock = threading.Lock()
        self._run: Optional[ScanRun] = None
        self._worker: Optional[threading.Thread] = None
        self._clear()

    def _clear(self) -> None:
        self.name = ""
        self.category: Optional[str] = None
        self.status = "ready"
        self.results: List[ValidatedCandidate] = []
        self.region_filter: Optional[str] = None
        self.progress = 0
        self.total = 0
        self.error: Optional[str] = None
        self.last_outcome: Optional[str] = None

    # -------- run lifecycle --------

    def start_scan(self, name: str, category: str) -> int:
        """Cancel any running scan, then start probing candidates for name/category.

        The new worker joins the previous one before it validates, so the
        old run has let go of the state before the new one reports.
        Returns the number of generated candidates.
        """
        if not normalize_name(name):
            raise InvalidNameError("Please enter an asset name to search")
        candidates = generate_candidates(name, category)

        run = ScanRun()
        with self._lock:
            previous = self._detach_locked()
            worker = threading.Thread(
                target=self._execute,
                args=(run, candidates, previous),
                name=f"scan-{run.run_id}",
                daemon=True,
            )
            self.name = name
            self.category = category
            self.status = "scanning"
            self.results = []
            self.region_filter = None
            self.progress = 0
            self.total = len(candidates)
            self.error = None
            self.last_outcome = None
            self._run = run
            self._worker = worker
            worker.start()

        logger.info("Run %s started: name=%r category=%s candidates=%d",
                    run.run_id, name, category, len(candidates))
        return len(candidates)

    def _detach_locked(self) -> Optional[threading.Thread]:
        """Cancel and forget the current run. Caller must hold ``_lock``.

        Returns the latest worker, which may still be finishing its batch.
        """
        if self._run is not None:
            logger.info("Cancelling run %s", self._run.run_id)
            self._run.cancel()
            self._run = None
        return self._worker

    @staticmethod
    def _join(worker: Optional[threading.Thread]) -> None:
        if worker is not None and worker is not threading.current_thread():
            worker.join()

    def _execute(
        self,
        run: ScanRun,
        candidates: List[Candidate],
        previous: Optional[threading.Thread] = None,
    ) -> None:
        self._join(previous)
        try:
            outcome = self._validator(
                candidates,
                run=run,
                on_progress=lambda percent: self._on_progress(run, percent),
                batch_size=self.batch_size,
                timeout=self.timeout,
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Run %s failed", run.run_id)
            with self._lock:
                if self._run is run:
                    self.status = "error"
                    self.error = str(exc)
                    self.last_outcome = "error"
            return

        with self._lock:
            if self._run is not run:
                return
            self.last_outcome = outcome["status"]
            if outcome["status"] == "cancelled":
                self.status = "ready"
                self.results = []
            else:
                self.status = "complete"
                self.results = outcome["results"]
                self.progress = 100
        logger.info("Run %s %s with %d working links",
                    run.run_id, outcome["status"], len(outcome["results"]))

    def _on_progress(self, run: ScanRun, percent: int) -> None:
        with self._lock:
            if self._run is run and percent > self.progress:
                self.progress = percent

    def cancel(self) -> None:
        """Stop the current scan at its next batch boundary and wait for it."""
        with self._lock:
            if self._run is None:
                return
            worker = self._detach_locked()
            self.status = "ready"
            self.results = []
            self.progress = 0
            self.last_outcome = "cancelled"
        self._join(worker)

    def reset(self) -> None:
        """Cancel any scan and clear the whole session."""
        with self._lock:
            worker = self._detach_locked()
            self._clear()
        self._join(worker)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current worker finishes. Returns False on timeout."""
        with self._lock:
            worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    # -------- views --------

    def set_region_filter(self, region: Optional[str]) -> None:
        with self._lock:
            self.region_filter = region or None

    def _visible(self, region: Optional[str], category: Optional[str] = None) -> List[ValidatedCandidate]:
        effective = region if region is not None else self.region_filter
        return filter_results(self.results, region=effective, category=category)

    def snapshot(self, region: Optional[str] = None) -> Dict[str, Any]:
        """JSON-ready view of the session, filtered by region when given."""
        with self._lock:
            visible = self._visible(region)
            return {
                "name": self.name,
                "category": self.category,
                "status": self.status,
                "progress": self.progress,
                "total": self.total,
                "count": len(self.results),
                "regions": list_regions(self.results),
                "region": region if region is not None else self.region_filter,
                "results": [dict(r) for r in visible],
                "error": self.error,
                "outcome": self.last_outcome,
            }

    def links(self, region: Optional[str] = None, category: Optional[str] = None) -> str:
        with self._lock:
            return to_links_text(self._visible(region, category))

    def csv_bytes(self, region: Optional[str] = None) -> bytes:
        with self._lock:
            return to_csv_bytes(self._visible(region))
