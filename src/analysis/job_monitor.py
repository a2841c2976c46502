# src/analysis/job_monitor.py — v2
"""Lifecycle of one background analysis job: start, poll, observe, stop.

Polling is a single sequential task (sleep, poll, apply), so two progress
requests for the same job never overlap. The task ends itself on the first
terminal status and, only for ``completed``, fetches the result list once.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from docorch.analysis.base_engine import BaseAnalysisEngine, BaseResultStore
from docorch.core.models import AnalysisJob, JobStatus, ResultItem, is_terminal
from docorch.logging.context import set_document_context

logger = logging.getLogger(__name__)


class AlreadyRunningError(Exception):
    """A job for another document is running; stop it before starting a new one."""

    def __init__(self, running_document_id: str, requested_document_id: str):
        self.running_document_id = running_document_id
        self.requested_document_id = requested_document_id
        super().__init__(
            f"Analysis already running for {running_document_id!r}; "
            f"stop it before starting {requested_document_id!r}"
        )


class AnalysisJobMonitor:
    """Tracks at most one analysis job at a time.

    Args:
        engine: Runs the jobs.
        result_store: Provides results of completed jobs.
        poll_interval_s: Delay between progress requests.
        poll_failure_limit: Consecutive failed progress requests after which
            the job is marked failed. 0 keeps polling indefinitely.
        on_progress: Called with the job after every applied progress update.
        on_results: Called with the job once its results were fetched.
    """

    def __init__(
        self,
        engine: BaseAnalysisEngine,
        result_store: BaseResultStore,
        *,
        poll_interval_s: float = 1.0,
        poll_failure_limit: int = 10,
        on_progress: Callable[[AnalysisJob], None] | None = None,
        on_results: Callable[[AnalysisJob], None] | None = None,
    ) -> None:
        self._engine = engine
        self._result_store = result_store
        self._poll_interval_s = poll_interval_s
        self._poll_failure_limit = poll_failure_limit
        self._on_progress = on_progress
        self._on_results = on_results
        self._job: AnalysisJob | None = None
        self._watch_task: asyncio.Task[None] | None = None
        self._polling = False
        self._lock = asyncio.Lock()

    # --- Read accessors ---

    @property
    def job(self) -> AnalysisJob | None:
        return self._job

    @property
    def status(self) -> JobStatus:
        return self._job.status if self._job else "not_started"

    @property
    def results(self) -> list[ResultItem] | None:
        return self._job.results if self._job else None

    @property
    def is_polling(self) -> bool:
        return self._polling

    # --- Operations ---

    async def start(self, document_id: str) -> AnalysisJob:
        """Start a job for a document and begin polling its progress.

        Restarting the same document cancels its running job first.

        Raises:
            AlreadyRunningError: If another document's job is running.
        """
        async with self._lock:
            current = self._job
            if current is not None and current.status == "running":
                if current.document_id != document_id:
                    raise AlreadyRunningError(current.document_id, document_id)
                logger.info("Restarting analysis of %s", document_id)
                await self._cancel(current, acknowledge_errors=False)

            job = AnalysisJob(
                document_id=document_id,
                status="running",
                started_at=datetime.now(timezone.utc),
                status_message="Starting analysis",
            )
            self._job = job
            try:
                await self._engine.start_job(document_id)
            except Exception as e:
                self._finish(job, "failed", f"Could not start analysis: {e}")
                raise

            logger.info("Analysis started for %s", document_id)
            self._polling = True
            self._watch_task = asyncio.create_task(
                self._watch(job, uuid.uuid4().hex[:8]),
                name=f"analysis-monitor-{document_id}",
            )
            return job

    async def stop(self, document_id: str) -> None:
        """Request cancellation and stop polling, whatever the engine answers.

        Raises:
            Exception: Whatever the engine raised, after polling has stopped.
        """
        async with self._lock:
            job = self._job
            if job is None or job.document_id != document_id or job.status != "running":
                logger.debug("No running analysis for %s to stop", document_id)
                return
            await self._cancel(job, acknowledge_errors=True)

    def release(self, document_id: str) -> None:
        """Stop polling and forget the job without cancelling it on the engine."""
        job = self._job
        if job is None or job.document_id != document_id:
            return
        self._stop_polling()
        self._job = None
        logger.info("Stopped tracking analysis of %s", document_id)

    async def wait(self) -> AnalysisJob | None:
        """Wait until the current job's polling and result fetch are over."""
        task = self._watch_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self._job

    # --- Internals ---

    async def _cancel(self, job: AnalysisJob, *, acknowledge_errors: bool) -> None:
        try:
            await self._engine.stop_job(job.document_id)
        except Exception:
            if acknowledge_errors:
                raise
            logger.warning(
                "Engine did not acknowledge stop for %s", job.document_id, exc_info=True
            )
        finally:
            self._stop_polling()
            if is_terminal(job.status):
                # Polling saw the job end while the engine handled the stop.
                logger.info(
                    "Analysis of %s had already ended: %s", job.document_id, job.status
                )
            else:
                self._finish(job, "stopped", "Analysis stopped")
                logger.info("Analysis stopped for %s", job.document_id)

    def _stop_polling(self) -> None:
        task = self._watch_task
        if self._polling and task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._polling = False

    async def _watch(self, job: AnalysisJob, job_id: str) -> None:
        set_document_context(job.document_id, job_id)
        try:
            await self._poll_until_terminal(job)
        finally:
            self._polling = False

        if job.status == "completed" and self._job is job:
            await self._fetch_results(job)

    async def _poll_until_terminal(self, job: AnalysisJob) -> None:
        while True:
            await asyncio.sleep(self._poll_interval_s)
            try:
                progress = await self._engine.get_progress(job.document_id)
            except Exception as e:
                job.poll_failures += 1
                logger.warning(
                    "Progress request %d failed for %s: %s",
                    job.poll_failures, job.document_id, e,
                )
                if self._poll_failure_limit and job.poll_failures >= self._poll_failure_limit:
                    self._finish(job, "failed", f"Progress unavailable: {e}")
                    return
                continue

            job.poll_failures = 0
            if progress.status == "not_started":
                # Engine has not registered the job yet; keep counters only.
                progress = progress.model_copy(update={"status": "running"})
            job.apply_progress(progress)
            self._notify(self._on_progress, job)

            if is_terminal(progress.status):
                job.finished_at = datetime.now(timezone.utc)
                logger.info(
                    "Analysis of %s ended: %s (%d items)",
                    job.document_id, progress.status, progress.items_found,
                )
                return

    async def _fetch_results(self, job: AnalysisJob) -> None:
        try:
            job.results = await self._result_store.get_results(job.document_id)
        except Exception as e:
            job.results_error = str(e)
            logger.exception("Fetching results failed for %s", job.document_id)
            return
        logger.info("Fetched %d results for %s", len(job.results), job.document_id)
        self._notify(self._on_results, job)

    @staticmethod
    def _notify(callback: Callable[[AnalysisJob], None] | None, job: AnalysisJob) -> None:
        if callback is None:
            return
        try:
            callback(job)
        except Exception:
            logger.exception("Job callback failed for %s (non-fatal)", job.document_id)

    @staticmethod
    def _finish(job: AnalysisJob, status: JobStatus, message: str) -> None:
        job.status = status
        job.status_message = message
        job.finished_at = datetime.now(timezone.utc)
