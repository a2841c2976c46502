# tests/unit/analysis/test_job_monitor.py — v2
"""Tests for analysis/job_monitor.py — start, poll, results, stop."""

from __future__ import annotations

import asyncio

import pytest

from docorch.analysis.job_monitor import AlreadyRunningError, AnalysisJobMonitor


def _monitor(engine, store, **kwargs) -> AnalysisJobMonitor:
    kwargs.setdefault("poll_interval_s", 0.01)
    return AnalysisJobMonitor(engine, store, **kwargs)


class TestLifecycle:
    def test_initial_state(self, fake_engine, fake_result_store):
        monitor = _monitor(fake_engine, fake_result_store)
        assert monitor.job is None
        assert monitor.status == "not_started"
        assert monitor.results is None
        assert not monitor.is_polling

    @pytest.mark.asyncio
    async def test_completed_fetches_results_once(self, fake_engine, fake_result_store):
        monitor = _monitor(fake_engine, fake_result_store)
        job = await monitor.start("doc_001")
        assert job.status == "running"
        assert monitor.is_polling

        await monitor.wait()
        assert monitor.status == "completed"
        assert not monitor.is_polling
        assert fake_result_store.calls == ["doc_001"]
        assert [r.id for r in monitor.results] == ["q_001"]
        assert job.finished_at is not None

        polls = fake_engine.progress_calls
        await asyncio.sleep(0.05)
        assert fake_engine.progress_calls == polls
        assert fake_result_store.calls == ["doc_001"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("wire_status,expected", [
        ("error", "failed"),
        ("stopped", "stopped"),
        ("exploded", "failed"),
    ])
    async def test_non_completed_terminal_skips_results(
        self, fake_engine, fake_result_store, wire_status, expected
    ):
        fake_engine.statuses = ["analyzing", wire_status]
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.start("doc_001")
        await monitor.wait()

        assert monitor.status == expected
        assert monitor.results is None
        assert fake_result_store.calls == []
        assert not monitor.is_polling

    @pytest.mark.asyncio
    async def test_progress_applied(self, fake_engine, fake_result_store):
        seen: list[tuple[str, int]] = []
        fake_engine.statuses = ["idle", "analyzing", "completed"]
        monitor = _monitor(
            fake_engine, fake_result_store,
            on_progress=lambda job: seen.append((job.status, job.items_found)),
        )
        await monitor.start("doc_001")
        job = await monitor.wait()

        assert seen == [("running", 1), ("running", 2), ("completed", 3)]
        assert job.total_pages == 3

    @pytest.mark.asyncio
    async def test_on_results_called(self, fake_engine, fake_result_store):
        delivered = []
        monitor = _monitor(fake_engine, fake_result_store, on_results=delivered.append)
        await monitor.start("doc_001")
        job = await monitor.wait()
        assert delivered == [job]

    @pytest.mark.asyncio
    async def test_result_fetch_failure_recorded(self, fake_engine, fake_result_store):
        fake_result_store.error = OSError("results file locked")
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.start("doc_001")
        job = await monitor.wait()

        assert job.status == "completed"
        assert job.results is None
        assert "locked" in job.results_error


class TestStart:
    @pytest.mark.asyncio
    async def test_other_document_rejected_while_running(self, fake_engine, fake_result_store):
        fake_engine.statuses = ["running"]
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.start("doc_001")

        with pytest.raises(AlreadyRunningError) as exc_info:
            await monitor.start("doc_002")
        assert exc_info.value.running_document_id == "doc_001"
        assert exc_info.value.requested_document_id == "doc_002"
        assert fake_engine.started == ["doc_001"]

        await monitor.stop("doc_001")
        await monitor.start("doc_002")
        assert fake_engine.started == ["doc_001", "doc_002"]
        await monitor.stop("doc_002")

    @pytest.mark.asyncio
    async def test_restart_same_document_stops_previous(self, fake_engine, fake_result_store):
        fake_engine.statuses = ["running"]
        monitor = _monitor(fake_engine, fake_result_store)
        first = await monitor.start("doc_001")
        second = await monitor.start("doc_001")

        assert fake_engine.stopped == ["doc_001"]
        assert fake_engine.started == ["doc_001", "doc_001"]
        assert first.status == "stopped"
        assert second.status == "running"
        assert monitor.job is second
        await monitor.stop("doc_001")

    @pytest.mark.asyncio
    async def test_start_failure_marks_job_failed(self, fake_engine, fake_result_store):
        fake_engine.start_error = ConnectionError("engine offline")
        monitor = _monitor(fake_engine, fake_result_store)

        with pytest.raises(ConnectionError):
            await monitor.start("doc_001")
        assert monitor.status == "failed"
        assert not monitor.is_polling

    @pytest.mark.asyncio
    async def test_start_after_completion(self, fake_engine, fake_result_store):
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.start("doc_001")
        await monitor.wait()

        fake_engine.statuses = ["running", "completed"]
        await monitor.start("doc_002")
        await monitor.wait()
        assert monitor.job.document_id == "doc_002"
        assert fake_engine.stopped == []


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_ends_polling(self, fake_engine, fake_result_store):
        fake_engine.statuses = ["running"]
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.start("doc_001")
        await asyncio.sleep(0.03)

        await monitor.stop("doc_001")
        assert monitor.status == "stopped"
        assert not monitor.is_polling
        assert fake_engine.stopped == ["doc_001"]

        polls = fake_engine.progress_calls
        await asyncio.sleep(0.05)
        assert fake_engine.progress_calls == polls

    @pytest.mark.asyncio
    async def test_stop_engine_error_still_stops_polling(self, fake_engine, fake_result_store):
        fake_engine.statuses = ["running"]
        fake_engine.stop_error = RuntimeError("stop not acknowledged")
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.start("doc_001")

        with pytest.raises(RuntimeError):
            await monitor.stop("doc_001")
        assert not monitor.is_polling
        assert monitor.status == "stopped"

    @pytest.mark.asyncio
    async def test_job_completing_during_stop_stays_completed(
        self, fake_engine, fake_result_store
    ):
        fake_engine.statuses = ["completed"]
        fake_engine.stop_delay = 0.05
        monitor = _monitor(fake_engine, fake_result_store, poll_interval_s=0.001)
        await monitor.start("doc_001")

        await monitor.stop("doc_001")
        job = await monitor.wait()

        assert fake_engine.stopped == ["doc_001"]
        assert job.status == "completed"
        assert fake_result_store.calls == ["doc_001"]
        assert [r.id for r in job.results] == ["q_001"]
        assert not monitor.is_polling

    @pytest.mark.asyncio
    async def test_stop_without_running_job_is_noop(self, fake_engine, fake_result_store):
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.stop("doc_001")
        assert fake_engine.stopped == []

    @pytest.mark.asyncio
    async def test_release_keeps_engine_job(self, fake_engine, fake_result_store):
        fake_engine.statuses = ["running"]
        monitor = _monitor(fake_engine, fake_result_store)
        await monitor.start("doc_001")

        monitor.release("doc_001")
        assert monitor.job is None
        assert not monitor.is_polling
        assert fake_engine.stopped == []

        await monitor.start("doc_002")
        assert monitor.job.document_id == "doc_002"
        await monitor.stop("doc_002")


class TestPollFailures:
    @pytest.mark.asyncio
    async def test_failure_limit_marks_job_failed(self, fake_engine, fake_result_store):
        fake_engine.progress_error = TimeoutError("no answer")
        monitor = _monitor(fake_engine, fake_result_store, poll_failure_limit=3)
        await monitor.start("doc_001")
        job = await monitor.wait()

        assert job.status == "failed"
        assert job.poll_failures == 3
        assert fake_engine.progress_calls == 3
        assert not monitor.is_polling

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, fake_engine, fake_result_store):
        original = fake_engine.get_progress
        calls = {"n": 0}

        async def flaky(document_id):
            calls["n"] += 1
            if calls["n"] == 1:
                raise TimeoutError("blip")
            return await original(document_id)

        fake_engine.get_progress = flaky
        monitor = _monitor(fake_engine, fake_result_store, poll_failure_limit=3)
        await monitor.start("doc_001")
        job = await monitor.wait()

        assert job.status == "completed"
        assert job.poll_failures == 0


class TestCallbacks:
    @pytest.mark.asyncio
    async def test_failing_progress_callback_does_not_stall_job(
        self, fake_engine, fake_result_store, caplog
    ):
        def boom(job):
            raise RuntimeError("ui")

        monitor = _monitor(fake_engine, fake_result_store, on_progress=boom)
        await monitor.start("doc_001")
        job = await monitor.wait()

        assert job.status == "completed"
        assert not monitor.is_polling
        assert fake_result_store.calls == ["doc_001"]
        assert "Job callback failed" in caplog.text

        await monitor.start("doc_002")
        assert monitor.job.document_id == "doc_002"
        await monitor.wait()

    @pytest.mark.asyncio
    async def test_failing_results_callback_keeps_results(self, fake_engine, fake_result_store):
        def boom(job):
            raise RuntimeError("ui")

        monitor = _monitor(fake_engine, fake_result_store, on_results=boom)
        await monitor.start("doc_001")
        job = await monitor.wait()

        assert job.status == "completed"
        assert [r.id for r in job.results] == ["q_001"]
        assert not monitor.is_polling
