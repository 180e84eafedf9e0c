"""
Tests for the Runtime Collector and Agent Runtime.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import psutil
import pytest

from core.config import AgentConfig
from core.constants import COUNTER, GAUGE
from agent.collector import (
    FREE_MEMORY,
    POLL_COUNT,
    RANDOM_VALUE,
    RUNTIME_STAT_NAMES,
    TOTAL_MEMORY,
    RuntimeMetrics,
)
from agent.reporter import MetricsReporter
from agent.runner import Agent


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def collector():
    return RuntimeMetrics()


@pytest.fixture
def reporter():
    mock = AsyncMock(spec=MetricsReporter)
    return mock


# ============================================================
# COLLECTOR
# ============================================================

class TestRuntimeMetrics:
    """Tests for RuntimeMetrics."""

    def test_runtime_poll_sets_every_stat(self, collector):
        collector.update_runtime()

        gauges = collector.gauges
        for name in RUNTIME_STAT_NAMES:
            assert name in gauges
        assert 0.0 <= gauges[RANDOM_VALUE] < 1.0

    def test_poll_count_increments(self, collector):
        collector.update_runtime()
        collector.update_runtime()
        collector.update_runtime()

        assert collector.counters == {POLL_COUNT: 3}

    def test_memory_poll(self, collector):
        collector.update_memory()

        gauges = collector.gauges
        assert gauges[TOTAL_MEMORY] > 0
        assert FREE_MEMORY in gauges
        assert "CPUutilization1" in gauges

    def test_memory_poll_does_not_count(self, collector):
        collector.update_memory()
        assert collector.counters == {}

    def test_unreadable_stat_is_skipped(self, caplog):
        process = MagicMock()
        process.memory_info.side_effect = psutil.AccessDenied()
        collector = RuntimeMetrics(process=process)

        collector.update_runtime()

        gauges = collector.gauges
        assert "ProcessRSS" not in gauges
        assert "NumThreads" in gauges
        assert "Unable to read runtime stat ProcessRSS" in caplog.text

    def test_snapshot(self, collector):
        collector.update()
        collector.update()

        records = collector.snapshot()
        counters = [r for r in records if r.type == COUNTER]
        gauges = [r for r in records if r.type == GAUGE]

        assert [(r.id, r.delta) for r in counters] == [(POLL_COUNT, 2)]
        assert all(r.value is not None and r.delta is None for r in gauges)
        assert {r.id for r in gauges} >= set(RUNTIME_STAT_NAMES)


# ============================================================
# AGENT RUNTIME
# ============================================================

class TestAgent:
    """Tests for the poll/report loops."""

    @pytest.mark.asyncio
    async def test_report_once_sends_snapshot(self, collector, reporter):
        agent = Agent(AgentConfig(), collector=collector, reporter=reporter)

        await agent.poll_once()
        await agent.report_once()

        sent = reporter.report.await_args.args[0]
        assert any(r.id == POLL_COUNT and r.delta == 1 for r in sent)

    @pytest.mark.asyncio
    async def test_loops_run_until_stopped(self, collector, reporter):
        config = AgentConfig(poll_interval=0.01, report_interval=0.02)
        agent = Agent(config, collector=collector, reporter=reporter)

        await agent.start()
        assert agent.is_running
        await asyncio.sleep(0.2)
        await agent.stop()

        assert not agent.is_running
        assert collector.counters[POLL_COUNT] >= 1
        assert reporter.report.await_count >= 1
        reporter.close.assert_awaited_once()

    def test_run_in_loop_created_after_construction(self, collector, reporter):
        agent = Agent(AgentConfig(), collector=collector, reporter=reporter)

        async def main():
            runner = asyncio.create_task(agent.run())
            await asyncio.sleep(0.05)
            assert agent.is_running
            await agent.stop()
            await asyncio.wait_for(runner, timeout=1)

        asyncio.run(main())

        assert not agent.is_running
        reporter.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_before_start(self, collector, reporter):
        agent = Agent(AgentConfig(), collector=collector, reporter=reporter)

        await agent.stop()

        reporter.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, collector, reporter):
        agent = Agent(AgentConfig(), collector=collector, reporter=reporter)

        await agent.start()
        await agent.stop()
        await agent.stop()

        reporter.close.assert_awaited_once()
