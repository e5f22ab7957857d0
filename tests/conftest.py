"""共享测试夹具"""

import pytest
from langchain_core.language_models import FakeListChatModel

from aiops_rca.config import CollaborationConfig
from aiops_rca.datasources import LogEntry, MetricPoint, ServiceEdge, Topology
from aiops_rca.framework.context import CollaborationContext
from aiops_rca.framework.task import Task, TaskType, TimeRange


@pytest.fixture
def fake_chat():
    """固定回复的 Chat 桩"""
    return FakeListChatModel(responses=["ok"])


@pytest.fixture
def config():
    return CollaborationConfig()


@pytest.fixture
def context(fake_chat, config):
    return CollaborationContext(chat=fake_chat, config=config, trace_id="trace-test")


@pytest.fixture
def offline_context(config):
    """没有 LLM 的上下文"""
    return CollaborationContext(chat=None, config=config, trace_id="trace-offline")


@pytest.fixture
def make_task():
    def _make(task_type=TaskType.METRICS_ANALYSIS, services=("svc-a",), start=0, end=3600, **kwargs):
        return Task(
            type=task_type,
            query="服务响应变慢",
            time_range=TimeRange(start, end),
            services=list(services),
            **kwargs,
        )
    return _make


@pytest.fixture
def cpu_spike_points():
    """svc-a 的 cpu_usage: 59 个 50 和最后一个 500"""
    values = [50.0] * 59 + [500.0]
    return [
        MetricPoint(service="svc-a", metric="cpu_usage", timestamp=i * 60, value=v)
        for i, v in enumerate(values)
    ]


@pytest.fixture
def storm_logs():
    """svc-b: 12 条连接超时错误 + 3 条内存告警"""
    logs = [
        LogEntry(service="svc-b", level="ERROR", timestamp=1000 + i * 60, message="connection timeout")
        for i in range(12)
    ]
    logs += [
        LogEntry(service="svc-b", level="WARN", timestamp=1000 + i * 60, message="memory 85%")
        for i in range(3)
    ]
    return logs


@pytest.fixture
def chain_topology():
    """gateway -> order -> db"""
    return Topology.from_edges([
        ServiceEdge(source="gateway", target="order", latency=0.0),
        ServiceEdge(source="order", target="db", type="database", latency=0.0),
    ])
