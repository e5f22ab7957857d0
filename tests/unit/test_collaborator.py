"""多智能体协作器单元测试"""

import asyncio
import threading
import time

import pytest

from aiops_rca import create_collaborator
from aiops_rca.agents import DecisionAgent, OutputAgent, PlannerAgent
from aiops_rca.datasources import StaticMetricsSource
from aiops_rca.exceptions import AgentNotRegisteredError, InvalidInputError
from aiops_rca.framework.collaborator import AgentCollaborator
from aiops_rca.framework.task import AgentRole, TaskResult, TaskType, TimeRange


class StubAgent:
    """可配置行为的分析智能体桩"""

    def __init__(self, role=AgentRole.METRICS, task_type=TaskType.METRICS_ANALYSIS, delay=0.0, error=None):
        self._role = role
        self._task_type = task_type
        self.delay = delay
        self.error = error
        self.calls = 0

    def role(self):
        return self._role

    def name(self):
        return f"stub-{self._role.value}"

    def can_handle(self, task):
        return task.type == self._task_type

    async def execute(self, task):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return TaskResult(task_id=task.id, agent_role=self._role, confidence=0.5)


def _pipeline_collaborator(context):
    collaborator = AgentCollaborator(context)
    collaborator.register_agent(PlannerAgent(context))
    collaborator.register_agent(DecisionAgent(context))
    collaborator.register_agent(OutputAgent(context))
    return collaborator


class TestRegistry:
    """智能体注册表测试"""

    def test_register_and_list(self, context):
        """测试：注册后可按角色查询"""
        collaborator = _pipeline_collaborator(context)

        assert collaborator.list_agents() == [AgentRole.PLANNER, AgentRole.DECISION, AgentRole.OUTPUT]
        assert isinstance(collaborator.get_agent(AgentRole.PLANNER), PlannerAgent)
        assert collaborator.get_agent(AgentRole.METRICS) is None

    def test_register_replaces_same_role(self, context):
        """测试：同角色重复注册时替换"""
        collaborator = AgentCollaborator(context)
        first, second = StubAgent(), StubAgent()
        collaborator.register_agent(first)
        collaborator.register_agent(second)

        assert collaborator.get_agent(AgentRole.METRICS) is second
        assert collaborator.unregister_agent(AgentRole.METRICS) is second
        assert collaborator.list_agents() == []

    def test_register_rejects_non_agent(self, context):
        """测试：非智能体对象注册失败"""
        collaborator = AgentCollaborator(context)
        with pytest.raises(InvalidInputError):
            collaborator.register_agent(None)
        with pytest.raises(InvalidInputError):
            collaborator.register_agent(object())


class TestCollaborate:
    """协作流程测试"""

    @pytest.mark.asyncio
    async def test_missing_pipeline_role(self, context):
        """测试：缺少决策智能体时抛出 AgentNotRegisteredError"""
        collaborator = AgentCollaborator(context)
        collaborator.register_agent(PlannerAgent(context))
        collaborator.register_agent(OutputAgent(context))

        with pytest.raises(AgentNotRegisteredError) as exc_info:
            await collaborator.collaborate("q", (0, 10), [], [])
        assert exc_info.value.role == AgentRole.DECISION
        assert "decision" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        dict(query=None, time_range=(0, 1), services=[], alerts=[]),
        dict(query="q", time_range=None, services=[], alerts=[]),
        dict(query="q", time_range=(0, 1), services=None, alerts=[]),
        dict(query="q", time_range=(0, 1), services=[], alerts=None),
    ])
    async def test_missing_argument(self, context, kwargs):
        """测试：必填参数为空时抛出 InvalidInputError"""
        with pytest.raises(InvalidInputError):
            await create_collaborator().collaborate(**kwargs)

    @pytest.mark.asyncio
    async def test_report_is_stored(self, context):
        """测试：报告写入共享数据并可按 ID 读取"""
        collaborator = create_collaborator(chat=context.chat, tenant_id="tenant-1", trace_id="trace-1")

        report = await collaborator.collaborate("q", TimeRange(0, 3600), ["svc-a"], [])

        assert collaborator.get_report(report.id) is report
        assert collaborator.context.get_shared(f"report_{report.id}") is report
        assert report.metadata["trace_id"] == "trace-1"
        assert report.metadata["tenant_id"] == "tenant-1"
        assert report.metadata["task_count"] == 3
        assert report.metadata["success_rate"] == 1.0
        assert collaborator.get_report("unknown") is None

    @pytest.mark.asyncio
    async def test_analyst_exception_does_not_cancel_siblings(self, context):
        """测试：单个分析智能体异常不影响其他任务"""
        collaborator = _pipeline_collaborator(context)
        logs = StubAgent(AgentRole.LOGS, TaskType.LOGS_ANALYSIS, delay=0.05)
        collaborator.register_agent(StubAgent(error=RuntimeError("kaboom")))
        collaborator.register_agent(logs)
        collaborator.register_agent(StubAgent(AgentRole.TOPOLOGY, TaskType.TOPOLOGY_ANALYSIS))

        report = await collaborator.collaborate("q", (0, 10), ["svc"], [])

        assert logs.calls == 1
        assert report.metadata["task_errors"] == {"metrics": "kaboom"}
        assert report.metadata["successful_tasks"] == 2

    @pytest.mark.asyncio
    async def test_deadline_marks_slow_analyst(self, context):
        """测试：超过截止时间的分析任务标记为 deadline"""
        collaborator = _pipeline_collaborator(context)
        collaborator.register_agent(StubAgent(delay=5.0))
        collaborator.register_agent(StubAgent(AgentRole.LOGS, TaskType.LOGS_ANALYSIS))

        report = await collaborator.collaborate("q", (0, 10), ["svc"], [], deadline=0.2)

        assert report.metadata["task_errors"] == {"metrics": "deadline"}
        assert report.metadata["duration_seconds"] < 5.0

    @pytest.mark.asyncio
    async def test_unhandled_sub_task_is_skipped(self, context):
        """测试：没有智能体处理的子任务被跳过"""
        collaborator = _pipeline_collaborator(context)
        collaborator.register_agent(StubAgent())

        report = await collaborator.collaborate("q", (0, 10), ["svc"], [])

        assert report.metadata["task_count"] == 1

    def test_collaborate_sync(self, context):
        """测试：同步接口"""
        collaborator = create_collaborator(metrics_source=StaticMetricsSource([]))
        report = collaborator.collaborate_sync("q", (0, 10), [], [])

        assert report.root_cause == "no clear root cause"
        assert collaborator.get_performance_report()["total_runs"] == 1

    def test_collaborate_sync_does_not_wait_for_blocked_source(self):
        """测试：同步接口在截止时间后返回，不等待阻塞的数据源线程"""
        release = threading.Event()

        class BlockingMetricsSource:
            def fetch(self, services, time_range):
                release.wait(timeout=3)
                return []

        collaborator = create_collaborator(metrics_source=BlockingMetricsSource())
        try:
            started = time.monotonic()
            report = collaborator.collaborate_sync("q", (0, 10), ["svc"], [], deadline=0.3)
            elapsed = time.monotonic() - started
        finally:
            release.set()

        assert elapsed < 1.5
        assert report.metadata["task_errors"] == {"metrics": "deadline"}

        again = collaborator.collaborate_sync("q", (0, 10), ["svc"], [])
        assert again.metadata["task_errors"] == {}
