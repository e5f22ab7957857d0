"""协作框架基础设施单元测试"""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from langchain_core.language_models import FakeListChatModel

from aiops_rca.framework.agent import (
    DEADLINE_ERROR,
    ask_llm,
    bucket_severity,
    fetch_from_source,
    services_from_alerts,
)
from aiops_rca.framework.context import CollaborationContext, Memory, MessageRole
from aiops_rca.framework.task import (
    AgentRole,
    Alert,
    Evidence,
    EvidenceType,
    Finding,
    SeverityLevel,
    TaskResult,
    TaskType,
    TimeRange,
    new_task_id,
)


class SlowChat:
    """ainvoke 永远不返回的 Chat 桩"""

    async def ainvoke(self, messages):
        await asyncio.sleep(10)


class TestDataModel:
    """数据模型测试"""

    def test_scores_are_clamped(self):
        """测试：评分和置信度被截断到 [0, 1]"""
        evidence = Evidence(type="metrics", service="s", timestamp=0, description="d", score=3.0)
        finding = Finding(type="x", service="s", description="d", severity="HIGH", score=-1.0)
        result = TaskResult(task_id="t", agent_role=AgentRole.METRICS, confidence=1.5)

        assert evidence.score == 1.0
        assert evidence.type == EvidenceType.METRICS
        assert finding.score == 0.0
        assert finding.severity == SeverityLevel.HIGH
        assert result.confidence == 1.0

    def test_evidence_is_immutable(self):
        """测试：证据不可修改"""
        evidence = Evidence(type="logs", service="s", timestamp=0, description="d")
        with pytest.raises(AttributeError):
            evidence.score = 0.5

    def test_task_ids_are_unique(self):
        """测试：并发生成的任务 ID 不重复"""
        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(lambda _: new_task_id(), range(1000)))
        assert len(set(ids)) == 1000
        assert all(task_id.startswith("task_") for task_id in ids)

    def test_subtask_inherits_parent(self, make_task):
        """测试：子任务继承查询、时间范围和截止时间"""
        parent = make_task(TaskType.ROOT_CAUSE_ANALYSIS, services=["a"], deadline=123.0)
        child = parent.subtask(TaskType.LOGS_ANALYSIS, services=["b"])

        assert child.parent == parent.id
        assert child.query == parent.query
        assert child.time_range == TimeRange(0, 3600)
        assert child.deadline == 123.0
        assert child.services == ["b"]
        assert child.id != parent.id

    def test_failure_result(self):
        """测试：失败结果携带错误信息"""
        result = TaskResult.failure("t", AgentRole.LOGS, "deadline")
        assert not result.success
        assert result.error == "deadline"
        assert result.evidence == []

    def test_severity_rank(self):
        """测试：严重程度可比较"""
        assert SeverityLevel.INFO.rank < SeverityLevel.LOW.rank < SeverityLevel.CRITICAL.rank

    @pytest.mark.parametrize("score,floor,expected", [
        (0.9, SeverityLevel.MEDIUM, SeverityLevel.CRITICAL),
        (0.7, SeverityLevel.MEDIUM, SeverityLevel.HIGH),
        (0.1, SeverityLevel.MEDIUM, SeverityLevel.MEDIUM),
        (0.5, SeverityLevel.INFO, SeverityLevel.MEDIUM),
        (0.1, SeverityLevel.INFO, SeverityLevel.INFO),
    ])
    def test_bucket_severity(self, score, floor, expected):
        """测试：评分分级"""
        assert bucket_severity(score, floor=floor) == expected

    def test_services_from_alerts(self, make_task):
        """测试：告警服务按首次出现去重"""
        alerts = [Alert(id=str(i), service=s, severity="LOW") for i, s in enumerate(["b", "a", "b", ""])]
        assert services_from_alerts(make_task(services=[], alerts=alerts)) == ["b", "a"]
        assert services_from_alerts(make_task(services=["x"], alerts=alerts)) == ["x"]


class TestContext:
    """协作上下文测试"""

    def test_memory_is_append_only(self):
        """测试：消息按追加顺序保存"""
        memory = Memory()
        memory.add(MessageRole.USER, "q")
        memory.add("assistant", "a")

        messages = memory.messages()
        assert [m.role for m in messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        messages.clear()
        assert len(memory) == 2

    def test_shared_data(self):
        """测试：共享数据读写"""
        context = CollaborationContext(tenant_id="t1")
        context.set_shared("k", 1)

        assert context.get_shared("k") == 1
        assert context.get_shared("missing", "d") == "d"
        assert context.shared_keys() == ["k"]
        assert context.trace_id
        assert context.tenant_id == "t1"

    def test_given_memory_is_used(self):
        """测试：传入的空 Memory 不被替换"""
        memory = Memory()
        assert CollaborationContext(memory=memory).memory is memory

    def test_executor_recreated_after_shutdown(self):
        """测试：关闭线程池后再次访问会新建"""
        context = CollaborationContext()
        first = context.executor
        assert context.executor is first

        context.shutdown_executor(wait=False)

        assert context.executor is not first
        context.shutdown_executor()


class TestAskLLM:
    """LLM 调用封装测试"""

    @pytest.mark.asyncio
    async def test_success_records_memory(self):
        """测试：成功调用记录用户与助手消息"""
        memory = Memory()
        text, ok = await ask_llm(FakeListChatModel(responses=["分析结论"]), "sys", "prompt", memory=memory)

        assert (text, ok) == ("分析结论", True)
        assert [m.content for m in memory.messages()] == ["prompt", "分析结论"]

    @pytest.mark.asyncio
    async def test_no_chat(self):
        """测试：未配置 LLM"""
        text, ok = await ask_llm(None, "sys", "prompt")
        assert not ok
        assert text

    @pytest.mark.asyncio
    async def test_timeout(self):
        """测试：LLM 超时返回 deadline"""
        assert await ask_llm(SlowChat(), "sys", "prompt", timeout=0.05) == (DEADLINE_ERROR, False)

    @pytest.mark.asyncio
    async def test_expired_deadline_skips_call(self):
        """测试：截止时间已过不调用 LLM"""
        memory = Memory()
        result = await ask_llm(FakeListChatModel(responses=["x"]), "sys", "p", memory=memory, deadline=0.0)
        assert result == (DEADLINE_ERROR, False)
        assert len(memory) == 0


class TestFetchFromSource:
    """数据源调用测试"""

    @pytest.mark.asyncio
    async def test_sync_source(self):
        """测试：同步数据源在线程中执行"""
        class Source:
            def fetch(self, services, time_range):
                return [services, time_range.start]

        assert await fetch_from_source(Source(), ["a"], TimeRange(1, 2)) == [["a"], 1]

    @pytest.mark.asyncio
    async def test_async_source(self):
        """测试：异步数据源被 await"""
        class Source:
            async def fetch(self, services, time_range):
                return "async"

        assert await fetch_from_source(Source(), [], TimeRange(1, 2)) == "async"

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self):
        """测试：慢数据源超过截止时间"""
        class Source:
            async def fetch(self, services, time_range):
                await asyncio.sleep(10)

        with pytest.raises(asyncio.TimeoutError):
            await fetch_from_source(Source(), [], TimeRange(1, 2), deadline=time.monotonic() + 0.05)

    @pytest.mark.asyncio
    async def test_sync_source_uses_given_executor(self):
        """测试：同步数据源在指定线程池中执行"""
        class Source:
            def fetch(self, services, time_range):
                return threading.current_thread().name

        with ThreadPoolExecutor(thread_name_prefix="rca-test") as executor:
            name = await fetch_from_source(Source(), [], TimeRange(1, 2), executor=executor)

        assert name.startswith("rca-test")
