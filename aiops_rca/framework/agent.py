#!/usr/bin/env python
"""
智能体能力约定与共享工具函数
"""

import asyncio
import functools
import inspect
import logging
import time
from concurrent.futures import Executor
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from langchain_core.messages import HumanMessage, SystemMessage

from ..config import tracer
from .context import Memory, MessageRole
from .task import (
    AgentRole,
    DecisionInput,
    OutputInput,
    SeverityLevel,
    Task,
    TaskResult,
    TaskType,
    TimeRange,
)

logger = logging.getLogger(__name__)

DEADLINE_ERROR = "deadline"

ROLE_TASK_TYPES = {
    AgentRole.PLANNER: TaskType.ROOT_CAUSE_ANALYSIS,
    AgentRole.METRICS: TaskType.METRICS_ANALYSIS,
    AgentRole.LOGS: TaskType.LOGS_ANALYSIS,
    AgentRole.TOPOLOGY: TaskType.TOPOLOGY_ANALYSIS,
    AgentRole.DECISION: TaskType.DECISION,
    AgentRole.OUTPUT: TaskType.OUTPUT,
}

TASK_TYPE_ROLES = {task_type: role for role, task_type in ROLE_TASK_TYPES.items()}

SUB_TASK_TYPES = (TaskType.METRICS_ANALYSIS, TaskType.LOGS_ANALYSIS, TaskType.TOPOLOGY_ANALYSIS)


@runtime_checkable
class Agent(Protocol):
    """Uniform capability every specialist agent implements."""

    def role(self) -> AgentRole: ...

    def name(self) -> str: ...

    def can_handle(self, task: Task) -> bool: ...

    async def execute(self, task: Task) -> TaskResult: ...


def handles_task_type(role: AgentRole, task: Task) -> bool:
    """Default can_handle: the task type matches the role's declared type."""
    return task is not None and ROLE_TASK_TYPES[role] == task.type


def services_from_alerts(task: Task) -> List[str]:
    """Task services, or the alert services in first-seen order when none are given."""
    if task.services:
        return list(task.services)
    return list(dict.fromkeys(alert.service for alert in task.alerts if alert.service))


def default_sub_tasks(task: Task, services: List[str]) -> List[Task]:
    """Metrics, logs and topology sub-tasks of a root task."""
    return [task.subtask(task_type, services=list(services)) for task_type in SUB_TASK_TYPES]


def remaining_time(deadline: Optional[float]) -> Optional[float]:
    """Seconds left until an absolute monotonic deadline, None when unbounded."""
    if deadline is None:
        return None
    return deadline - time.monotonic()


def bucket_severity(score: float, floor: SeverityLevel = SeverityLevel.MEDIUM) -> SeverityLevel:
    """>0.8 CRITICAL, >0.6 HIGH, >0.4 MEDIUM, otherwise ``floor``.

    With ``floor=MEDIUM`` anything up to 0.6 is MEDIUM.
    """
    if score > 0.8:
        return SeverityLevel.CRITICAL
    if score > 0.6:
        return SeverityLevel.HIGH
    if floor == SeverityLevel.MEDIUM or score > 0.4:
        return SeverityLevel.MEDIUM
    return floor


async def fetch_from_source(source: Any, services: List[str], time_range: TimeRange,
                            deadline: Optional[float] = None, executor: Optional[Executor] = None) -> Any:
    """Call ``source.fetch`` bounded by the task deadline.

    Blocking sources run on ``executor`` (the loop default when None),
    coroutine sources are awaited. A blocking call that outlives the
    deadline keeps its worker thread; only the await is abandoned.
    Raises asyncio.TimeoutError when the deadline expires.
    """
    remaining = remaining_time(deadline)
    if remaining is not None and remaining <= 0:
        raise asyncio.TimeoutError()

    if inspect.iscoroutinefunction(source.fetch):
        call = source.fetch(services, time_range)
    else:
        loop = asyncio.get_running_loop()
        call = loop.run_in_executor(executor, functools.partial(source.fetch, services, time_range))
    data = await asyncio.wait_for(call, timeout=remaining)
    if inspect.isawaitable(data):
        data = await asyncio.wait_for(data, timeout=remaining_time(deadline))
    return data


async def ask_llm(chat, system_prompt: str, prompt: str, memory: Optional[Memory] = None,
                  timeout: Optional[float] = None, deadline: Optional[float] = None) -> Tuple[str, bool]:
    """Advisory LLM call. Returns (text, ok); failures come back as error text."""
    if chat is None:
        return "LLM 未配置", False

    remaining = remaining_time(deadline)
    if remaining is not None:
        if remaining <= 0:
            return DEADLINE_ERROR, False
        timeout = remaining if timeout is None else min(timeout, remaining)

    if memory is not None:
        memory.add(MessageRole.USER, prompt)

    try:
        response = await asyncio.wait_for(
            chat.ainvoke([SystemMessage(content=system_prompt), HumanMessage(content=prompt)]),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("⚠️ LLM 调用超时")
        return DEADLINE_ERROR, False
    except Exception as e:
        logger.warning(f"⚠️ LLM 调用失败: {e}")
        return str(e) or type(e).__name__, False

    content = response.content if isinstance(response.content, str) else str(response.content)
    if memory is not None:
        memory.add(MessageRole.ASSISTANT, content)
    return content, True


def upstream_task_results(task: Task) -> Optional[Dict[str, TaskResult]]:
    """Analyst results from the typed payload, else from the context map."""
    if isinstance(task.payload, (DecisionInput, OutputInput)):
        return task.payload.task_results
    return task.context.get("task_results")


def upstream_decision_result(task: Task) -> Optional[TaskResult]:
    if isinstance(task.payload, OutputInput):
        return task.payload.decision_result
    return task.context.get("decision_result")


def successful_results(task_results: Dict[str, TaskResult]) -> List[TaskResult]:
    return [result for result in task_results.values() if result.success]


@contextmanager
def agent_span(role: AgentRole, task: Task) -> Iterator[Any]:
    """OpenTelemetry span around one agent execution."""
    with tracer.start_as_current_span(f"rca.agent.{role.value}") as span:
        span.set_attribute("task.id", task.id)
        span.set_attribute("task.type", task.type.value)
        span.set_attribute("task.services", ",".join(task.services)[:500])
        yield span


def record_result(span: Any, result: TaskResult) -> TaskResult:
    span.set_attribute("result.success", result.success)
    span.set_attribute("result.confidence", result.confidence)
    return result
