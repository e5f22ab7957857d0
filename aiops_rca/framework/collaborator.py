#!/usr/bin/env python
"""
多智能体协作器
规划 → 并行执行分析智能体 → 综合决策 → 报告生成
"""

import asyncio
import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..config import tracer
from ..exceptions import AgentNotRegisteredError, InvalidInputError
from ..utils.evidence_chain import (
    affected_services,
    build_evidence_chain,
    build_timeline,
    default_recommendations,
    success_rate,
    summarize_evidence,
)
from .agent import (
    DEADLINE_ERROR,
    TASK_TYPE_ROLES,
    Agent,
    default_sub_tasks,
    remaining_time,
    services_from_alerts,
    successful_results,
)
from .context import CollaborationContext
from .task import (
    NO_ROOT_CAUSE,
    AgentRole,
    Alert,
    AnalysisReport,
    DecisionInput,
    OutputInput,
    Task,
    TaskResult,
    TaskType,
    TimeRange,
)


class AgentCollaborator:
    """多智能体协作器

    Holds one agent per role and drives the fixed analysis pipeline. The
    analyst stage runs all sub-tasks concurrently; a failing or timed-out
    analyst becomes a failed TaskResult and never cancels its siblings.
    """

    def __init__(self, context: Optional[CollaborationContext] = None, debug: bool = False):
        self.context = context or CollaborationContext()
        self.debug = debug or self.context.config.debug
        self.logger = logging.getLogger(__name__)
        self._agents: Dict[AgentRole, Agent] = {}
        self._lock = threading.RLock()

        self.performance_stats = {
            'total_runs': 0,
            'successful_tasks': 0,
            'failed_tasks': 0,
            'avg_duration_seconds': 0.0,
        }

    # ------------------------------------------------------------------
    # registry

    def register_agent(self, agent: Agent) -> None:
        if agent is None or not isinstance(agent, Agent):
            raise InvalidInputError(f"not an agent: {agent!r}")
        role = AgentRole(agent.role())
        with self._lock:
            if role in self._agents:
                self.logger.warning(f"⚠️ 角色 {role.value} 已注册，替换为 {agent.name()}")
            self._agents[role] = agent
        self.logger.info(f"✅ 注册智能体: {agent.name()} ({role.value})")

    def unregister_agent(self, role: AgentRole) -> Optional[Agent]:
        with self._lock:
            return self._agents.pop(AgentRole(role), None)

    def get_agent(self, role: AgentRole) -> Optional[Agent]:
        with self._lock:
            return self._agents.get(AgentRole(role))

    def list_agents(self) -> List[AgentRole]:
        with self._lock:
            return list(self._agents)

    def _require(self, role: AgentRole) -> Agent:
        agent = self.get_agent(role)
        if agent is None:
            raise AgentNotRegisteredError(role)
        return agent

    def _select_agent(self, task: Task) -> Optional[Agent]:
        with self._lock:
            agents = list(self._agents.values())
            for agent in agents:
                if agent.can_handle(task):
                    return agent
            role = TASK_TYPE_ROLES.get(task.type)
            return self._agents.get(role) if role is not None else None

    # ------------------------------------------------------------------
    # pipeline

    async def collaborate(
        self,
        query: str,
        time_range: Union[TimeRange, Tuple[int, int]],
        services: Sequence[str],
        alerts: Iterable[Alert],
        deadline: Optional[float] = None,
    ) -> AnalysisReport:
        """Run the full analysis and return the report.

        Args:
            query: 故障描述
            time_range: 时间范围 (unix 秒)
            services: 可疑服务列表，可为空
            alerts: 告警列表，可为空
            deadline: 整体超时（秒），默认取配置中的 deadline

        Raises:
            InvalidInputError: a required argument is None
            AgentNotRegisteredError: planner, decision or output agent missing
        """
        if query is None or time_range is None or services is None or alerts is None:
            raise InvalidInputError("query, time_range, services and alerts are required")
        if not isinstance(time_range, TimeRange):
            time_range = TimeRange(*time_range)

        planner = self._require(AgentRole.PLANNER)
        decision = self._require(AgentRole.DECISION)
        output = self._require(AgentRole.OUTPUT)

        if deadline is None:
            deadline = self.context.config.deadline
        run_deadline = time.monotonic() + deadline if deadline is not None else None

        root_task = Task(
            type=TaskType.ROOT_CAUSE_ANALYSIS,
            query=query,
            time_range=time_range,
            services=list(services),
            alerts=list(alerts),
            deadline=run_deadline,
        )

        start_total = time.time()
        with tracer.start_as_current_span("rca.collaborate") as span:
            span.set_attribute("rca.trace_id", self.context.trace_id)
            span.set_attribute("rca.tenant_id", self.context.tenant_id)
            span.set_attribute("rca.query", query[:500])

            self.logger.info(f"🚀 开始根因分析 [{root_task.id}]")
            self.logger.info(f"   📅 时间范围: {time_range.start} ~ {time_range.end}")
            self.logger.info(f"   🎯 服务: {root_task.services}, 告警: {len(root_task.alerts)}")

            self.logger.info("🔄 Phase 1: 任务规划")
            plan_result = await planner.execute(root_task)
            sub_tasks = self._sub_tasks(root_task, plan_result)

            self.logger.info(f"🔄 Phase 2: 并行执行 {len(sub_tasks)} 个分析任务")
            task_results = await self._execute_parallel_tasks(sub_tasks)

            self.logger.info("🔄 Phase 3: 综合决策")
            decision_task = root_task.subtask(TaskType.DECISION, payload=DecisionInput(task_results))
            decision_result = await decision.execute(decision_task)

            self.logger.info("🔄 Phase 4: 报告生成")
            output_task = root_task.subtask(
                TaskType.OUTPUT,
                payload=OutputInput(task_results=task_results, decision_result=decision_result),
            )
            output_result = await output.execute(output_task)

            duration = time.time() - start_total
            report = self._build_report(root_task, plan_result, task_results,
                                        decision_result, output_result, duration)
            self.context.set_shared(f"report_{report.id}", report)

            span.set_attribute("rca.confidence", report.confidence)
            span.set_attribute("rca.success_rate", report.metadata["success_rate"])

        self._update_performance_stats(task_results, duration)
        self.logger.info(f"✅ 根因分析完成 [{report.id}]")
        self.logger.info(f"   ⏱️  总耗时: {duration:.2f}秒")
        self.logger.info(f"   🎯 根因: {report.root_cause}")
        self.logger.info(f"   📈 置信度: {report.confidence:.3f}")
        return report

    def collaborate_sync(self, *args: Any, **kwargs: Any) -> AnalysisReport:
        """Blocking wrapper around collaborate() for synchronous callers.

        Returns as soon as the report is built. Source calls still blocked
        past the deadline are left to finish on their own threads.
        """
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(self.collaborate(*args, **kwargs))
        finally:
            self.context.shutdown_executor(wait=False)
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def get_report(self, report_id: str) -> Optional[AnalysisReport]:
        return self.context.get_shared(f"report_{report_id}")

    def _sub_tasks(self, root_task: Task, plan_result: TaskResult) -> List[Task]:
        sub_tasks = plan_result.metadata.get("sub_tasks") if plan_result.success else None
        if not sub_tasks:
            self.logger.warning("⚠️ 规划结果中没有子任务，使用默认子任务")
            sub_tasks = default_sub_tasks(root_task, services_from_alerts(root_task))
        return list(sub_tasks)

    async def _execute_parallel_tasks(self, tasks: List[Task]) -> Dict[str, TaskResult]:
        """Run every sub-task concurrently and join on all of them."""
        completed = await asyncio.gather(*(self._execute_single_task(task) for task in tasks))

        results: Dict[str, TaskResult] = {}
        for task, result in zip(tasks, completed):
            if result is None:
                continue
            if result.success:
                self.logger.info(f"✅ 任务 {task.type.value} 完成: 置信度 {result.confidence:.2f}")
            else:
                self.logger.error(f"❌ 任务 {task.type.value} 失败: {result.error}")
            results[task.id] = result
        return results

    async def _execute_single_task(self, task: Task) -> Optional[TaskResult]:
        agent = self._select_agent(task)
        if agent is None:
            self.logger.warning(f"⚠️ 没有可处理 {task.type.value} 的智能体，跳过")
            return None

        role = AgentRole(agent.role())
        remaining = remaining_time(task.deadline)
        start = time.time()
        try:
            if remaining is not None and remaining <= 0:
                raise asyncio.TimeoutError()
            result = await asyncio.wait_for(agent.execute(task), timeout=remaining)
        except asyncio.TimeoutError:
            result = TaskResult.failure(task.id, role, DEADLINE_ERROR)
        except Exception as e:
            self.logger.exception(f"❌ 智能体 {agent.name()} 执行异常")
            result = TaskResult.failure(task.id, role, str(e) or type(e).__name__)

        if self.debug:
            self.logger.info(f"   ⏱️  {agent.name()} 耗时 {time.time() - start:.2f}秒")
        return result

    def _build_report(self, root_task: Task, plan_result: TaskResult, task_results: Dict[str, TaskResult],
                      decision_result: TaskResult, output_result: TaskResult,
                      duration: float) -> AnalysisReport:
        output_meta = output_result.metadata if output_result.success else {}
        successful = successful_results(task_results)
        evidence_chain = build_evidence_chain(task_results)

        root_cause = (output_meta.get("root_cause")
                      or decision_result.metadata.get("root_cause")
                      or NO_ROOT_CAUSE)
        if output_result.success:
            confidence = output_result.confidence
        else:
            confidence = decision_result.metadata.get("confidence", decision_result.confidence)

        return AnalysisReport(
            id=root_task.id,
            query=root_task.query,
            time_range=root_task.time_range,
            summary=output_meta.get("summary", ""),
            root_cause=root_cause,
            affected_services=output_meta.get("affected_services") or affected_services(task_results),
            evidence_chain=evidence_chain,
            findings=[f for result in successful for f in result.findings],
            recommendations=output_meta.get("recommendations") or default_recommendations(root_cause),
            confidence=confidence,
            timeline=(output_meta.get("timeline")
                      or build_timeline(task_results, fallback_timestamp=root_task.time_range.end)),
            metadata={
                "trace_id": self.context.trace_id,
                "tenant_id": self.context.tenant_id,
                "plan": plan_result.metadata.get("plan", ""),
                "task_count": len(task_results),
                "successful_tasks": len(successful),
                "success_rate": success_rate(task_results),
                "task_errors": {r.agent_role.value: r.error for r in task_results.values() if not r.success},
                "root_cause_service": decision_result.metadata.get("root_cause_service"),
                "root_causes": decision_result.metadata.get("root_causes", []),
                "conflicts": decision_result.metadata.get("conflicts", []),
                "evidence_summary": summarize_evidence(evidence_chain),
                "reasoning": decision_result.metadata.get("reasoning", ""),
                "duration_seconds": duration,
            },
        )

    def _update_performance_stats(self, task_results: Dict[str, TaskResult], duration: float) -> None:
        with self._lock:
            stats = self.performance_stats
            stats['total_runs'] += 1
            succeeded = len(successful_results(task_results))
            stats['successful_tasks'] += succeeded
            stats['failed_tasks'] += len(task_results) - succeeded
            # 指数移动平均
            alpha = 0.1 if stats['total_runs'] > 1 else 1.0
            stats['avg_duration_seconds'] = alpha * duration + (1 - alpha) * stats['avg_duration_seconds']

    def get_performance_report(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self.performance_stats)
