#!/usr/bin/env python
"""
Planner Agent - 任务规划智能体
分析根任务并拆分为指标/日志/拓扑三个子任务
"""

import logging
import time
from typing import Any, Dict, List

from ..exceptions import InvalidInputError
from ..framework.agent import (
    agent_span,
    ask_llm,
    default_sub_tasks,
    handles_task_type,
    record_result,
    services_from_alerts,
)
from ..framework.context import CollaborationContext
from ..framework.task import AgentRole, SeverityLevel, Task, TaskResult
from ..prompts import DEFAULT_PLAN, create_plan_prompt, planner_system_prompt

PLANNER_CONFIDENCE = 0.9
RECENT_WINDOW_SEC = 3600


class PlannerAgent:
    """任务规划智能体"""

    def __init__(self, context: CollaborationContext, debug: bool = False):
        self.context = context
        self.debug = debug or context.config.debug
        self.logger = logging.getLogger(__name__)

    def role(self) -> AgentRole:
        return AgentRole.PLANNER

    def name(self) -> str:
        return "任务规划智能体"

    def can_handle(self, task: Task) -> bool:
        return handles_task_type(self.role(), task)

    def analyze_task(self, task: Task, services: List[str]) -> Dict[str, Any]:
        """告警和时间窗口统计"""
        return {
            "alert_count": len(task.alerts),
            "critical_count": sum(1 for a in task.alerts if a.severity == SeverityLevel.CRITICAL),
            "high_count": sum(1 for a in task.alerts if a.severity == SeverityLevel.HIGH),
            "affected_services": list(services),
            "service_count": len(services),
            "time_window_seconds": task.time_range.duration,
            "is_recent": time.time() - task.time_range.end < RECENT_WINDOW_SEC,
        }

    async def execute(self, task: Task) -> TaskResult:
        if task is None:
            raise InvalidInputError("task is required")

        with agent_span(self.role(), task) as span:
            services = services_from_alerts(task)
            analysis = self.analyze_task(task, services)
            self.logger.info(f"🚀 开始任务规划: {len(services)} 个服务, {analysis['alert_count']} 条告警")

            plan, ok = await ask_llm(
                self.context.chat,
                planner_system_prompt,
                create_plan_prompt(task.query, task.time_range.start, task.time_range.end, services,
                                   analysis["alert_count"], analysis["critical_count"]),
                memory=self.context.memory,
                timeout=self.context.config.llm_timeout_sec,
                deadline=task.deadline,
            )
            if not ok or not plan.strip():
                self.logger.warning(f"⚠️ 使用默认分析计划 ({plan})")
                plan = DEFAULT_PLAN

            sub_tasks = default_sub_tasks(task, services)
            if self.debug:
                for sub_task in sub_tasks:
                    self.logger.info(f"   📋 子任务 {sub_task.id}: {sub_task.type.value}")

            result = TaskResult(
                task_id=task.id,
                agent_role=self.role(),
                success=True,
                confidence=PLANNER_CONFIDENCE,
                metadata={
                    "sub_tasks": sub_tasks,
                    "plan": plan,
                    "analysis": analysis,
                    "services": services,
                },
                next_actions=["执行指标分析", "执行日志分析", "执行拓扑分析"],
            )
            self.logger.info(f"✅ 任务规划完成: {len(sub_tasks)} 个子任务")
            return record_result(span, result)
