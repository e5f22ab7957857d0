#!/usr/bin/env python
"""
Output Agent - 报告生成智能体
生成摘要、证据链、时间线和修复建议
"""

import logging
from datetime import datetime
from typing import List

from ..exceptions import InvalidInputError
from ..framework.agent import (
    agent_span,
    ask_llm,
    handles_task_type,
    record_result,
    upstream_decision_result,
    upstream_task_results,
)
from ..framework.context import CollaborationContext
from ..framework.task import NO_ROOT_CAUSE, AgentRole, Evidence, Task, TaskResult, clamp
from ..prompts import create_recommendation_prompt, create_summary_prompt, output_system_prompt
from ..utils.evidence_chain import (
    affected_services,
    build_evidence_chain,
    build_timeline,
    default_recommendations,
    parse_recommendations,
    success_rate,
)


class OutputAgent:
    """报告生成智能体"""

    def __init__(self, context: CollaborationContext, debug: bool = False):
        self.context = context
        self.debug = debug or context.config.debug
        self.logger = logging.getLogger(__name__)

    def role(self) -> AgentRole:
        return AgentRole.OUTPUT

    def name(self) -> str:
        return "报告生成智能体"

    def can_handle(self, task: Task) -> bool:
        return handles_task_type(self.role(), task)

    @staticmethod
    def extract_root_cause(decision: TaskResult) -> str:
        root_cause = decision.metadata.get("root_cause")
        if root_cause:
            return root_cause
        if decision.findings:
            return decision.findings[0].description
        return NO_ROOT_CAUSE

    @staticmethod
    def decision_confidence(decision: TaskResult) -> float:
        return clamp(decision.metadata.get("confidence", decision.confidence))

    async def _summary(self, task: Task, root_cause: str, confidence: float, task_count: int) -> str:
        summary, ok = await ask_llm(
            self.context.chat,
            output_system_prompt,
            create_summary_prompt(task.query, task.time_range.start, task.time_range.end,
                                  root_cause, confidence, task_count),
            memory=self.context.memory,
            timeout=self.context.config.llm_timeout_sec,
            deadline=task.deadline,
        )
        if ok and summary.strip():
            return summary.strip()

        start = datetime.fromtimestamp(task.time_range.start).strftime("%Y-%m-%d %H:%M:%S")
        return f"故障分析摘要：在 {start} 时间范围内，系统出现异常。根因：{root_cause}"

    async def _recommendations(self, task: Task, root_cause: str, services: List[str],
                               evidence_chain: List[Evidence]) -> List[str]:
        content, ok = await ask_llm(
            self.context.chat,
            output_system_prompt,
            create_recommendation_prompt(root_cause, services, evidence_chain),
            memory=self.context.memory,
            timeout=self.context.config.llm_timeout_sec,
            deadline=task.deadline,
        )
        recommendations = parse_recommendations(content) if ok else []
        if not recommendations:
            self.logger.info("⚠️ 使用默认修复建议")
            return default_recommendations(root_cause)
        return recommendations

    async def execute(self, task: Task) -> TaskResult:
        if task is None:
            raise InvalidInputError("task is required")

        with agent_span(self.role(), task) as span:
            task_results = upstream_task_results(task)
            if task_results is None:
                self.logger.error("❌ 报告任务缺少分析结果")
                return record_result(span, TaskResult.failure(task.id, self.role(), "missing task results"))
            decision = upstream_decision_result(task)
            if decision is None:
                self.logger.error("❌ 报告任务缺少决策结果")
                return record_result(span, TaskResult.failure(task.id, self.role(), "missing decision result"))

            root_cause = self.extract_root_cause(decision)
            decision_confidence = self.decision_confidence(decision)
            evidence_chain = build_evidence_chain(task_results)
            timeline = build_timeline(task_results, fallback_timestamp=task.time_range.end)
            services = affected_services(task_results)
            rate = success_rate(task_results)
            confidence = clamp(decision_confidence * (0.7 + 0.3 * rate))

            summary = await self._summary(task, root_cause, decision_confidence, len(task_results))
            recommendations = await self._recommendations(task, root_cause, services, evidence_chain)

            self.logger.info(f"📊 报告生成完成: {len(evidence_chain)} 条证据, {len(timeline)} 个事件, "
                             f"置信度 {confidence:.2f}")

            result = TaskResult(
                task_id=task.id,
                agent_role=self.role(),
                success=True,
                findings=list(decision.findings),
                confidence=confidence,
                metadata={
                    "summary": summary,
                    "root_cause": root_cause,
                    "recommendations": recommendations,
                    "timeline": timeline,
                    "evidence_chain": evidence_chain,
                    "affected_services": services,
                    "success_rate": rate,
                    "confidence": confidence,
                },
            )
            return record_result(span, result)
