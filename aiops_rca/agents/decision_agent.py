#!/usr/bin/env python
"""
Decision Agent - 分析决策智能体
汇总证据、关联分析、冲突消解、生成并排序根因假设
"""

import logging
from typing import Dict, List, Tuple

from ..aiops_engine.evidence_correlation import (
    EvidenceCorrelator,
    build_hypotheses,
    select_root_cause,
)
from ..exceptions import InvalidInputError
from ..framework.agent import (
    agent_span,
    ask_llm,
    handles_task_type,
    record_result,
    successful_results,
    upstream_task_results,
)
from ..framework.context import CollaborationContext
from ..framework.task import (
    NO_ROOT_CAUSE,
    AgentRole,
    Evidence,
    Finding,
    SeverityLevel,
    Task,
    TaskResult,
)
from ..prompts import create_decision_prompt, decision_system_prompt

NO_ROOT_CAUSE_CONFIDENCE = 0.3


class DecisionAgent:
    """分析决策智能体"""

    def __init__(self, context: CollaborationContext, debug: bool = False):
        self.context = context
        self.debug = debug or context.config.debug
        self.logger = logging.getLogger(__name__)
        self.correlator = EvidenceCorrelator(
            temporal_window_sec=context.config.temporal_window_sec,
            conflict_window_sec=context.config.conflict_window_sec,
        )

    def role(self) -> AgentRole:
        return AgentRole.DECISION

    def name(self) -> str:
        return "分析决策智能体"

    def can_handle(self, task: Task) -> bool:
        return handles_task_type(self.role(), task)

    @staticmethod
    def collect(task_results: Dict[str, TaskResult]) -> Tuple[List[Evidence], List[Finding], List[str]]:
        """Evidence, findings and service first-appearance order of successful results."""
        evidence, findings, services = [], [], []
        for result in successful_results(task_results):
            for item in result.evidence:
                evidence.append(item)
                if item.service not in services:
                    services.append(item.service)
            for item in result.findings:
                findings.append(item)
                if item.service not in services:
                    services.append(item.service)
        return evidence, findings, services

    async def execute(self, task: Task) -> TaskResult:
        if task is None:
            raise InvalidInputError("task is required")

        with agent_span(self.role(), task) as span:
            task_results = upstream_task_results(task)
            if task_results is None:
                self.logger.error("❌ 决策任务缺少分析结果")
                return record_result(span, TaskResult.failure(task.id, self.role(), "missing task results"))

            evidence, findings, services = self.collect(task_results)
            self.logger.info(f"🔍 开始综合决策: {len(evidence)} 条证据, {len(findings)} 个发现")

            correlations = self.correlator.correlate(evidence)
            conflicts = self.correlator.detect_conflicts(evidence)
            hypotheses = build_hypotheses(evidence, findings, service_order=services)
            winner = select_root_cause(hypotheses)

            config = self.context.config
            reasoning, ok = await ask_llm(
                self.context.chat,
                decision_system_prompt,
                create_decision_prompt(
                    evidence, findings, correlations, hypotheses,
                    evidence_limit=config.prompt_evidence_limit,
                    finding_limit=config.prompt_finding_limit,
                    hypothesis_limit=config.prompt_hypothesis_limit,
                ),
                memory=self.context.memory,
                timeout=config.llm_timeout_sec,
                deadline=task.deadline,
            )
            if not ok:
                reasoning = f"LLM 推理失败: {reasoning}"

            if winner is not None:
                root_cause = winner.description
                confidence = winner.confidence
                result_findings = [Finding(
                    type="root_cause",
                    service=winner.service,
                    description=winner.description,
                    severity=winner.severity,
                    score=winner.confidence,
                )]
                severity = winner.severity
                self.logger.info(f"✅ 根因判定: {winner.service} (置信度 {confidence:.2f})")
            else:
                root_cause = NO_ROOT_CAUSE
                confidence = NO_ROOT_CAUSE_CONFIDENCE
                result_findings = []
                severity = SeverityLevel.LOW
                self.logger.warning("⚠️ 未找到明确根因")

            result = TaskResult(
                task_id=task.id,
                agent_role=self.role(),
                success=True,
                findings=result_findings,
                confidence=confidence,
                metadata={
                    "all_evidence": evidence,
                    "all_findings": findings,
                    "correlations": [c.to_dict() for c in correlations],
                    "conflicts": [c.to_dict() for c in conflicts],
                    "root_causes": [h.to_dict() for h in hypotheses],
                    "hypotheses": hypotheses,
                    "root_cause": root_cause,
                    "root_cause_service": winner.service if winner else None,
                    "severity": severity.value,
                    "confidence": confidence,
                    "reasoning": reasoning,
                },
                next_actions=[f"优先处理服务 {winner.service}"] if winner else [],
            )
            return record_result(span, result)
