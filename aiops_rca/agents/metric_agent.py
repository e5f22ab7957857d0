#!/usr/bin/env python
"""
Metric Agent - 指标分析智能体
3-σ 异常检测 + 指标相关性分析
"""

import asyncio
import logging
from typing import List, Optional

from ..aiops_engine.anomaly_detection import AnomalyDetectionEngine, CorrelationAnalysisEngine
from ..datasources.base import MetricPoint, MetricsSource
from ..exceptions import InvalidInputError
from ..framework.agent import (
    DEADLINE_ERROR,
    agent_span,
    ask_llm,
    fetch_from_source,
    handles_task_type,
    record_result,
)
from ..framework.context import CollaborationContext
from ..framework.task import AgentRole, Evidence, EvidenceType, Finding, Task, TaskResult
from ..prompts import create_metrics_prompt, metrics_system_prompt


class MetricAgent:
    """指标分析智能体"""

    def __init__(self, context: CollaborationContext, source: Optional[MetricsSource] = None,
                 debug: bool = False):
        self.context = context
        self.source = source
        self.debug = debug or context.config.debug
        self.logger = logging.getLogger(__name__)

        config = context.config
        self.detector = AnomalyDetectionEngine(sigma=config.anomaly_sigma, debug=self.debug)
        self.correlator = CorrelationAnalysisEngine(threshold=config.correlation_min, debug=self.debug)
        self.logger.info(f"✅ MetricAgent初始化完成 (数据源: {type(source).__name__ if source else '无'})")

    def role(self) -> AgentRole:
        return AgentRole.METRICS

    def name(self) -> str:
        return "指标分析智能体"

    def can_handle(self, task: Task) -> bool:
        return handles_task_type(self.role(), task)

    async def execute(self, task: Task) -> TaskResult:
        if task is None:
            raise InvalidInputError("task is required")
        with agent_span(self.role(), task) as span:
            return record_result(span, await self._analyze(task))

    async def _fetch(self, task: Task) -> List[MetricPoint]:
        if self.source is None:
            return []
        points = await fetch_from_source(self.source, task.services, task.time_range, task.deadline,
                                         executor=self.context.executor)
        wanted = set(task.services)
        return [p for p in points or [] if p.service in wanted]

    async def _analyze(self, task: Task) -> TaskResult:
        self.logger.info(f"🔍 开始指标分析: {task.services}")
        try:
            points = await self._fetch(task)
        except asyncio.TimeoutError:
            self.logger.error("❌ 指标数据获取超时")
            return TaskResult.failure(task.id, self.role(), DEADLINE_ERROR)
        except Exception as e:
            self.logger.error(f"❌ 指标数据获取失败: {e}")
            return TaskResult.failure(task.id, self.role(), str(e))

        anomalies = self.detector.detect(points)
        correlations = self.correlator.analyze(points)

        evidence = []
        findings = []
        for anomaly in anomalies:
            evidence.append(Evidence(
                type=EvidenceType.METRICS,
                service=anomaly.service,
                timestamp=anomaly.timestamp,
                description=anomaly.description,
                data=anomaly.to_dict(),
                score=anomaly.score,
            ))
            findings.append(Finding(
                type="metric_anomaly",
                service=anomaly.service,
                description=anomaly.description,
                severity=anomaly.severity,
                score=anomaly.score,
            ))

        analysis, ok = await ask_llm(
            self.context.chat,
            metrics_system_prompt,
            create_metrics_prompt(task.query, len(points), anomalies, correlations),
            memory=self.context.memory,
            timeout=self.context.config.llm_timeout_sec,
            deadline=task.deadline,
        )
        if not ok:
            analysis = f"LLM 分析失败: {analysis}"

        next_actions = []
        for service in dict.fromkeys(a.service for a in anomalies):
            next_actions.append(f"检查服务 {service} 的资源使用和近期变更")

        self.logger.info(f"📊 指标分析完成: {len(points)} 个数据点, {len(anomalies)} 个异常, "
                         f"{len(correlations)} 组相关指标")

        return TaskResult(
            task_id=task.id,
            agent_role=self.role(),
            success=True,
            evidence=evidence,
            findings=findings,
            confidence=self._confidence(len(anomalies), len(correlations)),
            metadata={
                "metrics_count": len(points),
                "anomalies": [a.to_dict() for a in anomalies],
                "correlations": [c.to_dict() for c in correlations],
                "analysis": analysis,
            },
            next_actions=next_actions,
        )

    @staticmethod
    def _confidence(anomaly_count: int, correlation_count: int) -> float:
        if anomaly_count == 0:
            return 0.3
        return min(0.5 + min(anomaly_count * 0.1, 0.3) + min(correlation_count * 0.05, 0.2), 1.0)
