#!/usr/bin/env python
"""
Log Agent - 日志分析智能体
错误日志过滤、模式挖掘、Drain 聚类与堆栈提取
"""

import asyncio
import logging
from typing import List, Optional

from ..aiops_engine.log_clustering import (
    DrainClusterer,
    evidence_score,
    extract_patterns,
    extract_stack_traces,
    filter_error_logs,
    normalize_level,
    normalize_message,
)
from ..datasources.base import LogEntry, LogsSource
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
from ..prompts import create_logs_prompt, logs_system_prompt


class LogAgent:
    """日志分析智能体"""

    def __init__(self, context: CollaborationContext, source: Optional[LogsSource] = None,
                 debug: bool = False):
        self.context = context
        self.source = source
        self.debug = debug or context.config.debug
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"✅ LogAgent初始化完成 (数据源: {type(source).__name__ if source else '无'})")

    def role(self) -> AgentRole:
        return AgentRole.LOGS

    def name(self) -> str:
        return "日志分析智能体"

    def can_handle(self, task: Task) -> bool:
        return handles_task_type(self.role(), task)

    async def execute(self, task: Task) -> TaskResult:
        if task is None:
            raise InvalidInputError("task is required")
        with agent_span(self.role(), task) as span:
            return record_result(span, await self._analyze(task))

    async def _fetch(self, task: Task) -> List[LogEntry]:
        if self.source is None:
            return []
        logs = await fetch_from_source(self.source, task.services, task.time_range, task.deadline,
                                       executor=self.context.executor)
        wanted = set(task.services)
        return [log for log in logs or [] if log.service in wanted]

    async def _analyze(self, task: Task) -> TaskResult:
        self.logger.info(f"🔍 开始日志分析: {task.services}")
        try:
            logs = await self._fetch(task)
        except asyncio.TimeoutError:
            self.logger.error("❌ 日志数据获取超时")
            return TaskResult.failure(task.id, self.role(), DEADLINE_ERROR)
        except Exception as e:
            self.logger.error(f"❌ 日志数据获取失败: {e}")
            return TaskResult.failure(task.id, self.role(), str(e))

        config = self.context.config
        error_logs = filter_error_logs(logs)
        patterns = extract_patterns(error_logs, min_count=config.pattern_min_count)
        clusterer = DrainClusterer(
            similarity_threshold=config.drain_similarity,
            max_depth=config.drain_max_depth,
            debug=self.debug,
        ).fit(error_logs)
        clusters = clusterer.clusters()

        evidence = []
        stack_traces = []
        for log in error_logs:
            level = normalize_level(log.level)
            evidence.append(Evidence(
                type=EvidenceType.LOGS,
                service=log.service,
                timestamp=log.timestamp,
                description=f"[{level}] {log.message[:200]}",
                data={"level": level, "trace_id": log.trace_id, "template": normalize_message(log.message)},
                score=evidence_score(log),
            ))
            frames = extract_stack_traces(log)
            if frames:
                stack_traces.append({
                    "service": log.service,
                    "timestamp": log.timestamp,
                    "trace_id": log.trace_id,
                    "frames": frames,
                })

        findings = [
            Finding(
                type="error_pattern",
                service=pattern.service,
                description=pattern.description,
                severity=pattern.severity,
                score=pattern.score,
            )
            for pattern in patterns
        ]

        analysis, ok = await ask_llm(
            self.context.chat,
            logs_system_prompt,
            create_logs_prompt(task.query, len(logs), len(error_logs), patterns, clusters),
            memory=self.context.memory,
            timeout=config.llm_timeout_sec,
            deadline=task.deadline,
        )
        if not ok:
            analysis = f"LLM 分析失败: {analysis}"

        next_actions = [f"排查服务 {p.service} 的错误: {p.template}" for p in patterns[:3]]

        self.logger.info(f"📊 日志分析完成: {len(logs)} 条日志, {len(error_logs)} 条错误/警告, "
                         f"{len(patterns)} 个模式, {len(clusters)} 个聚类")

        return TaskResult(
            task_id=task.id,
            agent_role=self.role(),
            success=True,
            evidence=evidence,
            findings=findings,
            confidence=self._confidence(len(error_logs), len(patterns)),
            metadata={
                "total_logs": len(logs),
                "error_logs": len(error_logs),
                "patterns": [p.to_dict() for p in patterns],
                "clusters": [c.to_dict() for c in clusters],
                "stack_traces": stack_traces,
                "analysis": analysis,
            },
            next_actions=next_actions,
        )

    @staticmethod
    def _confidence(log_count: int, pattern_count: int) -> float:
        if log_count == 0:
            return 0.2
        return min(0.5 + min(log_count / 50.0, 0.3) + min(pattern_count * 0.1, 0.2), 1.0)
