#!/usr/bin/env python
"""
Topology Agent - 拓扑分析智能体
依赖分析、故障传播路径、关键路径与影响范围
"""

import asyncio
import logging
from typing import Optional

from ..aiops_engine.topology_analysis import TopologyAnalyzer
from ..datasources.base import Topology, TopologySource
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
from ..prompts import create_topology_prompt, topology_system_prompt


class TopologyAgent:
    """拓扑分析智能体"""

    def __init__(self, context: CollaborationContext, source: Optional[TopologySource] = None,
                 debug: bool = False):
        self.context = context
        self.source = source
        self.debug = debug or context.config.debug
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"✅ TopologyAgent初始化完成 (数据源: {type(source).__name__ if source else '无'})")

    def role(self) -> AgentRole:
        return AgentRole.TOPOLOGY

    def name(self) -> str:
        return "拓扑分析智能体"

    def can_handle(self, task: Task) -> bool:
        return handles_task_type(self.role(), task)

    async def execute(self, task: Task) -> TaskResult:
        if task is None:
            raise InvalidInputError("task is required")
        with agent_span(self.role(), task) as span:
            return record_result(span, await self._analyze(task))

    async def _fetch(self, task: Task) -> Topology:
        if self.source is None:
            return Topology()
        topology = await fetch_from_source(self.source, task.services, task.time_range, task.deadline,
                                           executor=self.context.executor)
        return topology if topology is not None else Topology()

    async def _analyze(self, task: Task) -> TaskResult:
        self.logger.info(f"🔍 开始拓扑分析: {task.services}")
        try:
            topology = await self._fetch(task)
        except asyncio.TimeoutError:
            self.logger.error("❌ 拓扑数据获取超时")
            return TaskResult.failure(task.id, self.role(), DEADLINE_ERROR)
        except Exception as e:
            self.logger.error(f"❌ 拓扑数据获取失败: {e}")
            return TaskResult.failure(task.id, self.role(), str(e))

        analyzer = TopologyAnalyzer(
            topology,
            latency_reference_ms=self.context.config.critical_path_latency_ms,
            debug=self.debug,
        )
        analysis = analyzer.analyze(task.services)

        evidence = [
            Evidence(
                type=EvidenceType.TOPOLOGY,
                service=path.source,
                timestamp=task.time_range.start,
                description=path.description,
                data=list(path.path),
                score=path.impact,
            )
            for path in analysis.propagation_paths
        ]

        findings = []
        for path in analysis.critical_paths:
            description = f"关键路径: {' <- '.join(path.path)}"
            if path.bottleneck:
                description += " (存在瓶颈服务)"
            findings.append(Finding(
                type="critical_path",
                service=path.service,
                description=description,
                severity=path.severity,
                score=path.criticality,
            ))

        llm_analysis, ok = await ask_llm(
            self.context.chat,
            topology_system_prompt,
            create_topology_prompt(task.query, analysis.dependencies, analysis.propagation_paths,
                                   analysis.impact_scope),
            memory=self.context.memory,
            timeout=self.context.config.llm_timeout_sec,
            deadline=task.deadline,
        )
        if not ok:
            llm_analysis = f"LLM 分析失败: {llm_analysis}"

        next_actions = [f"检查下游服务 {s} 的健康状态" for s in analysis.impact_scope
                        if s not in task.services]

        self.logger.info(f"📊 拓扑分析完成: {len(topology.nodes)} 个节点, "
                         f"{len(analysis.propagation_paths)} 条传播路径, "
                         f"{len(analysis.critical_paths)} 条关键路径")

        return TaskResult(
            task_id=task.id,
            agent_role=self.role(),
            success=True,
            evidence=evidence,
            findings=findings,
            confidence=self._confidence(analyzer, len(analysis.propagation_paths), len(analysis.critical_paths)),
            metadata={
                "node_count": len(topology.nodes),
                "edge_count": len(topology.edges),
                "dependencies": [d.to_dict() for d in analysis.dependencies],
                "propagation_paths": [p.to_dict() for p in analysis.propagation_paths],
                "critical_paths": [p.to_dict() for p in analysis.critical_paths],
                "impact_scope": analysis.impact_scope,
                "analysis": llm_analysis,
            },
            next_actions=next_actions,
        )

    @staticmethod
    def _confidence(analyzer: TopologyAnalyzer, path_count: int, critical_count: int) -> float:
        if analyzer.is_empty:
            return 0.3
        return min(0.5 + min(path_count * 0.05, 0.2) + min(critical_count * 0.1, 0.3), 1.0)
