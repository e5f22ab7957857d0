#!/usr/bin/env python
"""
服务拓扑分析引擎
依赖深度、故障传播路径、关键路径和影响范围分析
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..datasources.base import ServiceEdge, ServiceNode, Topology
from ..framework.agent import bucket_severity
from ..framework.task import SeverityLevel

# 超过该数量的依赖者视为瓶颈
BOTTLENECK_DEPENDENTS = 3


@dataclass
class DependencyInfo:
    service: str
    upstream: List[str]
    downstream: List[str]
    depth: int

    def to_dict(self) -> Dict[str, object]:
        return {"service": self.service, "upstream": self.upstream,
                "downstream": self.downstream, "depth": self.depth}


@dataclass
class PropagationPath:
    """故障传播路径 (downstream)"""
    source: str
    target: str
    path: List[str]
    impact: float
    severity: SeverityLevel

    @property
    def description(self) -> str:
        return f"{self.source}->{self.target}"

    def to_dict(self) -> Dict[str, object]:
        return {"source": self.source, "target": self.target, "path": self.path,
                "impact": self.impact, "severity": self.severity.value}


@dataclass
class CriticalPath:
    """关键路径 (upstream)"""
    service: str
    path: List[str]
    criticality: float
    severity: SeverityLevel
    bottleneck: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {"service": self.service, "path": self.path, "criticality": self.criticality,
                "severity": self.severity.value, "bottleneck": self.bottleneck}


@dataclass
class TopologyAnalysis:
    dependencies: List[DependencyInfo] = field(default_factory=list)
    propagation_paths: List[PropagationPath] = field(default_factory=list)
    critical_paths: List[CriticalPath] = field(default_factory=list)
    impact_scope: List[str] = field(default_factory=list)


class TopologyAnalyzer:
    """拓扑分析器

    Works on a read-only view of the fetched topology; the topology object
    itself is never modified.
    """

    def __init__(self, topology: Topology, latency_reference_ms: float = 1000.0, debug: bool = False):
        self.topology = topology
        self.latency_reference_ms = latency_reference_ms
        self.debug = debug
        self.logger = logging.getLogger(__name__)
        self._nodes: Dict[str, ServiceNode] = topology.node_map()

    @property
    def is_empty(self) -> bool:
        return not self._nodes

    def _targets(self, node: ServiceNode, downstream: bool) -> List[str]:
        return node.dependencies if downstream else node.dependents

    def dependency_depth(self, service: str, visited: Optional[Set[str]] = None) -> int:
        """Longest chain of outgoing calls; a shared visited set breaks cycles."""
        visited = set() if visited is None else visited
        if service in visited:
            return 0
        visited.add(service)

        node = self._nodes.get(service)
        if node is None or not node.dependencies:
            return 0
        return max(self.dependency_depth(dep, visited) + 1 for dep in node.dependencies)

    def analyze_dependencies(self, services: List[str]) -> List[DependencyInfo]:
        dependencies = []
        for service in services:
            node = self._nodes.get(service)
            if node is None:
                continue
            dependencies.append(DependencyInfo(
                service=service,
                upstream=list(node.dependencies),
                downstream=list(node.dependents),
                depth=self.dependency_depth(service),
            ))
        return dependencies

    def find_paths(self, start: str, downstream: bool = True) -> List[List[str]]:
        """DFS from ``start`` with one visited set for the whole walk.

        Each reachable leaf yields at most one path; paths shorter than two
        nodes are dropped.
        """
        paths: List[List[str]] = []
        visited: Set[str] = set()

        def dfs(current: str, path: List[str]) -> None:
            if current in visited:
                return
            visited.add(current)
            path = path + [current]

            node = self._nodes.get(current)
            if node is None:
                return

            targets = self._targets(node, downstream)
            if not targets:
                if len(path) > 1:
                    paths.append(path)
                return

            for target in targets:
                dfs(target, path)

        dfs(start, [])
        return paths

    def _edge_between(self, first: str, second: str) -> Optional[ServiceEdge]:
        return self.topology.find_edge(first, second) or self.topology.find_edge(second, first)

    def impact_score(self, path: List[str]) -> float:
        base = min(len(path) / 10.0, 1.0)
        error_rate = sum(edge.error_rate for edge in self._path_edges(path))
        return base + min(error_rate * 10.0, 0.5)

    def criticality(self, path: List[str]) -> float:
        if not path:
            return 0.0
        base = min(len(path) / 10.0, 0.7)
        edges = self._path_edges(path)
        latency = sum(edge.latency for edge in edges)
        error_rate = sum(edge.error_rate for edge in edges)
        return base + min(latency / self.latency_reference_ms, 0.15) + min(error_rate * 5.0, 0.15)

    def _path_edges(self, path: List[str]) -> List[ServiceEdge]:
        edges = []
        for first, second in zip(path, path[1:]):
            edge = self._edge_between(first, second)
            if edge is not None:
                edges.append(edge)
        return edges

    def is_bottleneck(self, path: List[str]) -> bool:
        for service in path:
            node = self._nodes.get(service)
            if node is not None and len(node.dependents) > BOTTLENECK_DEPENDENTS:
                return True
        return False

    def propagation_paths(self, services: List[str]) -> List[PropagationPath]:
        result = []
        for service in services:
            for path in self.find_paths(service, downstream=True):
                impact = self.impact_score(path)
                result.append(PropagationPath(
                    source=path[0],
                    target=path[-1],
                    path=path,
                    impact=impact,
                    severity=bucket_severity(impact),
                ))
        return result

    def critical_paths(self, services: List[str]) -> List[CriticalPath]:
        result = []
        for service in services:
            for path in self.find_paths(service, downstream=False):
                criticality = self.criticality(path)
                result.append(CriticalPath(
                    service=path[0],
                    path=path,
                    criticality=criticality,
                    severity=bucket_severity(criticality),
                    bottleneck=self.is_bottleneck(path),
                ))
        return result

    def impact_scope(self, services: List[str]) -> List[str]:
        """Input services plus everything reachable over outgoing edges."""
        scope: List[str] = []
        seen: Set[str] = set()
        for service in services:
            if service not in seen:
                seen.add(service)
                scope.append(service)

        for service in services:
            frontier = [service]
            while frontier:
                node = self._nodes.get(frontier.pop(0))
                if node is None:
                    continue
                for dep in node.dependencies:
                    if dep not in seen:
                        seen.add(dep)
                        scope.append(dep)
                        frontier.append(dep)
        return scope

    def analyze(self, services: List[str]) -> TopologyAnalysis:
        analysis = TopologyAnalysis(
            dependencies=self.analyze_dependencies(services),
            propagation_paths=self.propagation_paths(services),
            critical_paths=self.critical_paths(services),
            impact_scope=self.impact_scope(services),
        )
        if self.debug:
            self.logger.info(
                f"📊 拓扑分析: {len(analysis.propagation_paths)} 条传播路径, "
                f"{len(analysis.critical_paths)} 条关键路径, 影响范围 {len(analysis.impact_scope)} 个服务"
            )
        return analysis
