#!/usr/bin/env python
"""
数据源记录格式与数据源接口
Records delivered by metrics, logs and topology sources.
"""

from typing import Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from ..framework.task import TimeRange


class MetricPoint(BaseModel):
    """指标数据点"""
    service: str = Field(..., description="服务名")
    metric: str = Field(..., description="指标名，如 cpu_usage, qps, latency")
    timestamp: int = Field(..., description="Unix 秒")
    value: float = Field(..., description="指标值")
    labels: Dict[str, str] = Field(default_factory=dict, description="标签")


class LogEntry(BaseModel):
    """日志条目"""
    service: str = Field(..., description="服务名")
    level: str = Field("INFO", description="日志级别")
    timestamp: int = Field(..., description="Unix 秒")
    message: str = Field(..., description="日志内容")
    trace_id: str = Field("", description="关联的 trace id")
    labels: Dict[str, str] = Field(default_factory=dict, description="标签")
    raw: str = Field("", description="原始日志行")


class ServiceNode(BaseModel):
    """拓扑节点"""
    name: str
    type: str = Field("service", description="service, database, cache, queue ...")
    status: str = Field("healthy", description="healthy, degraded, down")
    dependencies: List[str] = Field(default_factory=list, description="本服务调用的服务")
    dependents: List[str] = Field(default_factory=list, description="调用本服务的服务")


class ServiceEdge(BaseModel):
    """拓扑边（调用关系）"""
    source: str
    target: str
    type: str = Field("http", description="http, grpc, database, cache ...")
    weight: float = 1.0
    latency: float = Field(0.0, description="平均延迟 (ms)")
    error_rate: float = Field(0.0, description="错误率")


class Topology(BaseModel):
    """服务拓扑 (read-only once fetched)"""
    nodes: List[ServiceNode] = Field(default_factory=list)
    edges: List[ServiceEdge] = Field(default_factory=list)
    updated_at: int = 0

    @classmethod
    def from_edges(cls, edges: List[ServiceEdge], updated_at: int = 0) -> "Topology":
        """Derive nodes (with dependencies/dependents) from call edges."""
        nodes: Dict[str, ServiceNode] = {}
        for edge in edges:
            for name in (edge.source, edge.target):
                if name not in nodes:
                    nodes[name] = ServiceNode(name=name)
            if edge.target not in nodes[edge.source].dependencies:
                nodes[edge.source].dependencies.append(edge.target)
            if edge.source not in nodes[edge.target].dependents:
                nodes[edge.target].dependents.append(edge.source)
        return cls(nodes=list(nodes.values()), edges=list(edges), updated_at=updated_at)

    def node_map(self) -> Dict[str, ServiceNode]:
        return {node.name: node for node in self.nodes}

    def find_edge(self, source: str, target: str) -> Optional[ServiceEdge]:
        for edge in self.edges:
            if edge.source == source and edge.target == target:
                return edge
        return None


@runtime_checkable
class MetricsSource(Protocol):
    def fetch(self, services: List[str], time_range: TimeRange) -> List[MetricPoint]: ...


@runtime_checkable
class LogsSource(Protocol):
    def fetch(self, services: List[str], time_range: TimeRange) -> List[LogEntry]: ...


@runtime_checkable
class TopologySource(Protocol):
    def fetch(self, services: List[str], time_range: TimeRange) -> Topology: ...
