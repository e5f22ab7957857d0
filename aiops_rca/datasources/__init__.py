"""
数据源接口与本地实现
"""

from .base import (
    LogEntry,
    LogsSource,
    MetricPoint,
    MetricsSource,
    ServiceEdge,
    ServiceNode,
    Topology,
    TopologySource,
)
from .local import (
    JsonLogsSource,
    JsonMetricsSource,
    JsonTopologySource,
    LocalDataLoader,
    StaticLogsSource,
    StaticMetricsSource,
    StaticTopologySource,
)

__all__ = [
    # Records
    'MetricPoint',
    'LogEntry',
    'ServiceNode',
    'ServiceEdge',
    'Topology',

    # Interfaces
    'MetricsSource',
    'LogsSource',
    'TopologySource',

    # Local implementations
    'LocalDataLoader',
    'StaticMetricsSource',
    'StaticLogsSource',
    'StaticTopologySource',
    'JsonMetricsSource',
    'JsonLogsSource',
    'JsonTopologySource',
]
