#!/usr/bin/env python
"""
本地数据源
In-memory sources for tests/embedding and JSON-file sources reading a
scenario directory (metrics.json, logs.json, topology.json, alerts.json).
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..exceptions import DataSourceError
from ..framework.task import Alert, TimeRange
from .base import LogEntry, MetricPoint, ServiceEdge, ServiceNode, Topology


def _in_window(timestamp: int, time_range: Optional[TimeRange]) -> bool:
    if time_range is None:
        return True
    return time_range.start <= timestamp <= time_range.end


class StaticMetricsSource:
    """固定指标数据"""

    def __init__(self, points: List[MetricPoint], filter_window: bool = True):
        self.points = list(points)
        self.filter_window = filter_window

    def fetch(self, services: List[str], time_range: TimeRange) -> List[MetricPoint]:
        wanted = set(services)
        return [
            p for p in self.points
            if p.service in wanted and (not self.filter_window or _in_window(p.timestamp, time_range))
        ]


class StaticLogsSource:
    """固定日志数据"""

    def __init__(self, logs: List[LogEntry], filter_window: bool = True):
        self.logs = list(logs)
        self.filter_window = filter_window

    def fetch(self, services: List[str], time_range: TimeRange) -> List[LogEntry]:
        wanted = set(services)
        return [
            log for log in self.logs
            if log.service in wanted and (not self.filter_window or _in_window(log.timestamp, time_range))
        ]


class StaticTopologySource:
    """固定拓扑；the whole graph is returned so paths can leave the input set."""

    def __init__(self, topology: Optional[Topology] = None):
        self.topology = topology or Topology()

    def fetch(self, services: List[str], time_range: TimeRange) -> Topology:
        return self.topology


class LocalDataLoader:
    """本地场景数据加载器

    从场景目录加载预先导出的 JSON 数据，已加载的文件会被缓存。
    """

    def __init__(self, data_dir: Union[str, Path], debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger(__name__)
        self.data_dir = Path(data_dir)

        if not self.data_dir.exists():
            raise DataSourceError(f"数据目录不存在: {self.data_dir}")

        self.logger.info(f"🔧 本地数据加载器初始化，数据目录: {self.data_dir}")
        self._data_cache: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def _load_json_file(self, file_name: str) -> Any:
        """加载JSON文件；missing files yield None, unreadable files raise DataSourceError."""
        with self._lock:
            if file_name in self._data_cache:
                return self._data_cache[file_name]

        file_path = self.data_dir / file_name
        if not file_path.exists():
            self.logger.warning(f"⚠️ 文件不存在: {file_path}")
            data = None
        else:
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                self.logger.error(f"❌ 加载文件失败 {file_path}: {e}")
                raise DataSourceError(f"加载文件失败 {file_path}: {e}") from e

            if self.debug:
                size = len(data) if isinstance(data, (list, dict)) else 1
                self.logger.info(f"📊 已加载 {file_name}: {size} 项")

        with self._lock:
            self._data_cache[file_name] = data
        return data

    def _records(self, file_name: str, key: str) -> List[Dict[str, Any]]:
        data = self._load_json_file(file_name)
        if data is None:
            return []
        if isinstance(data, dict):
            data = data.get(key, [])
        if not isinstance(data, list):
            raise DataSourceError(f"{file_name} 格式错误: 期望列表")
        return data

    def load_metrics(self) -> List[MetricPoint]:
        try:
            return [MetricPoint(**item) for item in self._records("metrics.json", "metrics")]
        except (TypeError, ValidationError) as e:
            raise DataSourceError(f"metrics.json 数据无效: {e}") from e

    def load_logs(self) -> List[LogEntry]:
        try:
            return [LogEntry(**item) for item in self._records("logs.json", "logs")]
        except (TypeError, ValidationError) as e:
            raise DataSourceError(f"logs.json 数据无效: {e}") from e

    def load_topology(self) -> Topology:
        data = self._load_json_file("topology.json")
        if not data:
            return Topology()
        try:
            edges = [ServiceEdge(**item) for item in data.get("edges", [])]
            nodes = data.get("nodes")
            if nodes:
                return Topology(nodes=[ServiceNode(**n) for n in nodes], edges=edges,
                                updated_at=data.get("updated_at", 0))
            return Topology.from_edges(edges, updated_at=data.get("updated_at", 0))
        except (AttributeError, TypeError, ValidationError) as e:
            raise DataSourceError(f"topology.json 数据无效: {e}") from e

    def load_alerts(self) -> List[Alert]:
        try:
            return [Alert(**item) for item in self._records("alerts.json", "alerts")]
        except (TypeError, ValueError) as e:
            raise DataSourceError(f"alerts.json 数据无效: {e}") from e

    def clear_cache(self) -> None:
        with self._lock:
            self._data_cache.clear()


class JsonMetricsSource:
    def __init__(self, loader: LocalDataLoader):
        self.loader = loader

    def fetch(self, services: List[str], time_range: TimeRange) -> List[MetricPoint]:
        return StaticMetricsSource(self.loader.load_metrics()).fetch(services, time_range)


class JsonLogsSource:
    def __init__(self, loader: LocalDataLoader):
        self.loader = loader

    def fetch(self, services: List[str], time_range: TimeRange) -> List[LogEntry]:
        return StaticLogsSource(self.loader.load_logs()).fetch(services, time_range)


class JsonTopologySource:
    def __init__(self, loader: LocalDataLoader):
        self.loader = loader

    def fetch(self, services: List[str], time_range: TimeRange) -> Topology:
        return self.loader.load_topology()
