"""本地数据源单元测试"""

import json

import pytest

from aiops_rca.datasources import (
    JsonLogsSource,
    JsonMetricsSource,
    JsonTopologySource,
    LocalDataLoader,
    MetricPoint,
    StaticMetricsSource,
)
from aiops_rca.exceptions import DataSourceError
from aiops_rca.framework.task import SeverityLevel, TimeRange


@pytest.fixture
def scenario_dir(tmp_path):
    """写入一个最小场景目录"""
    (tmp_path / "metrics.json").write_text(json.dumps([
        {"service": "svc-a", "metric": "cpu_usage", "timestamp": 10, "value": 50.0},
        {"service": "svc-a", "metric": "cpu_usage", "timestamp": 5000, "value": 90.0},
        {"service": "svc-b", "metric": "cpu_usage", "timestamp": 10, "value": 20.0},
    ]), encoding="utf-8")
    (tmp_path / "logs.json").write_text(json.dumps({"logs": [
        {"service": "svc-a", "level": "ERROR", "timestamp": 20, "message": "db timeout"},
    ]}), encoding="utf-8")
    (tmp_path / "topology.json").write_text(json.dumps({"edges": [
        {"source": "svc-a", "target": "svc-b", "latency": 12.5},
    ]}), encoding="utf-8")
    (tmp_path / "alerts.json").write_text(json.dumps([
        {"id": "a1", "service": "svc-a", "severity": "CRITICAL", "message": "cpu high"},
    ]), encoding="utf-8")
    return tmp_path


class TestLocalDataLoader:
    """场景目录加载测试"""

    def test_missing_directory(self, tmp_path):
        """测试：目录不存在时报错"""
        with pytest.raises(DataSourceError):
            LocalDataLoader(tmp_path / "nope")

    def test_load_all(self, scenario_dir):
        """测试：加载指标、日志、拓扑和告警"""
        loader = LocalDataLoader(scenario_dir)

        assert len(loader.load_metrics()) == 3
        assert loader.load_logs()[0].message == "db timeout"
        topology = loader.load_topology()
        assert topology.node_map()["svc-a"].dependencies == ["svc-b"]
        assert topology.node_map()["svc-b"].dependents == ["svc-a"]
        assert topology.find_edge("svc-a", "svc-b").latency == 12.5
        alert = loader.load_alerts()[0]
        assert alert.severity == SeverityLevel.CRITICAL

    def test_missing_files_are_empty(self, tmp_path):
        """测试：缺失的文件视为空数据"""
        loader = LocalDataLoader(tmp_path)
        assert loader.load_metrics() == []
        assert loader.load_alerts() == []
        assert loader.load_topology().nodes == []

    def test_bad_json(self, tmp_path):
        """测试：JSON 格式错误抛出 DataSourceError"""
        (tmp_path / "metrics.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(DataSourceError):
            LocalDataLoader(tmp_path).load_metrics()

    def test_invalid_records(self, tmp_path):
        """测试：记录缺少字段抛出 DataSourceError"""
        (tmp_path / "logs.json").write_text(json.dumps([{"service": "a"}]), encoding="utf-8")
        with pytest.raises(DataSourceError):
            LocalDataLoader(tmp_path).load_logs()

    def test_cache(self, scenario_dir):
        """测试：文件只读取一次，清除缓存后重新读取"""
        loader = LocalDataLoader(scenario_dir)
        assert len(loader.load_metrics()) == 3

        (scenario_dir / "metrics.json").write_text("[]", encoding="utf-8")
        assert len(loader.load_metrics()) == 3

        loader.clear_cache()
        assert loader.load_metrics() == []


class TestSources:
    """数据源过滤测试"""

    def test_json_sources_filter_by_service_and_window(self, scenario_dir):
        """测试：按服务和时间窗口过滤"""
        loader = LocalDataLoader(scenario_dir)
        window = TimeRange(0, 3600)

        points = JsonMetricsSource(loader).fetch(["svc-a"], window)
        logs = JsonLogsSource(loader).fetch(["svc-b"], window)
        topology = JsonTopologySource(loader).fetch(["svc-a"], window)

        assert [p.timestamp for p in points] == [10]
        assert logs == []
        assert len(topology.nodes) == 2

    def test_static_source_without_window_filter(self):
        """测试：关闭时间窗口过滤"""
        points = [MetricPoint(service="a", metric="qps", timestamp=t, value=1.0) for t in (0, 10_000)]
        source = StaticMetricsSource(points, filter_window=False)
        assert len(source.fetch(["a"], TimeRange(0, 100))) == 2
