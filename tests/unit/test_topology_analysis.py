"""拓扑分析引擎单元测试"""

import time

import pytest

from aiops_rca.aiops_engine.topology_analysis import TopologyAnalyzer
from aiops_rca.datasources import ServiceEdge, Topology
from aiops_rca.framework.task import SeverityLevel


def _topology(*pairs, **edge_kwargs):
    return Topology.from_edges([ServiceEdge(source=s, target=t, **edge_kwargs) for s, t in pairs])


class TestTopologyAnalyzer:
    """依赖、路径与影响范围测试"""

    def test_dependencies(self, chain_topology):
        """测试：上下游与依赖深度"""
        deps = TopologyAnalyzer(chain_topology).analyze_dependencies(["order", "unknown"])

        assert len(deps) == 1
        assert deps[0].upstream == ["db"]
        assert deps[0].downstream == ["gateway"]
        assert deps[0].depth == 1

    def test_downstream_and_upstream_paths(self, chain_topology):
        """测试：下游传播路径和上游关键路径"""
        analyzer = TopologyAnalyzer(chain_topology)

        assert analyzer.find_paths("order", downstream=True) == [["order", "db"]]
        assert analyzer.find_paths("order", downstream=False) == [["order", "gateway"]]
        assert analyzer.find_paths("db", downstream=True) == []

    def test_propagation_path_scoring(self):
        """测试：传播路径影响评分包含边错误率"""
        topology = _topology(("order", "db"), error_rate=0.02)
        paths = TopologyAnalyzer(topology).propagation_paths(["order"])

        assert len(paths) == 1
        assert paths[0].description == "order->db"
        assert paths[0].impact == pytest.approx(0.4)
        assert paths[0].severity == SeverityLevel.MEDIUM

    def test_critical_path_uses_reverse_edges(self):
        """测试：上游路径按反向边取延迟"""
        topology = _topology(("gateway", "order"), latency=500.0)
        paths = TopologyAnalyzer(topology, latency_reference_ms=1000.0).critical_paths(["order"])

        assert len(paths) == 1
        assert paths[0].path == ["order", "gateway"]
        assert paths[0].criticality == pytest.approx(0.2 + 0.15)
        assert not paths[0].bottleneck

    def test_path_edges_come_from_topology_lookup(self):
        """测试：路径评分使用拓扑中首条匹配的边"""
        topology = Topology.from_edges([
            ServiceEdge(source="order", target="db", error_rate=0.02),
            ServiceEdge(source="order", target="db", error_rate=0.5),
        ])
        analyzer = TopologyAnalyzer(topology)

        assert analyzer._edge_between("db", "order") is topology.find_edge("order", "db")
        assert analyzer.propagation_paths(["order"])[0].impact == pytest.approx(0.4)

    def test_bottleneck_detection(self):
        """测试：被 4 个以上服务依赖的节点视为瓶颈"""
        topology = _topology(*[(f"client-{i}", "hub") for i in range(4)])
        paths = TopologyAnalyzer(topology).critical_paths(["hub"])

        # 共享 visited 集合下每个叶子最多一条路径
        assert len(paths) == 4
        assert all(p.bottleneck for p in paths)

    def test_cycle_terminates(self):
        """测试：A->B->A 的环不会死循环"""
        analyzer = TopologyAnalyzer(_topology(("a", "b"), ("b", "a")))

        started = time.monotonic()
        analysis = analyzer.analyze(["a"])

        assert time.monotonic() - started < 1.0
        assert analysis.impact_scope == ["a", "b"]
        assert analysis.propagation_paths == []
        assert analyzer.dependency_depth("a") >= 1

    def test_impact_scope_keeps_unknown_inputs(self, chain_topology):
        """测试：影响范围包含输入服务本身"""
        scope = TopologyAnalyzer(chain_topology).impact_scope(["gateway", "ghost"])
        assert scope == ["gateway", "ghost", "order", "db"]

    def test_empty_topology(self):
        """测试：空拓扑"""
        analyzer = TopologyAnalyzer(Topology())
        analysis = analyzer.analyze(["svc"])

        assert analyzer.is_empty
        assert analysis.impact_scope == ["svc"]
        assert analysis.critical_paths == []

    def test_topology_is_not_modified(self, chain_topology):
        """测试：分析不修改拓扑对象"""
        before = chain_topology.model_dump()
        TopologyAnalyzer(chain_topology).analyze(["gateway", "order", "db"])
        assert chain_topology.model_dump() == before
