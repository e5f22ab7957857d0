"""
AIOps 分析引擎
指标异常检测、日志聚类、拓扑分析和证据关联评分
"""

from .anomaly_detection import (
    AnomalyDetectionEngine,
    CorrelationAnalysisEngine,
    MetricAnomaly,
    MetricCorrelation,
    pearson_correlation,
)
from .evidence_correlation import (
    EvidenceConflict,
    EvidenceCorrelation,
    EvidenceCorrelator,
    build_hypotheses,
    select_root_cause,
)
from .log_clustering import (
    DrainClusterer,
    LogCluster,
    LogPattern,
    extract_patterns,
    normalize_message,
)
from .topology_analysis import (
    CriticalPath,
    DependencyInfo,
    PropagationPath,
    TopologyAnalysis,
    TopologyAnalyzer,
)

__all__ = [
    # Metrics
    'AnomalyDetectionEngine',
    'CorrelationAnalysisEngine',
    'MetricAnomaly',
    'MetricCorrelation',
    'pearson_correlation',

    # Logs
    'DrainClusterer',
    'LogCluster',
    'LogPattern',
    'extract_patterns',
    'normalize_message',

    # Topology
    'TopologyAnalyzer',
    'TopologyAnalysis',
    'DependencyInfo',
    'PropagationPath',
    'CriticalPath',

    # Evidence correlation
    'EvidenceCorrelator',
    'EvidenceCorrelation',
    'EvidenceConflict',
    'build_hypotheses',
    'select_root_cause',
]
