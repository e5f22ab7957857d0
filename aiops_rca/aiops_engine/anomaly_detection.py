#!/usr/bin/env python
"""
指标异常检测和关联分析引擎
基于 3-σ 规则的时序异常检测 + 指标对 Pearson 相关性分析
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from ..datasources.base import MetricPoint
from ..framework.agent import bucket_severity
from ..framework.task import SeverityLevel, clamp

# 固定的指标对
CORRELATION_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("cpu_usage", "qps"),
    ("error_rate", "latency"),
    ("memory_usage", "cpu_usage"),
)


@dataclass
class MetricAnomaly:
    """异常检测结果"""
    service: str
    metric: str
    timestamp: int
    value: float
    mean: float
    std: float
    deviation: float
    score: float
    severity: SeverityLevel

    @property
    def description(self) -> str:
        return (f"{self.service} {self.metric} 异常: 当前值 {self.value:.2f}, "
                f"期望值 {self.mean:.2f}, 偏差 {self.deviation:.2f}")

    def to_dict(self) -> Dict[str, object]:
        return {
            "service": self.service,
            "metric": self.metric,
            "timestamp": self.timestamp,
            "value": self.value,
            "mean": self.mean,
            "std": self.std,
            "score": self.score,
            "severity": self.severity.value,
        }


@dataclass
class MetricCorrelation:
    """同一服务内两个指标的相关性"""
    service: str
    metric1: str
    metric2: str
    coefficient: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "service": self.service,
            "metric1": self.metric1,
            "metric2": self.metric2,
            "coefficient": self.coefficient,
        }


def group_series(points: Iterable[MetricPoint]) -> Dict[Tuple[str, str], List[MetricPoint]]:
    """Group points by (service, metric), keeping first-seen order."""
    groups: Dict[Tuple[str, str], List[MetricPoint]] = {}
    for point in points:
        groups.setdefault((point.service, point.metric), []).append(point)
    return groups


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson coefficient; 0 for fewer than two points or zero variance."""
    if len(x) != len(y) or len(x) < 2:
        return 0.0

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denominator = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    if denominator == 0:
        return 0.0
    return float(np.clip(np.sum(dx * dy) / denominator, -1.0, 1.0))


class AnomalyDetectionEngine:
    """时序异常检测引擎

    A point is anomalous when it lies more than ``sigma`` population standard
    deviations away from its series mean.
    """

    def __init__(self, sigma: float = 3.0, min_points: int = 3, debug: bool = False):
        self.sigma = sigma
        self.min_points = min_points
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def detect(self, points: Iterable[MetricPoint]) -> List[MetricAnomaly]:
        anomalies = []
        for (service, metric), series in group_series(points).items():
            if len(series) < self.min_points:
                continue
            anomalies.extend(self._detect_series(service, metric, series))

        if self.debug:
            self.logger.info(f"📊 检测到 {len(anomalies)} 个指标异常")
        return anomalies

    def _detect_series(self, service: str, metric: str, series: List[MetricPoint]) -> List[MetricAnomaly]:
        values = np.array([p.value for p in series], dtype=float)
        mean = float(values.mean())
        std = float(values.std())
        if std == 0:
            return []

        threshold = self.sigma * std
        anomalies = []
        for point in series:
            deviation = abs(point.value - mean)
            if deviation <= threshold:
                continue
            score = clamp(deviation / threshold)
            anomalies.append(MetricAnomaly(
                service=service,
                metric=metric,
                timestamp=point.timestamp,
                value=point.value,
                mean=mean,
                std=std,
                deviation=deviation,
                score=score,
                severity=bucket_severity(score),
            ))
        return anomalies


class CorrelationAnalysisEngine:
    """指标关联分析引擎"""

    def __init__(self, threshold: float = 0.7,
                 pairs: Sequence[Tuple[str, str]] = CORRELATION_PAIRS, debug: bool = False):
        self.threshold = threshold
        self.pairs = tuple(pairs)
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def analyze(self, points: Iterable[MetricPoint]) -> List[MetricCorrelation]:
        by_service: Dict[str, Dict[str, Dict[int, float]]] = {}
        for (service, metric), series in group_series(points).items():
            by_service.setdefault(service, {})[metric] = {p.timestamp: p.value for p in series}

        correlations = []
        for service, metrics in by_service.items():
            for metric1, metric2 in self.pairs:
                if metric1 not in metrics or metric2 not in metrics:
                    continue
                x, y = self._align(metrics[metric1], metrics[metric2])
                coefficient = pearson_correlation(x, y)
                if abs(coefficient) > self.threshold:
                    correlations.append(MetricCorrelation(service, metric1, metric2, coefficient))

        if self.debug:
            self.logger.info(f"📊 发现 {len(correlations)} 组强相关指标")
        return correlations

    @staticmethod
    def _align(first: Dict[int, float], second: Dict[int, float]) -> Tuple[List[float], List[float]]:
        """Inner join of two series on identical timestamps."""
        common = sorted(set(first) & set(second))
        return [first[t] for t in common], [second[t] for t in common]
