#!/usr/bin/env python
"""
证据关联与根因评分引擎
跨智能体证据的时间/空间关联、冲突检测与消解、按服务生成并排序根因假设
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..framework.agent import bucket_severity
from ..framework.task import (
    Evidence,
    EvidenceType,
    Finding,
    RootCauseHypothesis,
    SeverityLevel,
)

TEMPORAL_MIN_SCORE = 0.7
SPATIAL_MIN_SCORE = 0.6
CONFLICT_SCORE_GAP = 0.7
HIGH_ANOMALY_SCORE = 0.7
NORMAL_SCORE = 0.3


@dataclass
class EvidenceCorrelation:
    """两条证据之间的关联"""
    kind: str  # temporal, spatial
    first: Evidence
    second: Evidence
    score: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "first": f"{self.first.service}/{self.first.type.value}@{self.first.timestamp}",
            "second": f"{self.second.service}/{self.second.type.value}@{self.second.timestamp}",
            "score": self.score,
        }


@dataclass
class EvidenceConflict:
    """同一服务在短时间内相互矛盾的证据"""
    service: str
    winner: Evidence
    loser: Evidence
    resolution: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "service": self.service,
            "winner_score": self.winner.score,
            "winner": self.winner.description,
            "loser_score": self.loser.score,
            "loser": self.loser.description,
            "resolution": self.resolution,
        }


class EvidenceCorrelator:
    """证据关联分析器"""

    def __init__(self, temporal_window_sec: float = 3600.0, conflict_window_sec: float = 300.0):
        self.temporal_window_sec = temporal_window_sec
        self.conflict_window_sec = conflict_window_sec
        self.logger = logging.getLogger(__name__)

    def temporal_score(self, first: Evidence, second: Evidence) -> float:
        delta = abs(first.timestamp - second.timestamp)
        if delta >= self.temporal_window_sec:
            return 0.0
        return 1.0 - delta / self.temporal_window_sec

    @staticmethod
    def spatial_score(first: Evidence, second: Evidence) -> float:
        if first.service != second.service:
            return 0.0
        if first.type == second.type:
            return 0.9
        if {first.type, second.type} == {EvidenceType.METRICS, EvidenceType.LOGS}:
            return 0.7
        return 0.5

    def correlate(self, evidence: Sequence[Evidence]) -> List[EvidenceCorrelation]:
        correlations = []
        for i in range(len(evidence)):
            for j in range(i + 1, len(evidence)):
                first, second = evidence[i], evidence[j]
                temporal = self.temporal_score(first, second)
                if temporal > TEMPORAL_MIN_SCORE:
                    correlations.append(EvidenceCorrelation("temporal", first, second, temporal))
                spatial = self.spatial_score(first, second)
                if spatial > SPATIAL_MIN_SCORE:
                    correlations.append(EvidenceCorrelation("spatial", first, second, spatial))
        return correlations

    @staticmethod
    def is_contradictory(first: Evidence, second: Evidence) -> bool:
        if abs(first.score - second.score) <= CONFLICT_SCORE_GAP:
            return False
        high, low = max(first.score, second.score), min(first.score, second.score)
        return high > HIGH_ANOMALY_SCORE and low < NORMAL_SCORE

    def detect_conflicts(self, evidence: Sequence[Evidence]) -> List[EvidenceConflict]:
        """Flag and resolve same-service contradictions; the higher score wins."""
        conflicts = []
        for i in range(len(evidence)):
            for j in range(i + 1, len(evidence)):
                first, second = evidence[i], evidence[j]
                if first.service != second.service:
                    continue
                if abs(first.timestamp - second.timestamp) >= self.conflict_window_sec:
                    continue
                if not self.is_contradictory(first, second):
                    continue
                winner, loser = (first, second) if first.score >= second.score else (second, first)
                conflicts.append(EvidenceConflict(
                    service=first.service,
                    winner=winner,
                    loser=loser,
                    resolution=(f"采用高分证据 ({winner.score:.2f}): {winner.description}; "
                                f"舍弃低分证据 ({loser.score:.2f}): {loser.description}"),
                ))
        if conflicts:
            self.logger.info(f"⚠️ 检测到 {len(conflicts)} 个证据冲突，已按高分证据消解")
        return conflicts


def hypothesis_confidence(evidence: Sequence[Evidence], findings: Sequence[Finding]) -> float:
    if not evidence and not findings:
        return 0.3
    average = sum(e.score for e in evidence) / len(evidence) if evidence else 0.0
    confidence = (0.5
                  + min(len(evidence) * 0.05, 0.2)
                  + min(len(findings) * 0.05, 0.2)
                  + average * 0.1)
    return min(confidence, 1.0)


def hypothesis_severity(evidence: Sequence[Evidence], findings: Sequence[Finding]) -> SeverityLevel:
    severities = {f.severity for f in findings}
    if SeverityLevel.CRITICAL in severities:
        return SeverityLevel.CRITICAL
    if SeverityLevel.HIGH in severities:
        return SeverityLevel.HIGH
    average = sum(e.score for e in evidence) / len(evidence) if evidence else 0.0
    return bucket_severity(average, floor=SeverityLevel.LOW)


def hypothesis_description(service: str, evidence: Sequence[Evidence], findings: Sequence[Finding]) -> str:
    if findings:
        return f"service {service} {findings[0].type}: {findings[0].description}"
    if evidence:
        return f"service {service} {evidence[0].type.value}: {evidence[0].description}"
    return f"service {service} may be anomalous"


def build_hypotheses(evidence: Sequence[Evidence], findings: Sequence[Finding],
                     service_order: Optional[Sequence[str]] = None) -> List[RootCauseHypothesis]:
    """One hypothesis per service, in ``service_order`` (first appearance by default)."""
    grouped_evidence: Dict[str, List[Evidence]] = {}
    grouped_findings: Dict[str, List[Finding]] = {}
    order: List[str] = list(service_order or [])

    for item in evidence:
        grouped_evidence.setdefault(item.service, []).append(item)
        if item.service not in order:
            order.append(item.service)
    for item in findings:
        grouped_findings.setdefault(item.service, []).append(item)
        if item.service not in order:
            order.append(item.service)

    hypotheses = []
    for service in order:
        service_evidence = grouped_evidence.get(service, [])
        service_findings = grouped_findings.get(service, [])
        if not service_evidence and not service_findings:
            continue
        average = (sum(e.score for e in service_evidence) / len(service_evidence)
                   if service_evidence else 0.0)
        hypotheses.append(RootCauseHypothesis(
            service=service,
            description=hypothesis_description(service, service_evidence, service_findings),
            evidence=service_evidence,
            findings=service_findings,
            confidence=hypothesis_confidence(service_evidence, service_findings),
            severity=hypothesis_severity(service_evidence, service_findings),
            reasoning=(f"{len(service_evidence)} 条证据, {len(service_findings)} 个发现, "
                       f"平均证据评分 {average:.2f}"),
        ))
    return hypotheses


def select_root_cause(hypotheses: Sequence[RootCauseHypothesis]) -> Optional[RootCauseHypothesis]:
    """Highest confidence wins; ties keep the earlier hypothesis."""
    best = None
    for hypothesis in hypotheses:
        if best is None or hypothesis.confidence > best.confidence:
            best = hypothesis
    return best
