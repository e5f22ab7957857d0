#!/usr/bin/env python
"""
Evidence chain and report helpers
证据链、时间线、受影响服务和 Markdown 报告渲染
"""

import re
from typing import Any, Dict, List

from ..framework.agent import bucket_severity, successful_results
from ..framework.task import AnalysisReport, Evidence, SeverityLevel, TaskResult, TimelineEvent
from ..prompts import DEFAULT_RECOMMENDATIONS, DOMAIN_RECOMMENDATIONS

_LIST_PREFIX_RE = re.compile(r"^(?:\d+[.)、]\s*|[-*•]\s*)")
MIN_RECOMMENDATION_LENGTH = 10


def build_evidence_chain(task_results: Dict[str, TaskResult]) -> List[Evidence]:
    """Evidence of successful results, ascending by timestamp (stable)."""
    evidence = [e for result in successful_results(task_results) for e in result.evidence]
    return sorted(evidence, key=lambda e: e.timestamp)


def build_timeline(task_results: Dict[str, TaskResult], fallback_timestamp: int) -> List[TimelineEvent]:
    """Evidence and finding events, ascending by time.

    Findings carry no time of their own; they are placed at the latest
    evidence of the same result, or ``fallback_timestamp`` when it has none.
    """
    events = []
    for result in successful_results(task_results):
        for e in result.evidence:
            events.append(TimelineEvent(
                timestamp=e.timestamp,
                service=e.service,
                event_type=e.type.value,
                description=e.description,
                severity=bucket_severity(e.score, floor=SeverityLevel.INFO),
            ))
        finding_time = max((e.timestamp for e in result.evidence), default=fallback_timestamp)
        for f in result.findings:
            events.append(TimelineEvent(
                timestamp=finding_time,
                service=f.service,
                event_type=f.type,
                description=f.description,
                severity=f.severity,
            ))
    return sorted(events, key=lambda event: event.timestamp)


def affected_services(task_results: Dict[str, TaskResult]) -> List[str]:
    """Distinct services of successful evidence and findings, first-seen order."""
    services: Dict[str, None] = {}
    for result in successful_results(task_results):
        for item in list(result.evidence) + list(result.findings):
            services.setdefault(item.service, None)
    return list(services)


def success_rate(task_results: Dict[str, TaskResult]) -> float:
    if not task_results:
        return 0.0
    return len(successful_results(task_results)) / len(task_results)


def parse_recommendations(content: str) -> List[str]:
    """Split LLM text into lines, drop list markers and lines that are too short."""
    recommendations = []
    for line in content.splitlines():
        line = _LIST_PREFIX_RE.sub("", line.strip()).strip()
        if len(line) >= MIN_RECOMMENDATION_LENGTH:
            recommendations.append(line)
    return recommendations


def default_recommendations(root_cause: str) -> List[str]:
    recommendations = list(DEFAULT_RECOMMENDATIONS)
    lowered = root_cause.lower()
    for keywords, hint in DOMAIN_RECOMMENDATIONS:
        if any(keyword in lowered for keyword in keywords):
            recommendations.insert(0, hint)
            break
    return recommendations


def summarize_evidence(evidence: List[Evidence]) -> Dict[str, Any]:
    """Count by type and service plus average score."""
    summary = {
        'total_evidence': len(evidence),
        'types': {},
        'services': {},
        'score_avg': 0.0,
    }
    for item in evidence:
        summary['types'][item.type.value] = summary['types'].get(item.type.value, 0) + 1
        summary['services'][item.service] = summary['services'].get(item.service, 0) + 1
    if evidence:
        summary['score_avg'] = sum(e.score for e in evidence) / len(evidence)
    return summary


def format_report(report: AnalysisReport) -> str:
    """Render a report as Markdown."""
    lines = [
        "# 根因分析报告",
        "",
        "## 摘要",
        report.summary,
        "",
        "## 根因",
        report.root_cause,
        "",
        "## 受影响服务",
    ]
    lines.extend(f"- {service}" for service in report.affected_services)

    lines.extend(["", "## 证据链"])
    if report.evidence_chain:
        summary = summarize_evidence(report.evidence_chain)
        types = ", ".join(f"{name}: {count}" for name, count in summary['types'].items())
        lines.append(f"共 {summary['total_evidence']} 条证据 ({types})，平均评分 {summary['score_avg']:.2f}")
    for i, e in enumerate(report.evidence_chain[:5], 1):
        lines.append(f"{i}. [{e.type.value}] {e.service}: {e.description} (评分: {e.score:.2f})")

    lines.extend(["", "## 发现"])
    for i, f in enumerate(report.findings[:5], 1):
        lines.append(f"{i}. [{f.severity.value}] {f.service}: {f.description}")

    lines.extend(["", "## 修复建议"])
    lines.extend(f"{i}. {rec}" for i, rec in enumerate(report.recommendations, 1))

    lines.extend(["", "## 置信度", "%.1f%%" % (report.confidence * 100), ""])
    return "\n".join(lines)
