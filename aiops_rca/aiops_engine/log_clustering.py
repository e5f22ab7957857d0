#!/usr/bin/env python
"""
日志模式挖掘与 Drain 聚类
错误日志过滤、模板归一化、模式统计、Drain 风格聚类和堆栈提取
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..datasources.base import LogEntry
from ..framework.task import SeverityLevel, clamp

ERROR_LEVELS = ("ERROR", "WARN")
ERROR_KEYWORDS = ("exception", "failed", "error", "timeout", "deadlock")
WILDCARD = "<*>"

_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?")
_DOUBLE_QUOTED_RE = re.compile(r'"[^"]*"')
_SINGLE_QUOTED_RE = re.compile(r"'[^']*'")
_UUID_RE = re.compile(r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\b")
_IPV4_RE = re.compile(r"\b\d{1,3}(?:\.\d{1,3}){3}\b")
_HEX_RE = re.compile(r"\b0[xX][0-9a-fA-F]+\b")
_NUMBER_RE = re.compile(r"\d+")
_STACK_FRAME_RE = re.compile(r"^\s+at\s+.+", re.MULTILINE)

_DIGITS_TOKEN_RE = re.compile(r"^\d+$")
_IPV4_TOKEN_RE = re.compile(r"^\d{1,3}(?:\.\d{1,3}){3}(?::\d+)?$")
_HEX_TOKEN_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")


def normalize_level(level: str) -> str:
    level = (level or "").upper()
    return "WARN" if level == "WARNING" else level


def filter_error_logs(logs: Iterable[LogEntry]) -> List[LogEntry]:
    return [log for log in logs if normalize_level(log.level) in ERROR_LEVELS]


def normalize_message(message: str) -> str:
    """Reduce a log message to its template.

    Order matters: timestamps, quoted literals, UUIDs, IPv4 addresses and hex
    literals are replaced before the remaining digit runs become ``N``.
    """
    template = _TIMESTAMP_RE.sub("", message)
    template = _DOUBLE_QUOTED_RE.sub('"*"', template)
    template = _SINGLE_QUOTED_RE.sub("'*'", template)
    template = _UUID_RE.sub("UUID", template)
    template = _IPV4_RE.sub("IP", template)
    template = _HEX_RE.sub(WILDCARD, template)
    template = _NUMBER_RE.sub("N", template)
    return template.strip()


def evidence_score(log: LogEntry) -> float:
    level = normalize_level(log.level)
    score = 0.5
    if level == "ERROR":
        score += 0.4
    elif level == "WARN":
        score += 0.2

    message = log.message.lower()
    if any(keyword in message for keyword in ERROR_KEYWORDS):
        score += 0.1
    return clamp(score)


def extract_stack_traces(log: LogEntry) -> List[str]:
    text = log.message if log.message.strip() else log.raw
    return [frame.strip() for frame in _STACK_FRAME_RE.findall(text)]


@dataclass
class LogPattern:
    """日志错误模式"""
    service: str
    template: str
    count: int
    severity: SeverityLevel
    score: float
    examples: List[LogEntry] = field(default_factory=list)

    @property
    def description(self) -> str:
        return f"错误模式: {self.template} (出现 {self.count} 次)"

    def to_dict(self) -> Dict[str, object]:
        return {
            "service": self.service,
            "template": self.template,
            "count": self.count,
            "severity": self.severity.value,
            "score": self.score,
            "examples": [e.message for e in self.examples],
        }


def pattern_severity(count: int) -> SeverityLevel:
    if count >= 10:
        return SeverityLevel.CRITICAL
    if count >= 5:
        return SeverityLevel.HIGH
    return SeverityLevel.MEDIUM


def extract_patterns(logs: Iterable[LogEntry], min_count: int = 2, max_examples: int = 3) -> List[LogPattern]:
    """Count templates per service and keep those repeated at least ``min_count`` times."""
    per_service: Dict[str, Dict[str, List[LogEntry]]] = {}
    for log in logs:
        template = normalize_message(log.message)
        per_service.setdefault(log.service, {}).setdefault(template, []).append(log)

    patterns = []
    for service, templates in per_service.items():
        for template, matched in templates.items():
            count = len(matched)
            if count < min_count:
                continue
            patterns.append(LogPattern(
                service=service,
                template=template,
                count=count,
                severity=pattern_severity(count),
                score=clamp(count / 10.0),
                examples=matched[:max_examples],
            ))
    return patterns


def tokenize(message: str) -> List[str]:
    """Whitespace tokens with numbers, IPv4 addresses and hex literals masked.

    Bare numbers, addresses and hex literals become a single wildcard; inside
    a longer token only the address or literal itself is replaced.
    """
    tokens = []
    for token in message.split():
        if _DIGITS_TOKEN_RE.match(token) or _IPV4_TOKEN_RE.match(token) or _HEX_TOKEN_RE.match(token):
            tokens.append(WILDCARD)
        else:
            token = _IPV4_RE.sub(WILDCARD, token)
            tokens.append(_HEX_RE.sub(WILDCARD, token))
    return tokens


def template_similarity(first: List[str], second: List[str]) -> float:
    """Position-aligned identical tokens over the longer length."""
    if not first and not second:
        return 1.0
    if not first or not second:
        return 0.0
    common = sum(1 for a, b in zip(first, second) if a == b)
    return common / max(len(first), len(second))


def merge_templates(first: List[str], second: List[str]) -> List[str]:
    """Keep agreeing positions, mask the rest; the longer tail is kept as is."""
    merged = [a if a == b else WILDCARD for a, b in zip(first, second)]
    longer = first if len(first) >= len(second) else second
    merged.extend(longer[len(merged):])
    return merged


@dataclass
class LogCluster:
    cluster_id: int
    tokens: List[str]
    logs: List[LogEntry] = field(default_factory=list)

    @property
    def template(self) -> str:
        return " ".join(self.tokens)

    @property
    def size(self) -> int:
        return len(self.logs)

    def service_distribution(self) -> Dict[str, int]:
        return dict(Counter(log.service for log in self.logs))

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.cluster_id,
            "template": self.template,
            "count": self.size,
            "services": self.service_distribution(),
        }


class DrainClusterer:
    """Drain 风格的在线日志聚类

    ``max_depth`` mirrors the prefix-tree depth of the original Drain; the
    flat cluster list used here does not depend on it.
    """

    def __init__(self, similarity_threshold: float = 0.5, max_depth: int = 4, debug: bool = False):
        self.similarity_threshold = similarity_threshold
        self.max_depth = max_depth
        self.debug = debug
        self.logger = logging.getLogger(__name__)
        self._clusters: List[LogCluster] = []
        self._next_id = 1

    def _best_match(self, tokens: List[str]) -> Optional[LogCluster]:
        best, best_similarity = None, -1.0
        for cluster in self._clusters:
            similarity = template_similarity(tokens, cluster.tokens)
            if similarity > best_similarity:
                best, best_similarity = cluster, similarity
        if best is not None and best_similarity >= self.similarity_threshold:
            return best
        return None

    def add(self, log: LogEntry) -> LogCluster:
        tokens = tokenize(log.message)
        cluster = self._best_match(tokens)
        if cluster is None:
            cluster = LogCluster(cluster_id=self._next_id, tokens=tokens)
            self._next_id += 1
            self._clusters.append(cluster)
        else:
            cluster.tokens = merge_templates(cluster.tokens, tokens)
        cluster.logs.append(log)
        return cluster

    def fit(self, logs: Iterable[LogEntry]) -> "DrainClusterer":
        for log in logs:
            self.add(log)
        if self.debug:
            self.logger.info(f"📊 Drain 聚类完成: {len(self._clusters)} 个簇")
        return self

    def match(self, message: str) -> Optional[LogCluster]:
        """Find the cluster a message would join, without modifying any cluster."""
        return self._best_match(tokenize(message))

    def clusters(self) -> List[LogCluster]:
        """Clusters ordered by size, largest first."""
        return sorted(self._clusters, key=lambda c: c.size, reverse=True)

    def templates(self) -> Dict[str, List[LogEntry]]:
        result: Dict[str, List[LogEntry]] = {}
        for cluster in self._clusters:
            result.setdefault(cluster.template, []).extend(cluster.logs)
        return result
