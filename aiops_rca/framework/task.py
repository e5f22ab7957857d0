#!/usr/bin/env python
"""
任务与报告数据模型
Task, evidence, finding, result and report value types shared by every agent.
"""

import itertools
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class TaskType(str, Enum):
    """任务类型"""
    ROOT_CAUSE_ANALYSIS = "root_cause_analysis"
    METRICS_ANALYSIS = "metrics_analysis"
    LOGS_ANALYSIS = "logs_analysis"
    TOPOLOGY_ANALYSIS = "topology_analysis"
    DECISION = "decision"
    OUTPUT = "output"


class AgentRole(str, Enum):
    """智能体角色"""
    PLANNER = "planner"
    METRICS = "metrics"
    LOGS = "logs"
    TOPOLOGY = "topology"
    DECISION = "decision"
    OUTPUT = "output"


class EvidenceType(str, Enum):
    """证据来源"""
    METRICS = "metrics"
    LOGS = "logs"
    TOPOLOGY = "topology"


class SeverityLevel(str, Enum):
    """严重程度: INFO < LOW < MEDIUM < HIGH < CRITICAL"""
    INFO = "INFO"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    SeverityLevel.INFO: 0,
    SeverityLevel.LOW: 1,
    SeverityLevel.MEDIUM: 2,
    SeverityLevel.HIGH: 3,
    SeverityLevel.CRITICAL: 4,
}


NO_ROOT_CAUSE = "no clear root cause"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, float(value)))


_task_counter = itertools.count(1)


def new_task_id() -> str:
    """Monotonic-unique task id: nanosecond clock plus a process counter."""
    return f"task_{time.time_ns()}_{next(_task_counter)}"


@dataclass(frozen=True)
class TimeRange:
    """Unix-second window [start, end]."""
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass
class Alert:
    """告警"""
    id: str
    service: str
    severity: SeverityLevel
    message: str = ""
    timestamp: int = 0
    source: str = ""
    labels: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.severity = SeverityLevel(self.severity)


@dataclass(frozen=True)
class Evidence:
    """单条证据"""
    type: EvidenceType
    service: str
    timestamp: int
    description: str
    data: Any = None
    score: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "type", EvidenceType(self.type))
        object.__setattr__(self, "score", clamp(self.score))


@dataclass(frozen=True)
class Finding:
    """由证据归纳出的发现"""
    type: str
    service: str
    description: str
    severity: SeverityLevel
    score: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "severity", SeverityLevel(self.severity))
        object.__setattr__(self, "score", clamp(self.score))


@dataclass(frozen=True)
class TimelineEvent:
    timestamp: int
    service: str
    event_type: str
    description: str
    severity: SeverityLevel


@dataclass
class TaskResult:
    """一个智能体对一个任务的执行结果"""
    task_id: str
    agent_role: AgentRole
    success: bool = True
    evidence: List[Evidence] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    confidence: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)
    next_actions: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.confidence = clamp(self.confidence)

    @classmethod
    def failure(cls, task_id: str, role: AgentRole, error: str) -> "TaskResult":
        return cls(task_id=task_id, agent_role=role, success=False, metadata={"error": error})

    @property
    def error(self) -> Optional[str]:
        return self.metadata.get("error")


@dataclass
class DecisionInput:
    """Payload of a decision task."""
    task_results: Dict[str, TaskResult]


@dataclass
class OutputInput:
    """Payload of an output task."""
    task_results: Dict[str, TaskResult]
    decision_result: TaskResult


@dataclass
class Task:
    """分析任务

    ``context`` is a free-form bag; ``payload`` carries the typed input of
    decision/output tasks. ``deadline`` is an absolute ``time.monotonic()``
    value shared by the whole pipeline run.
    """
    type: TaskType
    query: str
    time_range: TimeRange
    services: List[str] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    parent: Optional[str] = None
    deadline: Optional[float] = None
    payload: Optional[Union[DecisionInput, OutputInput]] = None
    id: str = field(default_factory=new_task_id)

    def __post_init__(self):
        self.type = TaskType(self.type)

    def subtask(self, task_type: TaskType, **overrides) -> "Task":
        """Child task inheriting window, services, alerts and deadline."""
        values = dict(
            type=task_type,
            query=self.query,
            time_range=self.time_range,
            services=list(self.services),
            alerts=list(self.alerts),
            parent=self.id,
            deadline=self.deadline,
        )
        values.update(overrides)
        return Task(**values)


@dataclass
class RootCauseHypothesis:
    """按服务聚合的根因假设"""
    service: str
    description: str
    evidence: List[Evidence] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    confidence: float = 0.0
    severity: SeverityLevel = SeverityLevel.LOW
    reasoning: str = ""

    def __post_init__(self):
        self.confidence = clamp(self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "description": self.description,
            "evidence_count": len(self.evidence),
            "finding_count": len(self.findings),
            "confidence": self.confidence,
            "severity": self.severity.value,
            "reasoning": self.reasoning,
        }


@dataclass
class AnalysisReport:
    """诊断报告"""
    id: str
    query: str
    time_range: TimeRange
    summary: str = ""
    root_cause: str = ""
    affected_services: List[str] = field(default_factory=list)
    evidence_chain: List[Evidence] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    confidence: float = 0.0
    timeline: List[TimelineEvent] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.confidence = clamp(self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
