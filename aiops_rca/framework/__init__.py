"""
多智能体协作框架
"""

from .agent import ROLE_TASK_TYPES, TASK_TYPE_ROLES, Agent, ask_llm, fetch_from_source
from .collaborator import AgentCollaborator
from .context import CollaborationContext, Memory, Message, MessageRole
from .task import (
    NO_ROOT_CAUSE,
    AgentRole,
    Alert,
    AnalysisReport,
    DecisionInput,
    Evidence,
    EvidenceType,
    Finding,
    OutputInput,
    RootCauseHypothesis,
    SeverityLevel,
    Task,
    TaskResult,
    TaskType,
    TimelineEvent,
    TimeRange,
)

__all__ = [
    # Collaboration
    'AgentCollaborator',
    'CollaborationContext',
    'Memory',
    'Message',
    'MessageRole',

    # Agent capability
    'Agent',
    'ROLE_TASK_TYPES',
    'TASK_TYPE_ROLES',
    'ask_llm',
    'fetch_from_source',

    # Data model
    'Task',
    'TaskType',
    'TimeRange',
    'Alert',
    'AgentRole',
    'Evidence',
    'EvidenceType',
    'Finding',
    'SeverityLevel',
    'TaskResult',
    'DecisionInput',
    'OutputInput',
    'RootCauseHypothesis',
    'TimelineEvent',
    'AnalysisReport',
    'NO_ROOT_CAUSE',
]
