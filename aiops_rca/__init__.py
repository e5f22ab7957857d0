"""
AIOps RCA - 多智能体根因分析协作框架
基于指标、日志和拓扑证据的根因分析
"""

from .config import CollaborationConfig, create_chat_model
from .exceptions import (
    AgentNotRegisteredError,
    AIOpsRCAError,
    CollaborationError,
    ConfigError,
    DataSourceError,
    InvalidInputError,
)
from .framework import (
    AgentCollaborator,
    AgentRole,
    Alert,
    AnalysisReport,
    CollaborationContext,
    Evidence,
    Finding,
    SeverityLevel,
    TaskResult,
    TimeRange,
)
from .pipeline import create_collaborator
from .utils.evidence_chain import format_report

__all__ = [
    # Main entry
    'create_collaborator',
    'AgentCollaborator',
    'CollaborationContext',
    'CollaborationConfig',
    'create_chat_model',
    'format_report',

    # Data model
    'AgentRole',
    'Alert',
    'AnalysisReport',
    'Evidence',
    'Finding',
    'SeverityLevel',
    'TaskResult',
    'TimeRange',

    # Errors
    'AIOpsRCAError',
    'CollaborationError',
    'AgentNotRegisteredError',
    'InvalidInputError',
    'DataSourceError',
    'ConfigError',
]

__version__ = "1.0.0"
__author__ = "AIOps Team"
__description__ = "Multi-agent root cause analysis over metrics, logs and topology"
