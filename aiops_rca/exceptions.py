#!/usr/bin/env python
"""
根因分析协作框架的异常定义
"""


class AIOpsRCAError(Exception):
    """Base error for the RCA collaborator."""


class CollaborationError(AIOpsRCAError):
    """Fatal error: the collaborator cannot produce a report."""


class AgentNotRegisteredError(CollaborationError):
    """A role required by the pipeline has no registered agent."""

    def __init__(self, role):
        self.role = role
        super().__init__(f"agent not registered for role: {getattr(role, 'value', role)}")


class InvalidInputError(CollaborationError):
    """Missing or malformed input to collaborate() or Agent.execute()."""


class DataSourceError(AIOpsRCAError):
    """A metrics/logs/topology source could not deliver data."""


class ConfigError(AIOpsRCAError):
    """Configuration file could not be loaded or validated."""
