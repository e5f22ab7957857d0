#!/usr/bin/env python
"""
协作器装配
Builds a collaborator with the six standard agents registered.
"""

import logging
from typing import Optional

from langchain_core.language_models import BaseChatModel

from .agents import DecisionAgent, LogAgent, MetricAgent, OutputAgent, PlannerAgent, TopologyAgent
from .config import CollaborationConfig
from .datasources.base import LogsSource, MetricsSource, TopologySource
from .framework.collaborator import AgentCollaborator
from .framework.context import CollaborationContext

logger = logging.getLogger(__name__)


def create_collaborator(
    chat: Optional[BaseChatModel] = None,
    metrics_source: Optional[MetricsSource] = None,
    logs_source: Optional[LogsSource] = None,
    topology_source: Optional[TopologySource] = None,
    config: Optional[CollaborationConfig] = None,
    tenant_id: str = "default",
    trace_id: Optional[str] = None,
) -> AgentCollaborator:
    """Collaborator with planner, analysts, decision and output agents registered.

    A missing source is treated as one that returns no data.
    """
    config = config or CollaborationConfig()
    context = CollaborationContext(chat=chat, config=config, tenant_id=tenant_id, trace_id=trace_id)
    collaborator = AgentCollaborator(context)

    for agent in (
        PlannerAgent(context),
        MetricAgent(context, metrics_source),
        LogAgent(context, logs_source),
        TopologyAgent(context, topology_source),
        DecisionAgent(context),
        OutputAgent(context),
    ):
        collaborator.register_agent(agent)

    logger.info(f"✅ 协作器装配完成: {[role.value for role in collaborator.list_agents()]}")
    return collaborator
