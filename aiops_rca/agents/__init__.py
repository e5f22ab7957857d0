"""
专业分析智能体
"""

from .decision_agent import DecisionAgent
from .log_agent import LogAgent
from .metric_agent import MetricAgent
from .output_agent import OutputAgent
from .planner_agent import PlannerAgent
from .topology_agent import TopologyAgent

__all__ = [
    'PlannerAgent',
    'MetricAgent',
    'LogAgent',
    'TopologyAgent',
    'DecisionAgent',
    'OutputAgent',
]
