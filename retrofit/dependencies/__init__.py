"""
Service dependency graph, execution planning and cascading execution.

Provides:
- ServiceGraph: DAG of the six calculation services
- ExecutionPlanner: turns a request into an ordered ExecutionPlan
- CascadeExecutor: runs a plan step by step against the record store
- TriggerLog: audit trail of engine events
"""

from .graph import (
    ServiceGraph,
    ServiceNode,
    SERVICE_DEPENDENCIES,
    REGISTRY_ORDER,
    get_default_graph,
)
from .planner import (
    ExecutionPlan,
    ExecutionPlanner,
)
from .cascade import (
    CascadeExecutor,
    CascadeResult,
    StepResult,
)
from .trigger_log import (
    TriggerLog,
    TriggerEntry,
    TriggerType,
)

__all__ = [
    # Graph
    "ServiceGraph",
    "ServiceNode",
    "SERVICE_DEPENDENCIES",
    "REGISTRY_ORDER",
    "get_default_graph",
    # Planning
    "ExecutionPlan",
    "ExecutionPlanner",
    # Cascade
    "CascadeExecutor",
    "CascadeResult",
    "StepResult",
    # Trigger Log
    "TriggerLog",
    "TriggerEntry",
    "TriggerType",
]
