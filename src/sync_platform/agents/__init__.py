"""LangGraph agents for the sync platform."""

from sync_platform.agents.base_agent import AgentState, BaseAgent
from sync_platform.agents.schema_discovery_agent import SchemaDiscoveryAgent
from sync_platform.agents.schema_mapping_agent import SchemaMappingAgent
from sync_platform.agents.pipeline_agent import PipelineAgent

__all__ = [
    "AgentState",
    "BaseAgent",
    "SchemaDiscoveryAgent",
    "SchemaMappingAgent",
    "PipelineAgent",
]
