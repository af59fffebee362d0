"""Schema Discovery Agent: infers a field schema from sample records."""

import json
from typing import Any, Dict, List, Optional
import logging

from langchain_core.messages import AIMessage
from langgraph.graph import StateGraph, END

from sync_platform.agents.base_agent import BaseAgent, AgentState
from sync_platform.engine.functions import stringify
from sync_platform.shared.config import Settings
from sync_platform.shared.errors import DiscoveryError
from sync_platform.shared.message_bus import MessageBus
from sync_platform.shared.models import DataPayload, FieldDefinition, FieldType, Schema


logger = logging.getLogger(__name__)

SAMPLE_LIMIT = 100


class DiscoveryState(AgentState):
    """Extended state for schema discovery."""
    entity_name: str
    samples: List[DataPayload]
    schema: Optional[Schema]


class SchemaDiscoveryAgent(BaseAgent):
    """
    Schema Discovery Agent using LangGraph for the discovery workflow.

    The graph:
    1. Selects up to ``max_samples`` sample records
    2. Walks each sample and records field paths and types
    3. Publishes a ``schema.discovered`` event
    """

    def __init__(
        self,
        message_bus: MessageBus,
        agent_id: Optional[str] = None,
        max_samples: int = 10
    ):
        """
        Initialize the Schema Discovery Agent.

        Args:
            message_bus: Message bus for publishing discovery events
            agent_id: Unique identifier for this agent instance
            max_samples: Default number of samples inspected per call
        """
        self.max_samples = max_samples
        super().__init__(message_bus, agent_id, agent_type="schema-discovery")

    @classmethod
    def from_settings(
        cls,
        message_bus: MessageBus,
        settings: Settings,
        agent_id: Optional[str] = None
    ) -> "SchemaDiscoveryAgent":
        """Create an agent whose sample limit comes from ``SYNC_DISCOVERY_MAX_SAMPLES``."""
        return cls(message_bus, agent_id=agent_id, max_samples=settings.discovery_max_samples)

    def _build_graph(self) -> StateGraph:
        """
        Build the discovery workflow graph.

        Graph structure:
        START -> select_samples -> infer_fields -> publish_events -> END
        """
        workflow = StateGraph(DiscoveryState)

        workflow.add_node("select_samples", self._select_samples_node)
        workflow.add_node("infer_fields", self._infer_fields_node)
        workflow.add_node("publish_events", self._publish_events_node)

        workflow.set_entry_point("select_samples")
        workflow.add_edge("select_samples", "infer_fields")
        workflow.add_edge("infer_fields", "publish_events")
        workflow.add_edge("publish_events", END)

        return workflow.compile()

    def _select_samples_node(self, state: DiscoveryState) -> DiscoveryState:
        limit = state["context"].get("max_samples", self.max_samples)
        state["samples"] = list(state["samples"])[:max(limit, 0)]
        logger.debug(f"Selected {len(state['samples'])} samples for {state['entity_name']}")
        return state

    def _infer_fields_node(self, state: DiscoveryState) -> DiscoveryState:
        """
        Node: Walk every selected sample and build the field map.

        Args:
            state: Current agent state

        Returns:
            Updated state with the discovered schema
        """
        schema = Schema(entity_name=state["entity_name"])
        for sample in state["samples"]:
            if not isinstance(sample, dict):
                logger.warning(f"Skipping non-map sample for {schema.entity_name}: {type(sample).__name__}")
                continue
            self._walk_mapping(sample, "", schema)

        state["schema"] = schema
        state["messages"].append(
            AIMessage(content=f"Discovered {len(schema.fields)} fields for {schema.entity_name}")
        )
        logger.info(f"Discovered {len(schema.fields)} fields for {schema.entity_name}")
        return state

    def _publish_events_node(self, state: DiscoveryState) -> DiscoveryState:
        schema = state["schema"]
        event_payload = {
            "entity_name": schema.entity_name,
            "sample_count": len(state["samples"]),
            "field_count": len(schema.fields),
            "fields": {path: f.type for path, f in schema.fields.items()},
        }
        self.publish_event(
            event_type="schema.discovered",
            payload=event_payload,
            topic="discovery.events"
        )
        state["result"] = event_payload
        return state

    # Field inference

    def _walk_mapping(self, data: Dict[str, Any], prefix: str, schema: Schema) -> None:
        for key, value in data.items():
            path = f"{prefix}.{key}" if prefix else key
            self._walk_value(key, path, value, schema)

    def _walk_value(self, name: str, path: str, value: Any, schema: Schema) -> None:
        if isinstance(value, dict):
            self._record_field(name, path, FieldType.OBJECT.value, value, schema)
            self._walk_mapping(value, path, schema)
        elif isinstance(value, list):
            if not value:
                self._record_field(name, path, FieldType.ARRAY.value, value, schema)
                return
            first = value[0]
            if isinstance(first, dict):
                self._record_field(name, path, FieldType.ARRAY_OBJECT.value, value, schema)
                self._walk_mapping(first, f"{path}[]", schema)
            else:
                self._record_field(name, path, f"array.{self._scalar_type(first)}", value, schema)
        else:
            self._record_field(name, path, self._scalar_type(value), value, schema)

    @staticmethod
    def _scalar_type(value: Any) -> str:
        """Map a runtime value onto a field type; unknown kinds degrade to string."""
        if value is None:
            return FieldType.NULL.value
        if isinstance(value, bool):
            return FieldType.BOOLEAN.value
        if isinstance(value, (int, float)):
            return FieldType.NUMBER.value
        if isinstance(value, list):
            return FieldType.ARRAY.value
        if isinstance(value, dict):
            return FieldType.OBJECT.value
        return FieldType.STRING.value

    @staticmethod
    def _record_field(name: str, path: str, field_type: str, value: Any, schema: Schema) -> None:
        # Only the array aggregate is kept for bracketed paths.
        if "[" in path:
            return

        sample = stringify(value)
        if len(sample) > SAMPLE_LIMIT:
            sample = sample[:SAMPLE_LIMIT] + "..."

        existing = schema.fields.get(path)
        if existing is None:
            schema.fields[path] = FieldDefinition(
                id=f"{schema.entity_name}_field_{len(schema.fields) + 1}",
                name=name,
                type=field_type,
                path=path,
                sample=sample,
                required=True,
            )
            return
        existing.type = field_type
        existing.sample = sample

    # Public API methods

    def discover_schema(
        self,
        entity_name: str,
        samples: List[DataPayload],
        max_samples: Optional[int] = None
    ) -> Schema:
        """
        Infer the field schema of an entity from sample records.

        Args:
            entity_name: Name of the entity being sampled
            samples: Sample records
            max_samples: Overrides the agent's sample limit for this call

        Returns:
            Schema keyed by field path
        """
        initial_state: DiscoveryState = self.initial_state(
            f"Discover schema for {entity_name}",
            task_prefix="discovery",
            context={"max_samples": self.max_samples if max_samples is None else max_samples},
            entity_name=entity_name,
            samples=samples,
            schema=None,
        )

        final_state = self.execute(initial_state)
        return final_state["schema"]

    def discover_from_json(self, entity_name: str, json_text: str) -> Schema:
        """
        Discover a schema from a single JSON object sample.

        Raises:
            DiscoveryError: if the text is not a JSON object
        """
        try:
            sample = json.loads(json_text)
        except (TypeError, ValueError) as e:
            raise DiscoveryError(f"Invalid JSON sample for {entity_name}: {str(e)}")
        if not isinstance(sample, dict):
            raise DiscoveryError(f"JSON sample for {entity_name} must be an object")
        return self.discover_schema(entity_name, [sample], max_samples=1)
