"""Schema Mapping Agent: heuristic auto-mapping between two schemas."""

import uuid
from typing import List, Optional, Tuple
import logging

from langchain_core.messages import AIMessage
from langgraph.graph import StateGraph, END

from sync_platform.agents.base_agent import BaseAgent, AgentState
from sync_platform.engine.paths import field_name
from sync_platform.shared.config import Settings
from sync_platform.shared.message_bus import MessageBus
from sync_platform.shared.models import (
    FieldDefinition,
    FieldMapping,
    FieldType,
    Schema,
    Transformer,
)


logger = logging.getLogger(__name__)


class SchemaMappingState(AgentState):
    """State for schema mapping agent execution."""
    source_schema: Optional[Schema]
    target_schema: Optional[Schema]
    threshold: float
    mappings: List[FieldMapping]


class SchemaMappingAgent(BaseAgent):
    """Agent responsible for automatic schema mapping using LangGraph."""

    # (target name, source name) pairs that are known to mean the same thing
    FIELD_ALIASES = {
        ("sku", "id"),
        ("description", "short_description"),
        ("price", "regular_price"),
        ("image", "images"),
    }

    EXACT_SCORE = 1.0
    ALIAS_SCORE = 0.9
    SUBSTRING_SCORE = 0.8

    def __init__(
        self,
        message_bus: MessageBus,
        agent_id: Optional[str] = None,
        threshold: float = 0.7
    ):
        """
        Initialize the Schema Mapping Agent.

        Args:
            message_bus: Message bus for publishing mapping events
            agent_id: Unique identifier for this agent instance
            threshold: Default minimum similarity for a mapping to be kept
        """
        self.threshold = threshold
        super().__init__(
            message_bus=message_bus,
            agent_id=agent_id,
            agent_type="schema-mapping"
        )

    @classmethod
    def from_settings(
        cls,
        message_bus: MessageBus,
        settings: Settings,
        agent_id: Optional[str] = None
    ) -> "SchemaMappingAgent":
        """Create an agent using ``SYNC_AUTOMAP_THRESHOLD`` as its default threshold."""
        return cls(message_bus, agent_id=agent_id, threshold=settings.automap_threshold)

    def _build_graph(self) -> StateGraph:
        """
        Build the agent's execution graph for schema mapping.

        Returns:
            Compiled StateGraph for schema mapping
        """
        workflow = StateGraph(SchemaMappingState)

        workflow.add_node("validate_input", self._validate_input)
        workflow.add_node("generate_mappings", self._generate_mappings_node)
        workflow.add_node("publish_results", self._publish_results)

        workflow.set_entry_point("validate_input")
        workflow.add_conditional_edges(
            "validate_input",
            self._route_after_validation,
            {
                "generate": "generate_mappings",
                "error": END
            }
        )
        workflow.add_edge("generate_mappings", "publish_results")
        workflow.add_edge("publish_results", END)

        return workflow.compile()

    def _validate_input(self, state: SchemaMappingState) -> SchemaMappingState:
        """Validate input state."""
        source = state.get("source_schema")
        target = state.get("target_schema")

        if source is None or target is None:
            state["error"] = "Missing source or target schema"
            logger.error("Validation failed: missing schemas")
        else:
            logger.debug(f"Validated schemas: {source.entity_name} -> {target.entity_name}")
        return state

    def _route_after_validation(self, state: SchemaMappingState) -> str:
        return "error" if state.get("error") else "generate"

    def _generate_mappings_node(self, state: SchemaMappingState) -> SchemaMappingState:
        """Pick the best-scoring source field for every target field."""
        source = state["source_schema"]
        target = state["target_schema"]
        threshold = state["threshold"]

        mappings = []
        for target_path, target_field in target.fields.items():
            best = self._best_candidate(target_path, target_field, source, threshold)
            if best is None:
                logger.debug(f"No source field qualifies for {target_path}")
                continue

            source_path, source_field, score = best
            mapping = FieldMapping(
                source_field=source_path,
                target_field=target_path,
                transform=self.suggest_transform(source_field.type, target_field.type),
            )
            mappings.append(mapping)
            logger.debug(f"Mapped {source_path} -> {target_path} (score: {score:.2f})")

        state["mappings"] = mappings
        state["messages"].append(
            AIMessage(content=f"Generated {len(mappings)} field mappings")
        )
        logger.info(f"Generated {len(mappings)} mappings for {len(target.fields)} target fields")
        return state

    def _best_candidate(
        self,
        target_path: str,
        target_field: FieldDefinition,
        source: Schema,
        threshold: float
    ) -> Optional[Tuple[str, FieldDefinition, float]]:
        """
        Pick the best-scoring source field for one target field.

        The cutoff is inclusive: a score equal to ``threshold`` qualifies, so
        identical names still map at a threshold of 1.0. Zero scores never
        qualify, even at a threshold of 0.
        """
        target_name = self._compared_name(target_path, target_field)
        best: Optional[Tuple[str, FieldDefinition, float]] = None
        best_rank = (0.0, False, False)

        for source_path, source_field in source.fields.items():
            source_name = self._compared_name(source_path, source_field)
            score = self.calculate_similarity(source_name, target_name)
            if score <= 0 or score < threshold:
                continue

            # Equal scores prefer the identical path, then the identical name
            rank = (score, source_path == target_path, source_name == target_name)
            if best is None or rank > best_rank:
                best = (source_path, source_field, score)
                best_rank = rank

        return best

    def _publish_results(self, state: SchemaMappingState) -> SchemaMappingState:
        """Publish mapping results to message bus."""
        mappings = state["mappings"]
        event_payload = {
            "source_entity": state["source_schema"].entity_name,
            "target_entity": state["target_schema"].entity_name,
            "threshold": state["threshold"],
            "mapping_count": len(mappings),
            "mappings": [
                {
                    "source_field": m.source_field,
                    "target_field": m.target_field,
                    "transform": m.transform,
                }
                for m in mappings
            ]
        }
        self.publish_event("schema.mapping.generated", event_payload, "mapping.events")

        state["result"] = {
            "mappings": mappings,
            "mapping_count": len(mappings),
        }
        return state

    # Helper methods for field name similarity and type conversion

    @staticmethod
    def _compared_name(path: str, definition: FieldDefinition) -> str:
        return definition.name or field_name(path)

    def calculate_similarity(self, source_name: str, target_name: str) -> float:
        """
        Score how likely two field names denote the same field.

        Rules are tried in order and the first match wins: equal names,
        known aliases, substring containment, then shared ``_`` tokens.

        Returns:
            Similarity between 0.0 and 1.0
        """
        a = source_name.lower()
        b = target_name.lower()
        if a.startswith("id_"):
            a = a[3:]
        if b.startswith("id_"):
            b = b[3:]

        if a == b:
            return self.EXACT_SCORE
        if (target_name.lower(), source_name.lower()) in self.FIELD_ALIASES:
            return self.ALIAS_SCORE
        if a in b or b in a:
            return self.SUBSTRING_SCORE

        a_tokens = a.split("_")
        b_tokens = b.split("_")
        shared = sum(
            1
            for a_token in a_tokens
            for b_token in b_tokens
            if a_token == b_token and len(a_token) > 2
        )
        if shared == 0:
            return 0.0
        return min(1.0, shared / max(len(a_tokens), len(b_tokens)))

    @staticmethod
    def suggest_transform(source_type: str, target_type: str) -> Optional[str]:
        """Pick a per-mapping transform that bridges two field types."""
        if source_type == target_type:
            return None
        if source_type == FieldType.STRING.value and target_type == FieldType.NUMBER.value:
            return "parseFloat"
        if source_type == FieldType.NUMBER.value and target_type == FieldType.STRING.value:
            return "toString"
        if source_type.startswith(FieldType.ARRAY.value) and target_type == FieldType.STRING.value:
            return "splitFirst"
        return None

    # Public API methods

    def generate_mappings(
        self,
        source: Schema,
        target: Schema,
        threshold: Optional[float] = None
    ) -> List[FieldMapping]:
        """
        Generate field mappings between source and target schemas.

        Args:
            source: Source schema
            target: Target schema
            threshold: Overrides the agent's similarity threshold; a score equal to it qualifies

        Returns:
            One mapping per target field that found a qualifying source field
        """
        initial_state: SchemaMappingState = self.initial_state(
            f"Generate mappings from {source.entity_name} to {target.entity_name}",
            task_prefix="mapping",
            source_schema=source,
            target_schema=target,
            threshold=self.threshold if threshold is None else threshold,
            mappings=[],
        )

        final_state = self.execute(initial_state)

        if final_state.get("error"):
            logger.error(f"Mapping generation failed: {final_state['error']}")
            return []

        return final_state.get("result", {}).get("mappings", [])

    def build_transformer(
        self,
        source: Schema,
        target: Schema,
        name: Optional[str] = None,
        description: str = "Automatically generated by the schema mapping agent",
        transformer_id: Optional[str] = None,
        threshold: Optional[float] = None
    ) -> Transformer:
        """Wrap generated mappings in a Transformer ready to be saved."""
        return Transformer(
            id=transformer_id or f"transformer-{uuid.uuid4().hex[:8]}",
            name=name or f"Auto-generated: {source.entity_name} to {target.entity_name}",
            mappings=self.generate_mappings(source, target, threshold),
            description=description,
        )
