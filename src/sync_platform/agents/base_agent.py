"""Base agent class built on LangGraph state graphs."""

import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TypedDict
from datetime import datetime
import logging

from langchain_core.messages import BaseMessage, HumanMessage
from langgraph.graph import StateGraph

from sync_platform.shared.message_bus import Message, MessageBus


logger = logging.getLogger(__name__)


class AgentState(TypedDict):
    """Base state for agent graph execution."""
    messages: List[BaseMessage]
    task_id: str
    context: Dict[str, Any]
    result: Optional[Dict[str, Any]]
    error: Optional[str]


class BaseAgent(ABC):
    """Base class for all agents using LangGraph architecture."""

    def __init__(
        self,
        message_bus: MessageBus,
        agent_id: Optional[str] = None,
        agent_type: str = "base"
    ):
        """
        Initialize the base agent.

        Args:
            message_bus: Message bus for publishing events
            agent_id: Unique identifier for this agent instance
            agent_type: Type of agent (for logging and identification)
        """
        self.message_bus = message_bus
        self.agent_id = agent_id or f"{agent_type}-{uuid.uuid4().hex[:8]}"
        self.agent_type = agent_type
        self.graph = self._build_graph()
        logger.info(f"{agent_type.title()} Agent initialized: {self.agent_id}")

    @abstractmethod
    def _build_graph(self) -> StateGraph:
        """
        Build the agent's execution graph.

        Returns:
            Compiled StateGraph for agent execution
        """
        pass

    def initial_state(
        self,
        request: str,
        task_prefix: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **fields: Any
    ) -> Dict[str, Any]:
        """
        Build the starting state for one graph run.

        Args:
            request: Text of the opening HumanMessage
            task_prefix: Prefix of the generated task id (defaults to the agent type)
            context: Initial context dictionary
            **fields: Agent-specific state keys

        Returns:
            State with the common AgentState keys filled in and ``fields`` merged on top
        """
        state: Dict[str, Any] = {
            "messages": [HumanMessage(content=request)],
            "task_id": f"{task_prefix or self.agent_type}-{uuid.uuid4().hex[:8]}",
            "context": dict(context or {}),
            "result": None,
            "error": None,
        }
        state.update(fields)
        return state

    def publish_event(
        self,
        event_type: str,
        payload: Dict[str, Any],
        topic: str
    ) -> None:
        """
        Publish an event to the message bus.

        Args:
            event_type: Type of event
            payload: Event payload
            topic: Topic to publish to
        """
        message = Message(
            event_type=event_type,
            payload=payload,
            timestamp=datetime.now(),
            source=self.agent_id
        )
        self.message_bus.publish(topic, message)
        logger.info(f"Published {event_type} event to {topic}")

    def execute(self, initial_state: AgentState) -> AgentState:
        """
        Execute the agent's graph with the given initial state.

        Args:
            initial_state: Initial state for execution

        Returns:
            Final state after execution
        """
        logger.debug(f"Executing agent {self.agent_id} for task {initial_state.get('task_id')}")
        try:
            return self.graph.invoke(initial_state)
        except Exception as e:
            logger.error(f"Agent execution failed: {str(e)}")
            raise

    async def aexecute(self, initial_state: AgentState) -> AgentState:
        """Async counterpart of ``execute`` for graphs with coroutine nodes."""
        logger.debug(f"Executing agent {self.agent_id} for task {initial_state.get('task_id')}")
        try:
            return await self.graph.ainvoke(initial_state)
        except Exception as e:
            logger.error(f"Agent execution failed: {str(e)}")
            raise
