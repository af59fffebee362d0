"""Pipeline Agent: one fetch -> transform -> push run for a connection."""

import asyncio
import uuid
from datetime import datetime
from typing import List, Optional
import logging

from langchain_core.messages import AIMessage
from langgraph.graph import StateGraph, END

from sync_platform.agents.base_agent import BaseAgent, AgentState
from sync_platform.engine.transformer import TransformationEngine
from sync_platform.shared.errors import (
    FetchError,
    NotFoundError,
    PushError,
    SyncPlatformError,
    TransformError,
)
from sync_platform.shared.message_bus import MessageBus
from sync_platform.shared.models import (
    Connection,
    DataPayload,
    Execution,
    ExecutionStatus,
    PipelineOutcome,
    Schema,
)
from sync_platform.stores.base import ConfigurationStore, ConnectorRegistry, ExecutionStore


logger = logging.getLogger(__name__)


class PipelineState(AgentState):
    """State for a single pipeline run."""
    connection: Connection
    execution_id: Optional[str]
    records_override: Optional[List[DataPayload]]
    source_data: List[DataPayload]
    target_data: List[DataPayload]
    pushed: bool


class PipelineAgent(BaseAgent):
    """
    Pipeline Agent using LangGraph to orchestrate a sync run.

    Graph structure:
    START -> start_execution -> fetch -> transform -> push -> finalize -> END

    A fetch that returns no records, or any failure, routes straight to
    ``finalize`` so the execution record always reaches a terminal status.

    Store calls and record transformation are synchronous, so they run in
    worker threads; concurrent runs only share the event loop while awaiting.
    """

    def __init__(
        self,
        message_bus: MessageBus,
        config_store: ConfigurationStore,
        execution_store: ExecutionStore,
        connectors: ConnectorRegistry,
        engine: Optional[TransformationEngine] = None,
        agent_id: Optional[str] = None
    ):
        """
        Initialize the Pipeline Agent.

        Args:
            message_bus: Message bus for publishing execution events
            config_store: Source of connections and transformers
            execution_store: Audit log for execution records
            connectors: Connector lookup by data source id
            engine: Transformation engine (a default one is created if omitted)
            agent_id: Unique identifier for this agent instance
        """
        self.config_store = config_store
        self.execution_store = execution_store
        self.connectors = connectors
        self.engine = engine or TransformationEngine()
        super().__init__(message_bus, agent_id, agent_type="pipeline")

    def _build_graph(self) -> StateGraph:
        workflow = StateGraph(PipelineState)

        workflow.add_node("start_execution", self._start_execution_node)
        workflow.add_node("fetch", self._fetch_node)
        workflow.add_node("transform", self._transform_node)
        workflow.add_node("push", self._push_node)
        workflow.add_node("finalize", self._finalize_node)

        workflow.set_entry_point("start_execution")
        workflow.add_edge("start_execution", "fetch")
        workflow.add_conditional_edges(
            "fetch",
            self._route_after_fetch,
            {
                "transform": "transform",
                "finalize": "finalize"
            }
        )
        workflow.add_conditional_edges(
            "transform",
            self._route_on_error("push"),
            {
                "push": "push",
                "finalize": "finalize"
            }
        )
        workflow.add_edge("push", "finalize")
        workflow.add_edge("finalize", END)

        return workflow.compile()

    def _route_after_fetch(self, state: PipelineState) -> str:
        if state.get("error") or not state["source_data"]:
            return "finalize"
        return "transform"

    @staticmethod
    def _route_on_error(next_node: str):
        def route(state: PipelineState) -> str:
            return "finalize" if state.get("error") else next_node
        return route

    @staticmethod
    def _fail(state: PipelineState, error: SyncPlatformError, cause: Optional[Exception] = None) -> PipelineState:
        if cause is not None and cause is not error:
            error.__cause__ = cause
        state["error"] = str(error)
        state["context"]["exception"] = error
        logger.error(f"Pipeline run for {state['connection'].id} failed: {str(error)}")
        return state

    async def _start_execution_node(self, state: PipelineState) -> PipelineState:
        """
        Node: Create the in-progress execution record.

        Args:
            state: Current agent state

        Returns:
            Updated state with the execution id
        """
        connection = state["connection"]
        now = datetime.now()
        execution = Execution(
            id=f"exec-{uuid.uuid4().hex}",
            connection_id=connection.id,
            status=ExecutionStatus.IN_PROGRESS,
            start_time=now,
        )
        await asyncio.to_thread(self.execution_store.create, execution)
        state["execution_id"] = execution.id

        try:
            await asyncio.to_thread(self.config_store.update_last_run, connection.id, now)
        except NotFoundError:
            logger.warning(f"Connection {connection.id} is not persisted; last run not recorded")
        connection.last_run = now

        state["messages"].append(AIMessage(content=f"Started execution {execution.id}"))
        logger.info(f"Started execution {execution.id} for connection {connection.id}")
        return state

    async def _fetch_node(self, state: PipelineState) -> PipelineState:
        """Node: Fetch source records, or use the records supplied by the caller."""
        connection = state["connection"]
        override = state.get("records_override")

        if override is not None:
            state["source_data"] = list(override)
        else:
            try:
                connector = self.connectors.get(connection.source_id)
                state["source_data"] = list(await connector.fetch(connection.query) or [])
            except Exception as e:
                return self._fail(
                    state,
                    FetchError(f"Fetch from {connection.source_id} failed: {str(e)}"),
                    e
                )

        state["messages"].append(AIMessage(content=f"Fetched {len(state['source_data'])} records"))
        logger.info(f"Fetched {len(state['source_data'])} records from {connection.source_id}")
        return state

    async def _transform_node(self, state: PipelineState) -> PipelineState:
        """Node: Transform every record; a single failure fails the run."""
        connection = state["connection"]
        try:
            transformer = await asyncio.to_thread(self.config_store.get_transformer, connection.transformer_id)
            target_schema = self._target_schema(connection.target_id)
            state["target_data"] = await asyncio.to_thread(
                self.engine.transform_many, transformer, state["source_data"], target_schema
            )
        except TransformError as e:
            return self._fail(state, e)
        except Exception as e:
            return self._fail(state, TransformError(f"Transform failed: {str(e)}"), e)

        state["messages"].append(AIMessage(content=f"Transformed {len(state['target_data'])} records"))
        logger.debug(f"Transformed {len(state['target_data'])} records with {connection.transformer_id}")
        return state

    async def _push_node(self, state: PipelineState) -> PipelineState:
        """Node: Push transformed records to the target."""
        connection = state["connection"]
        try:
            connector = self.connectors.get(connection.target_id)
            await connector.push(state["target_data"])
        except Exception as e:
            return self._fail(
                state,
                PushError(f"Push to {connection.target_id} failed: {str(e)}"),
                e
            )

        state["pushed"] = True
        state["messages"].append(AIMessage(content=f"Pushed {len(state['target_data'])} records"))
        logger.info(f"Pushed {len(state['target_data'])} records to {connection.target_id}")
        return state

    async def _finalize_node(self, state: PipelineState) -> PipelineState:
        """
        Node: Record the terminal status and publish the outcome.

        Args:
            state: Current agent state

        Returns:
            Updated state with the run summary as result
        """
        connection = state["connection"]
        execution_id = state["execution_id"]
        failed = bool(state.get("error"))
        status = ExecutionStatus.FAILED if failed else ExecutionStatus.SUCCESS

        await asyncio.to_thread(
            self.execution_store.update_status,
            execution_id,
            status,
            datetime.now(),
            target_data=state["target_data"],
            error=state.get("error"),
            source_data=state["source_data"],
        )

        summary = {
            "execution_id": execution_id,
            "connection_id": connection.id,
            "status": status.value,
            "records_fetched": len(state["source_data"]),
            "records_pushed": len(state["target_data"]) if state["pushed"] else 0,
        }
        if failed:
            summary["error"] = state["error"]
            self.publish_event("pipeline.execution.failed", summary, "execution.events")
        else:
            self.publish_event("pipeline.execution.completed", summary, "execution.events")

        state["result"] = summary
        logger.info(f"Execution {execution_id} finished with status {status.value}")
        return state

    def _target_schema(self, target_id: str) -> Optional[Schema]:
        try:
            return self.connectors.get(target_id).get_schema()
        except NotFoundError:
            return None

    # Public API methods

    async def run(
        self,
        connection_id: str,
        records: Optional[List[DataPayload]] = None
    ) -> PipelineOutcome:
        """
        Run the pipeline for a persisted connection.

        Raises:
            NotFoundError: if the connection does not exist
            FetchError, TransformError, PushError: after the execution is recorded as failed
        """
        connection = await asyncio.to_thread(self.config_store.get_connection, connection_id)
        return await self.run_connection(connection, records)

    async def run_connection(
        self,
        connection: Connection,
        records: Optional[List[DataPayload]] = None
    ) -> PipelineOutcome:
        """
        Run the pipeline for a connection.

        Args:
            connection: Connection to sync
            records: Records to use instead of fetching from the source

        Returns:
            Outcome of the successful run
        """
        initial_state: PipelineState = self.initial_state(
            f"Run pipeline for {connection.id}",
            connection=connection,
            execution_id=None,
            records_override=records,
            source_data=[],
            target_data=[],
            pushed=False,
        )

        final_state = await self.aexecute(initial_state)

        exception = final_state["context"].get("exception")
        if exception is not None:
            raise exception

        result = final_state["result"]
        return PipelineOutcome(
            execution_id=result["execution_id"],
            connection_id=connection.id,
            status=ExecutionStatus(result["status"]),
            records_fetched=result["records_fetched"],
            records_pushed=result["records_pushed"],
        )
