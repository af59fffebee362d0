"""Trigger Dispatcher: runs subscribed workflows when a source emits an event."""

import asyncio
import copy
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Set
import logging

from sync_platform.agents.pipeline_agent import PipelineAgent
from sync_platform.shared.errors import NotFoundError
from sync_platform.shared.message_bus import Message, MessageBus
from sync_platform.shared.models import DataPayload, Trigger, TriggerOutcome, Workflow


logger = logging.getLogger(__name__)


class TriggerDispatcher:
    """
    Maps ``(source_id, event)`` pairs to workflows and fires them.

    Every matching workflow runs in its own task. Dispatches are independent:
    one failing run is logged and reported in its outcome without touching
    the others.

    Only unfinished tasks are held. A finished dispatch leaves its outcome in
    a buffer of the last ``outcome_history`` outcomes until
    ``wait_for_pending`` collects it.
    """

    def __init__(self, pipeline: PipelineAgent, outcome_history: int = 100):
        self.pipeline = pipeline
        self._workflows: Dict[str, Workflow] = {}
        self._subscriptions: Dict[str, List[str]] = {}
        self._pending: Set[asyncio.Task] = set()
        self._outcomes: Deque[TriggerOutcome] = deque(maxlen=outcome_history)
        self._lock = threading.Lock()

    def register_workflow(self, workflow: Workflow) -> None:
        """Subscribe a workflow to its triggers, replacing any earlier registration."""
        with self._lock:
            self._remove(workflow.id)
            self._workflows[workflow.id] = workflow
            for trigger in workflow.triggers:
                subscribers = self._subscriptions.setdefault(trigger.key, [])
                if workflow.id not in subscribers:
                    subscribers.append(workflow.id)
        logger.info(f"Registered workflow {workflow.id} on {len(workflow.triggers)} triggers")

    def unregister_workflow(self, workflow_id: str) -> None:
        with self._lock:
            removed = self._remove(workflow_id)
        if not removed:
            raise NotFoundError(f"workflow not found: {workflow_id}")
        logger.info(f"Unregistered workflow {workflow_id}")

    def subscribers(self, source_id: str, event: str) -> List[Workflow]:
        """Active workflows subscribed to an event."""
        key = Trigger(source_id, event).key
        with self._lock:
            ids = list(self._subscriptions.get(key, []))
            return [self._workflows[i] for i in ids if self._workflows[i].active]

    def handle_trigger(
        self,
        source_id: str,
        event: str,
        payload: Optional[DataPayload] = None
    ) -> List[asyncio.Task]:
        """
        Start one pipeline run per active subscribed workflow.

        Must be called from a running event loop.

        Args:
            source_id: Data source that emitted the event
            event: Event name
            payload: Record carried by the event; when given it replaces the fetch

        Returns:
            The spawned dispatch tasks
        """
        workflows = self.subscribers(source_id, event)
        if not workflows:
            logger.debug(f"No active workflows for {source_id}:{event}")
            return []

        tasks = []
        for workflow in workflows:
            records = [copy.deepcopy(payload)] if payload is not None else None
            task = asyncio.create_task(
                self._dispatch(workflow, records),
                name=f"workflow-{workflow.id}"
            )
            tasks.append(task)

        with self._lock:
            self._pending.update(tasks)
        for task in tasks:
            task.add_done_callback(self._on_dispatch_done)
        logger.info(f"Dispatched {len(tasks)} workflows for {source_id}:{event}")
        return tasks

    @property
    def in_flight(self) -> int:
        """Number of dispatches that have not finished yet."""
        with self._lock:
            return len(self._pending)

    async def wait_for_pending(self) -> List[TriggerOutcome]:
        """
        Wait for every unfinished dispatch, then collect the buffered outcomes.

        Returns:
            Outcomes in completion order; each is returned once
        """
        with self._lock:
            tasks = list(self._pending)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        with self._lock:
            outcomes = list(self._outcomes)
            self._outcomes.clear()
        return outcomes

    def _on_dispatch_done(self, task: asyncio.Task) -> None:
        with self._lock:
            self._pending.discard(task)
            if not task.cancelled() and task.exception() is None:
                self._outcomes.append(task.result())

    def attach(
        self,
        message_bus: MessageBus,
        topic: str = "source.events",
        loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> None:
        """
        Subscribe to source events on a message bus.

        A message is read as ``(message.source, message.event_type,
        message.payload)``. Messages delivered on another thread (Redis,
        Kafka) are handed over to ``loop``, which defaults to the loop
        running at attach time.
        """
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

        def on_message(message: Message) -> None:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                if loop is None:
                    logger.error(f"Dropping {message.event_type} from {message.source}: no event loop")
                    return
                loop.call_soon_threadsafe(
                    self.handle_trigger, message.source, message.event_type, message.payload
                )
                return
            self.handle_trigger(message.source, message.event_type, message.payload)

        message_bus.subscribe(topic, on_message)
        logger.info(f"Trigger dispatcher attached to {topic}")

    async def _dispatch(self, workflow: Workflow, records: Optional[List[DataPayload]]) -> TriggerOutcome:
        try:
            outcome = await self.pipeline.run(workflow.connection_id, records)
        except Exception as e:
            logger.error(f"Workflow {workflow.id} failed: {str(e)}")
            return TriggerOutcome(
                workflow_id=workflow.id,
                connection_id=workflow.connection_id,
                success=False,
                error=str(e),
            )
        return TriggerOutcome(
            workflow_id=workflow.id,
            connection_id=workflow.connection_id,
            success=True,
            execution_id=outcome.execution_id,
        )

    def _remove(self, workflow_id: str) -> bool:
        workflow = self._workflows.pop(workflow_id, None)
        if workflow is None:
            return False
        for trigger in workflow.triggers:
            subscribers = self._subscriptions.get(trigger.key)
            if subscribers and workflow_id in subscribers:
                subscribers.remove(workflow_id)
                if not subscribers:
                    del self._subscriptions[trigger.key]
        return True
