"""In-memory store implementations for tests and single-process use."""

import copy
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional
import threading

from sync_platform.shared.errors import NotFoundError
from sync_platform.shared.models import (
    Connection,
    DataPayload,
    Execution,
    ExecutionStatus,
    Transformer,
)
from sync_platform.stores.base import ConfigurationStore, ExecutionStore


class InMemoryConfigurationStore(ConfigurationStore):
    """Connections and transformers kept in dicts; reads and writes copy."""

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._transformers: Dict[str, Transformer] = {}
        self._lock = threading.Lock()

    def get_connection(self, connection_id: str) -> Connection:
        with self._lock:
            return copy.deepcopy(self._stored_connection(connection_id))

    def list_connections(self) -> List[Connection]:
        with self._lock:
            return [copy.deepcopy(c) for c in self._connections.values()]

    def save_connection(self, connection: Connection) -> None:
        with self._lock:
            self._connections[connection.id] = copy.deepcopy(connection)

    def delete_connection(self, connection_id: str) -> None:
        with self._lock:
            self._connections.pop(connection_id, None)

    def set_active(self, connection_id: str, active: bool) -> None:
        with self._lock:
            self._stored_connection(connection_id).active = active

    def update_last_run(self, connection_id: str, when: datetime) -> None:
        with self._lock:
            self._stored_connection(connection_id).last_run = when

    def get_transformer(self, transformer_id: str) -> Transformer:
        with self._lock:
            try:
                return copy.deepcopy(self._transformers[transformer_id])
            except KeyError:
                raise NotFoundError(f"transformer not found: {transformer_id}")

    def save_transformer(self, transformer: Transformer) -> None:
        with self._lock:
            self._transformers[transformer.id] = copy.deepcopy(transformer)

    def _stored_connection(self, connection_id: str) -> Connection:
        try:
            return self._connections[connection_id]
        except KeyError:
            raise NotFoundError(f"connection not found: {connection_id}")


class InMemoryExecutionStore(ExecutionStore):

    def __init__(self) -> None:
        self._executions: Dict[str, Execution] = {}
        self._lock = threading.Lock()

    def create(self, execution: Execution) -> None:
        with self._lock:
            self._executions[execution.id] = replace(execution)

    def update_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        end_time: datetime,
        target_data: Optional[List[DataPayload]] = None,
        error: Optional[str] = None,
        source_data: Optional[List[DataPayload]] = None,
    ) -> None:
        with self._lock:
            execution = self._executions.get(execution_id)
            if execution is None:
                raise NotFoundError(f"execution not found: {execution_id}")
            execution.status = status
            execution.end_time = end_time
            execution.target_data = target_data
            execution.error = error
            if source_data is not None:
                execution.source_data = source_data

    def get(self, execution_id: str) -> Execution:
        with self._lock:
            try:
                return replace(self._executions[execution_id])
            except KeyError:
                raise NotFoundError(f"execution not found: {execution_id}")

    def list_by_connection(self, connection_id: str, limit: int = 20, offset: int = 0) -> List[Execution]:
        if limit <= 0:
            limit = 20
        with self._lock:
            matching = [replace(e) for e in self._executions.values() if e.connection_id == connection_id]
        matching.sort(key=lambda e: e.start_time, reverse=True)
        return matching[offset:offset + limit]
