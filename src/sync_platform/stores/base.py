"""Capability interfaces the core depends on."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from sync_platform.shared.errors import NotFoundError
from sync_platform.shared.models import (
    Connection,
    DataPayload,
    Execution,
    ExecutionStatus,
    Schema,
    Transformer,
)


class Connector(ABC):
    """Fetch/push capability of one external data source."""

    @abstractmethod
    async def fetch(self, query: Dict[str, Any]) -> List[DataPayload]:
        """Retrieve records matching ``query``."""
        pass

    @abstractmethod
    async def push(self, records: List[DataPayload]) -> None:
        """Send records to the data source."""
        pass

    def get_schema(self) -> Optional[Schema]:
        """Declared target shape, if the connector has one."""
        return None


class ConnectorRegistry:
    """Looks up connectors by data source id."""

    def __init__(self) -> None:
        self._connectors: Dict[str, Connector] = {}

    def register(self, source_id: str, connector: Connector) -> None:
        self._connectors[source_id] = connector

    def get(self, source_id: str) -> Connector:
        try:
            return self._connectors[source_id]
        except KeyError:
            raise NotFoundError(f"connector not found: {source_id}")

    def list(self) -> List[str]:
        return list(self._connectors)


class ConfigurationStore(ABC):
    """Persisted connections and transformers."""

    @abstractmethod
    def get_connection(self, connection_id: str) -> Connection:
        pass

    @abstractmethod
    def list_connections(self) -> List[Connection]:
        pass

    @abstractmethod
    def save_connection(self, connection: Connection) -> None:
        pass

    @abstractmethod
    def delete_connection(self, connection_id: str) -> None:
        pass

    @abstractmethod
    def set_active(self, connection_id: str, active: bool) -> None:
        pass

    @abstractmethod
    def update_last_run(self, connection_id: str, when: datetime) -> None:
        pass

    @abstractmethod
    def get_transformer(self, transformer_id: str) -> Transformer:
        pass

    @abstractmethod
    def save_transformer(self, transformer: Transformer) -> None:
        pass


class ExecutionStore(ABC):
    """Append-only audit log of pipeline runs."""

    @abstractmethod
    def create(self, execution: Execution) -> None:
        pass

    @abstractmethod
    def update_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        end_time: datetime,
        target_data: Optional[List[DataPayload]] = None,
        error: Optional[str] = None,
        source_data: Optional[List[DataPayload]] = None,
    ) -> None:
        """Record the terminal status of an execution."""
        pass

    @abstractmethod
    def get(self, execution_id: str) -> Execution:
        pass

    @abstractmethod
    def list_by_connection(self, connection_id: str, limit: int = 20, offset: int = 0) -> List[Execution]:
        """Executions of a connection, newest first."""
        pass
