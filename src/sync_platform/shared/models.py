"""Core data models for the sync platform."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional
from enum import Enum


# Records travel through the platform as plain nested dicts.
DataPayload = Dict[str, Any]


class FieldType(str, Enum):
    """Field types produced by schema discovery."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ARRAY_OBJECT = "array.object"
    NULL = "null"


@dataclass
class FieldDefinition:
    """Describes a single field of an entity."""
    id: str
    name: str
    type: str
    path: str
    sample: str = ""
    required: bool = False


@dataclass
class Schema:
    """Field shape of one entity from one data source, keyed by path."""
    entity_name: str
    fields: Dict[str, FieldDefinition] = field(default_factory=dict)

    def field_types(self) -> Dict[str, str]:
        """Return a path -> type lookup."""
        return {path: definition.type for path, definition in self.fields.items()}


@dataclass
class FieldMapping:
    """Maps a source path onto a target path."""
    source_field: str
    target_field: str
    transform: Optional[str] = None


@dataclass
class Function:
    """Computed field derivation; quoted args are literals, the rest are source paths."""
    name: str
    target_field: str
    args: List[str] = field(default_factory=list)


@dataclass
class Transformer:
    """A complete transformation program between two shapes."""
    id: str
    name: str
    mappings: List[FieldMapping] = field(default_factory=list)
    functions: List[Function] = field(default_factory=list)
    description: str = ""


@dataclass
class Connection:
    """Persisted configuration of a source -> target sync."""
    id: str
    source_id: str
    target_id: str
    transformer_id: str
    query: Dict[str, Any] = field(default_factory=dict)
    schedule: str = ""
    active: bool = True
    name: str = ""
    last_run: Optional[datetime] = None


class ExecutionStatus(str, Enum):
    """Terminal and transient states of an execution record."""
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class Execution:
    """Audit record of a single pipeline run."""
    id: str
    connection_id: str
    status: ExecutionStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    source_data: Optional[List[DataPayload]] = None
    target_data: Optional[List[DataPayload]] = None
    error: Optional[str] = None


class JobStatus(str, Enum):
    """Lifecycle of a scheduled job."""
    SCHEDULED = "scheduled"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    STOPPED = "stopped"


@dataclass
class Job:
    """In-memory handle to a recurring pipeline run for one connection."""
    id: str
    connection_id: str
    source_id: str
    target_id: str
    transformer_id: str
    query: Dict[str, Any]
    schedule: str
    status: JobStatus = JobStatus.SCHEDULED
    last_run: Optional[datetime] = None
    error_history: int = 10
    errors: Deque[str] = field(init=False, default_factory=deque)

    def __post_init__(self) -> None:
        self.errors = deque(maxlen=self.error_history)

    def transition(self, status: JobStatus) -> None:
        """Move to a new status; stopped is terminal."""
        if self.status == JobStatus.STOPPED:
            return
        self.status = status

    def record_error(self, message: str) -> None:
        """Append to the bounded error log, dropping the oldest entry."""
        self.errors.append(message)

    def as_connection(self) -> Connection:
        return Connection(
            id=self.connection_id,
            source_id=self.source_id,
            target_id=self.target_id,
            transformer_id=self.transformer_id,
            query=self.query,
            schedule=self.schedule,
        )


@dataclass
class Trigger:
    """An (source, event) pair a workflow listens to."""
    source_id: str
    event: str

    @property
    def key(self) -> str:
        return f"{self.source_id}:{self.event}"


@dataclass
class Workflow:
    """Event-driven pipeline binding for one connection."""
    id: str
    connection_id: str
    triggers: List[Trigger] = field(default_factory=list)
    active: bool = True
    name: str = ""


@dataclass
class PipelineOutcome:
    """Result of a successful pipeline run."""
    execution_id: str
    connection_id: str
    status: ExecutionStatus
    records_fetched: int = 0
    records_pushed: int = 0


@dataclass
class TriggerOutcome:
    """Result of one event-driven dispatch."""
    workflow_id: str
    connection_id: str
    success: bool
    execution_id: Optional[str] = None
    error: Optional[str] = None
