"""Shared models, errors, configuration and messaging."""

from sync_platform.shared.config import Settings, configure_logging
from sync_platform.shared.message_bus import (
    Message,
    MessageBus,
    InMemoryMessageBus,
    RedisMessageBus,
    KafkaMessageBus,
    create_message_bus,
)
from sync_platform.shared.models import (
    DataPayload,
    FieldType,
    FieldDefinition,
    Schema,
    FieldMapping,
    Function,
    Transformer,
    Connection,
    ExecutionStatus,
    Execution,
    JobStatus,
    Job,
    Trigger,
    Workflow,
    PipelineOutcome,
    TriggerOutcome,
)

__all__ = [
    "Settings",
    "configure_logging",
    "Message",
    "MessageBus",
    "InMemoryMessageBus",
    "RedisMessageBus",
    "KafkaMessageBus",
    "create_message_bus",
    "DataPayload",
    "FieldType",
    "FieldDefinition",
    "Schema",
    "FieldMapping",
    "Function",
    "Transformer",
    "Connection",
    "ExecutionStatus",
    "Execution",
    "JobStatus",
    "Job",
    "Trigger",
    "Workflow",
    "PipelineOutcome",
    "TriggerOutcome",
]
