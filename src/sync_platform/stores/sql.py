"""SQLAlchemy-backed stores for connections, transformers and executions."""

from dataclasses import asdict
from datetime import datetime
from typing import List, Optional, Union
import logging

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine

from sync_platform.shared.errors import NotFoundError
from sync_platform.shared.models import (
    Connection,
    DataPayload,
    Execution,
    ExecutionStatus,
    FieldMapping,
    Function,
    Transformer,
)
from sync_platform.stores.base import ConfigurationStore, ExecutionStore


logger = logging.getLogger(__name__)

metadata = MetaData()

transformers_table = Table(
    "transformers",
    metadata,
    Column("id", String(50), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("description", Text),
    Column("mappings", JSON, nullable=False),
    Column("functions", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=datetime.now),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=datetime.now, onupdate=datetime.now),
)

connections_table = Table(
    "connections",
    metadata,
    Column("id", String(50), primary_key=True),
    Column("name", String(100), nullable=False, default=""),
    Column("source_id", String(50), nullable=False),
    Column("target_id", String(50), nullable=False),
    Column("transformer_id", String(50), nullable=False),
    Column("config", JSON, nullable=False),
    Column("schedule", String(100)),
    Column("active", Boolean, nullable=False, default=True),
    Column("last_run", DateTime(timezone=True)),
)

executions_table = Table(
    "executions",
    metadata,
    Column("id", String(50), primary_key=True),
    Column("connection_id", String(50), nullable=False, index=True),
    Column("status", String(20), nullable=False, index=True),
    Column("start_time", DateTime(timezone=True), nullable=False),
    Column("end_time", DateTime(timezone=True)),
    Column("source_data", JSON),
    Column("target_data", JSON),
    Column("error", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


def _engine(bind: Union[str, Engine]) -> Engine:
    return create_engine(bind) if isinstance(bind, str) else bind


def create_tables(bind: Union[str, Engine]) -> Engine:
    """Create all tables if they are missing and return the engine."""
    engine = _engine(bind)
    metadata.create_all(engine)
    return engine


class SqlConfigurationStore(ConfigurationStore):
    """Connections and transformers in a relational database."""

    def __init__(self, bind: Union[str, Engine]):
        self.engine = create_tables(bind)

    def get_connection(self, connection_id: str) -> Connection:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(connections_table).where(connections_table.c.id == connection_id)
            ).mappings().first()
        if row is None:
            raise NotFoundError(f"connection not found: {connection_id}")
        return self._row_to_connection(row)

    def list_connections(self) -> List[Connection]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(connections_table)).mappings().all()
        return [self._row_to_connection(row) for row in rows]

    def save_connection(self, connection: Connection) -> None:
        values = {
            "name": connection.name,
            "source_id": connection.source_id,
            "target_id": connection.target_id,
            "transformer_id": connection.transformer_id,
            "config": {"query": connection.query},
            "schedule": connection.schedule,
            "active": connection.active,
            "last_run": connection.last_run,
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                update(connections_table)
                .where(connections_table.c.id == connection.id)
                .values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(connections_table).values(id=connection.id, **values))

    def delete_connection(self, connection_id: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(connections_table).where(connections_table.c.id == connection_id))

    def set_active(self, connection_id: str, active: bool) -> None:
        self._update_connection(connection_id, active=active)

    def update_last_run(self, connection_id: str, when: datetime) -> None:
        self._update_connection(connection_id, last_run=when)

    def get_transformer(self, transformer_id: str) -> Transformer:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(transformers_table).where(transformers_table.c.id == transformer_id)
            ).mappings().first()
        if row is None:
            raise NotFoundError(f"transformer not found: {transformer_id}")
        return Transformer(
            id=row["id"],
            name=row["name"],
            description=row["description"] or "",
            mappings=[FieldMapping(**m) for m in row["mappings"] or []],
            functions=[Function(**f) for f in row["functions"] or []],
        )

    def save_transformer(self, transformer: Transformer) -> None:
        values = {
            "name": transformer.name,
            "description": transformer.description or None,
            "mappings": [asdict(m) for m in transformer.mappings],
            "functions": [asdict(f) for f in transformer.functions],
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                update(transformers_table)
                .where(transformers_table.c.id == transformer.id)
                .values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(transformers_table).values(id=transformer.id, **values))

    def _update_connection(self, connection_id: str, **values) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(connections_table)
                .where(connections_table.c.id == connection_id)
                .values(**values)
            )
        if result.rowcount == 0:
            raise NotFoundError(f"connection not found: {connection_id}")

    @staticmethod
    def _row_to_connection(row) -> Connection:
        config = row["config"] or {}
        query = config.get("query")
        return Connection(
            id=row["id"],
            name=row["name"] or "",
            source_id=row["source_id"],
            target_id=row["target_id"],
            transformer_id=row["transformer_id"],
            query=query if isinstance(query, dict) else {},
            schedule=row["schedule"] or "",
            active=bool(row["active"]),
            last_run=row["last_run"],
        )


class SqlExecutionStore(ExecutionStore):
    """Execution audit records in a relational database."""

    def __init__(self, bind: Union[str, Engine]):
        self.engine = create_tables(bind)

    def create(self, execution: Execution) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(executions_table).values(
                    id=execution.id,
                    connection_id=execution.connection_id,
                    status=execution.status.value,
                    start_time=execution.start_time,
                    end_time=execution.end_time,
                    source_data=execution.source_data,
                    target_data=execution.target_data,
                    error=execution.error,
                )
            )

    def update_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        end_time: datetime,
        target_data: Optional[List[DataPayload]] = None,
        error: Optional[str] = None,
        source_data: Optional[List[DataPayload]] = None,
    ) -> None:
        values = {
            "status": status.value,
            "end_time": end_time,
            "target_data": target_data,
            "error": error,
        }
        if source_data is not None:
            values["source_data"] = source_data

        with self.engine.begin() as conn:
            result = conn.execute(
                update(executions_table)
                .where(executions_table.c.id == execution_id)
                .values(**values)
            )
        if result.rowcount == 0:
            raise NotFoundError(f"execution not found: {execution_id}")
        logger.debug(f"Execution {execution_id} marked {status.value}")

    def get(self, execution_id: str) -> Execution:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(executions_table).where(executions_table.c.id == execution_id)
            ).mappings().first()
        if row is None:
            raise NotFoundError(f"execution not found: {execution_id}")
        return self._row_to_execution(row)

    def list_by_connection(self, connection_id: str, limit: int = 20, offset: int = 0) -> List[Execution]:
        if limit <= 0:
            limit = 20
        query = (
            select(executions_table)
            .where(executions_table.c.connection_id == connection_id)
            .order_by(executions_table.c.start_time.desc())
            .limit(limit)
            .offset(offset)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [self._row_to_execution(row) for row in rows]

    @staticmethod
    def _row_to_execution(row) -> Execution:
        return Execution(
            id=row["id"],
            connection_id=row["connection_id"],
            status=ExecutionStatus(row["status"]),
            start_time=row["start_time"],
            end_time=row["end_time"],
            source_data=row["source_data"],
            target_data=row["target_data"],
            error=row["error"],
        )
