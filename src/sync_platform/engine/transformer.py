"""Transformation engine: applies a Transformer program to one record."""

from typing import Any, List, Optional
import copy
import logging

from sync_platform.engine.coercion import TargetTypes, adapt_to_type
from sync_platform.engine.functions import apply_mapping_transform, call_function
from sync_platform.engine.paths import set_path, try_resolve
from sync_platform.shared.errors import PathResolutionError
from sync_platform.shared.models import DataPayload, Schema, Transformer


logger = logging.getLogger(__name__)


class TransformationEngine:
    """Converts source-shaped records into target-shaped records."""

    def transform(
        self,
        transformer: Transformer,
        record: DataPayload,
        target_schema: Optional[Schema] = None
    ) -> DataPayload:
        """
        Transform a single record.

        Mappings are applied first, then functions. Functions only ever read
        from ``record``, never from the output being built.

        Args:
            transformer: Program of mappings and functions
            record: Source record
            target_schema: Target shape used for type coercion, if known

        Returns:
            New target-shaped record

        Raises:
            MappingError: for an unknown function or transform name
        """
        target_types = TargetTypes(target_schema.field_types() if target_schema else None)
        output: DataPayload = {}

        for mapping in transformer.mappings:
            found, value = try_resolve(record, mapping.source_field)
            if not found:
                logger.debug(f"Skipping mapping {mapping.source_field} -> {mapping.target_field}: source missing")
                continue
            value = apply_mapping_transform(
                mapping.transform, copy.deepcopy(value), mapping.target_field
            )
            self._write(output, mapping.target_field, value, target_types)

        for function in transformer.functions:
            args = [self._resolve_arg(record, arg) for arg in function.args]
            result = call_function(function.name, args, function.target_field)
            self._write(output, function.target_field, result, target_types)

        return output

    def transform_many(
        self,
        transformer: Transformer,
        records: List[DataPayload],
        target_schema: Optional[Schema] = None
    ) -> List[DataPayload]:
        """Transform every record; the first failure aborts the batch."""
        return [self.transform(transformer, record, target_schema) for record in records]

    @staticmethod
    def _resolve_arg(record: DataPayload, arg: str) -> Any:
        if len(arg) >= 2 and arg.startswith("'") and arg.endswith("'"):
            return arg[1:-1]
        _, value = try_resolve(record, arg)
        return value

    @staticmethod
    def _write(output: DataPayload, path: str, value: Any, target_types: TargetTypes) -> None:
        if target_types:
            value = adapt_to_type(value, target_types.lookup(path))
        try:
            set_path(output, path, value)
        except PathResolutionError as e:
            logger.warning(f"Dropping field {path}: {e}")
