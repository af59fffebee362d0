"""Transformation engine and its helpers."""

from sync_platform.engine.transformer import TransformationEngine
from sync_platform.engine.coercion import TargetTypes, adapt_to_type
from sync_platform.engine.functions import FUNCTIONS, MAPPING_TRANSFORMS
from sync_platform.engine.paths import resolve_path, set_path, try_resolve

__all__ = [
    "TransformationEngine",
    "TargetTypes",
    "adapt_to_type",
    "FUNCTIONS",
    "MAPPING_TRANSFORMS",
    "resolve_path",
    "set_path",
    "try_resolve",
]
