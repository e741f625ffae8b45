"""
Core layer: reactive graph, data bundle, filters, transformators, pipeline
runner, modules and the app composer.
"""

from .bundle import DataBundle, ProvenanceStep
from .composer import AppDefinition, TreeNode, compose
from .filter_registry import FilterRegistry, apply_filters
from .filter_slices import (
    GLOBAL_FILTERS,
    FilterSlice,
    FilterSlices,
    as_filter_slices,
    deep_copy_filter,
    filter_slices,
)
from .inputs import InputScope
from .module import ALL, Module, ModuleGroup, ModuleInstance, modules
from .namespace import Namespace, input_id, output_id
from .pipeline import PipelineResult, StageState, run_transformators
from .reactive import MISSING, Node, NodeStatus, ReactiveGraph, req
from .session import Session
from .transformator import Transformator, validate_transformators

__all__ = [
    "ALL",
    "AppDefinition",
    "DataBundle",
    "FilterRegistry",
    "FilterSlice",
    "FilterSlices",
    "GLOBAL_FILTERS",
    "InputScope",
    "MISSING",
    "Module",
    "ModuleGroup",
    "ModuleInstance",
    "Namespace",
    "Node",
    "NodeStatus",
    "PipelineResult",
    "ProvenanceStep",
    "ReactiveGraph",
    "Session",
    "StageState",
    "Transformator",
    "TreeNode",
    "apply_filters",
    "as_filter_slices",
    "compose",
    "deep_copy_filter",
    "filter_slices",
    "input_id",
    "modules",
    "output_id",
    "req",
    "run_transformators",
    "validate_transformators",
]
