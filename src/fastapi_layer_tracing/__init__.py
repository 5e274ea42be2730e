"""Layer tracing for FastAPI middleware chains."""

# Primary API — the main entry point
from fastapi_layer_tracing.config import InstrumentationConfig

# Chain API — for tracing hand-built middleware chains
from fastapi_layer_tracing.core.chain import build_traced_chain, trace_layer

# Core types and helpers — for advanced users and type checking
from fastapi_layer_tracing.core.errors import as_error_and_message
from fastapi_layer_tracing.core.layers import (
    AttributeNames,
    Layer,
    LayerClassification,
    LayerInfo,
    LayerType,
    get_layer_metadata,
)
from fastapi_layer_tracing.core.matchers import (
    Exact,
    IgnoreMatcher,
    Pattern,
    Predicate,
    compile_matcher,
    is_layer_ignored,
)
from fastapi_layer_tracing.core.path_store import LayerPathStore, store_layer_path

# Exceptions — for error handling
from fastapi_layer_tracing.exceptions import (
    IgnorePatternError,
    LayerConfigError,
    LayerTracingError,
)
from fastapi_layer_tracing.fastapi.router import create_traced_router, make_traced_route_class

__all__ = [
    # Primary API
    "create_traced_router",
    "make_traced_route_class",
    "InstrumentationConfig",
    # Chain API
    "build_traced_chain",
    "trace_layer",
    # Core types and helpers
    "AttributeNames",
    "Exact",
    "IgnoreMatcher",
    "Layer",
    "LayerClassification",
    "LayerInfo",
    "LayerPathStore",
    "LayerType",
    "Pattern",
    "Predicate",
    "as_error_and_message",
    "compile_matcher",
    "get_layer_metadata",
    "is_layer_ignored",
    "store_layer_path",
    # Exceptions
    "IgnorePatternError",
    "LayerConfigError",
    "LayerTracingError",
]

__version__ = "0.1.0"
