"""Instrumentation configuration for traced middleware chains."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from fastapi_layer_tracing.core.layers import LayerInfo, LayerType
from fastapi_layer_tracing.core.matchers import IgnoreMatcher, compile_matchers
from fastapi_layer_tracing.exceptions import LayerConfigError

SpanNameHook = Callable[[LayerInfo, str], str | None]
RequestHook = Callable[[Any, LayerInfo], None]


@dataclass(frozen=True)
class InstrumentationConfig:
    """Which layers to trace and how to name and decorate their spans.

    Raw values are normalized on creation: ignore_layers becomes a tuple of
    matchers and ignore_layers_type a frozenset of LayerType.

    Attributes:
        ignore_layers: Name patterns (str, compiled regex or callable) of
            layers that are not traced.
        ignore_layers_type: Layer types that are not traced.
        span_name_hook: Called with (info, default_name); a returned string
            replaces the default span name.
        request_hook: Called with (span, info) once a layer span is started.

    Example:
        config = InstrumentationConfig(
            ignore_layers=["middleware - health", re.compile(r"^router - /internal")],
            ignore_layers_type=[LayerType.MIDDLEWARE],
        )
    """

    ignore_layers: tuple[IgnoreMatcher, ...] = ()
    ignore_layers_type: frozenset[LayerType] = frozenset()
    span_name_hook: SpanNameHook | None = None
    request_hook: RequestHook | None = None

    def __post_init__(self) -> None:
        """Normalize patterns and layer types, validating hooks."""
        object.__setattr__(self, "ignore_layers", compile_matchers(self.ignore_layers))
        object.__setattr__(
            self,
            "ignore_layers_type",
            normalize_layer_types(self.ignore_layers_type),
        )
        for hook_name in ("span_name_hook", "request_hook"):
            hook = getattr(self, hook_name)
            if hook is not None and not callable(hook):
                raise LayerConfigError(
                    f"{hook_name} must be callable, got {type(hook).__name__}"
                )


def normalize_layer_types(layer_types: Iterable[Any] | None) -> frozenset[LayerType]:
    """Normalize ignored layer types to a frozenset of LayerType.

    Accepts LayerType members or their string values ("router",
    "middleware", "request_handler").

    Raises:
        LayerConfigError: If a value is not a known layer type.
    """
    if layer_types is None:
        return frozenset()
    if isinstance(layer_types, (str, LayerType)):
        raise LayerConfigError(
            f"ignore_layers_type must be a list of layer types, got {type(layer_types).__name__}"
        )

    result: set[LayerType] = set()
    for i, value in enumerate(layer_types):
        try:
            result.add(LayerType(value))
        except ValueError as exc:
            raise LayerConfigError(
                f"Unknown layer type at index {i} in ignore_layers_type: {value!r}"
            ) from exc
    return frozenset(result)
