"""Traced middleware chain assembly.

Wraps every layer of a (request, call_next) middleware chain so that
entering it records its path fragment, classifies it, checks the ignore
configuration and, unless ignored, runs it inside its own span.
Works with any request object that supports weak references.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from fastapi_layer_tracing.config import InstrumentationConfig
from fastapi_layer_tracing.core.errors import as_error_and_message
from fastapi_layer_tracing.core.layers import (
    REQUEST_HANDLER_KIND,
    ROUTER_KIND,
    AttributeNames,
    Layer,
    LayerInfo,
    get_layer_metadata,
)
from fastapi_layer_tracing.core.matchers import is_layer_ignored
from fastapi_layer_tracing.core.path_store import LayerPathStore
from fastapi_layer_tracing.exceptions import LayerConfigError

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "fastapi_layer_tracing"

Handler = Callable[[Any], Awaitable[Any]]


def get_tracer(tracer_provider: trace.TracerProvider | None = None) -> Tracer:
    """Get the tracer used for layer spans."""
    return trace.get_tracer(INSTRUMENTATION_NAME, tracer_provider=tracer_provider)


def normalize_middleware(
    middleware_attr: Any,
    *,
    source: str = "",
) -> tuple[Callable[..., Any], ...]:
    """Normalize a middleware argument to a tuple of async callables.

    Accepts: None, single callable, list, or tuple.
    Returns: tuple of callables (empty if None).

    Args:
        middleware_attr: The middleware value to normalize.
        source: Context for error messages (e.g., "traced router '/api'").

    Raises:
        LayerConfigError: If middleware_attr is not a valid type, or an
            entry is not an async callable.
    """
    prefix = f"{source}: " if source else ""
    if middleware_attr is None:
        return ()
    if callable(middleware_attr) and not isinstance(middleware_attr, (list, tuple)):
        middleware: tuple[Any, ...] = (middleware_attr,)
    elif isinstance(middleware_attr, (list, tuple)):
        middleware = tuple(middleware_attr)
    else:
        raise LayerConfigError(
            f"{prefix}middleware must be a list or callable, "
            f"got {type(middleware_attr).__name__}"
        )

    for i, mw in enumerate(middleware):
        if not callable(mw):
            raise LayerConfigError(f"{prefix}non-callable middleware at index {i}")
        if not asyncio.iscoroutinefunction(mw):
            raise LayerConfigError(
                f"{prefix}middleware at index {i} must be async, "
                f"got sync function {getattr(mw, '__name__', type(mw).__name__)}"
            )
    return middleware


def record_layer_error(span: Span, error: Any) -> None:
    """Mark a layer span as failed with the given error value."""
    error_value, message = as_error_and_message(error)
    if isinstance(error_value, BaseException):
        span.record_exception(error_value)
    else:
        span.add_event(
            "exception",
            {"exception.type": type(error).__name__, "exception.message": message},
        )
    span.set_status(Status(StatusCode.ERROR, message))


def trace_layer(
    layer: Layer,
    call: Handler,
    *,
    tracer: Tracer,
    store: LayerPathStore,
    mounted_path: str | None = None,
    fragment: str | None = None,
    config: InstrumentationConfig | None = None,
) -> Handler:
    """Wrap one layer so that calling it is traced.

    Whether the layer is ignored is decided here, once, when the chain is
    built. Ignore predicates are called with the layer name at that point
    and never per request, so a predicate whose answer changes later has no
    effect on chains already built.

    Args:
        layer: Descriptor of the wrapped layer.
        call: The layer itself, taking the request.
        tracer: Tracer used to start the layer span.
        store: Path fragments of in-flight requests.
        mounted_path: Path the layer is mounted on, used for its name.
        fragment: Path fragment contributed to the route, if any.
        config: Ignore patterns and hooks.

    Returns:
        An async function taking the request.
    """
    metadata = get_layer_metadata(layer, mounted_path)
    layer_type = metadata.layer_type
    # Ignoring depends only on the name and type, both fixed per layer.
    ignored = is_layer_ignored(metadata.name, layer_type, config)
    attributes = {k: v for k, v in metadata.attributes.items() if v is not None}

    async def traced(request: Any) -> Any:
        store.store_layer_path(request, fragment)
        if ignored:
            return await call(request)

        route = store.route(request)
        info = LayerInfo(request=request, route=route, layer_type=layer_type)
        span_name = _resolve_span_name(config, info, metadata.name)

        with tracer.start_as_current_span(
            span_name,
            attributes={**attributes, AttributeNames.HTTP_ROUTE: route},
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            _run_request_hook(config, span, info)
            try:
                return await call(request)
            except Exception as exc:
                record_layer_error(span, exc)
                raise

    if ignored:
        logger.debug(
            "Layer excluded from tracing",
            extra={"layer_name": metadata.name, "layer_type": layer_type.value},
        )

    traced.__name__ = f"traced_{getattr(call, '__name__', 'layer')}"
    traced.__qualname__ = traced.__name__
    return traced


def build_traced_chain(
    handler: Handler,
    middleware_stack: Sequence[Callable[..., Any]] = (),
    *,
    handler_path: str | None = None,
    mount_paths: Sequence[str] = (),
    config: InstrumentationConfig | None = None,
    tracer: Tracer | None = None,
    store: LayerPathStore | None = None,
) -> Handler:
    """Wrap a handler and its middleware chain with layer tracing.

    Composes middleware in order so that the first middleware in the list
    is the outermost (executes first). Routers in mount_paths wrap the
    middleware, outermost first, and the handler is traced as the
    request handler mounted on handler_path.

    Args:
        handler: The route handler function, taking the request.
        middleware_stack: Ordered sequence of middleware (outermost first).
        handler_path: The handler's own path, relative to mount_paths.
        mount_paths: Paths of the enclosing routers (outermost first).
        config: Ignore patterns and hooks.
        tracer: Tracer for layer spans. Defaults to the global tracer.
        store: Path fragment store. A private one is created if omitted.

    Returns:
        An async function taking the request.
    """
    tracer = tracer or get_tracer()
    store = store if store is not None else LayerPathStore()
    options = {"tracer": tracer, "store": store, "config": config}

    chain = trace_layer(
        Layer(REQUEST_HANDLER_KIND, path=handler_path),
        handler,
        mounted_path=handler_path,
        fragment=handler_path,
        **options,
    )
    for mw in reversed(middleware_stack):
        chain = trace_layer(
            Layer(getattr(mw, "__name__", type(mw).__name__)),
            _wrap_with_middleware(chain, mw),
            **options,
        )
    for mount_path in reversed(mount_paths):
        chain = trace_layer(
            Layer(ROUTER_KIND, path=mount_path),
            chain,
            mounted_path=mount_path,
            fragment=mount_path,
            **options,
        )

    inner = chain

    async def traced_request(request: Any) -> Any:
        store.store_layer_path(request)
        try:
            return await inner(request)
        finally:
            store.discard(request)

    traced_request.__name__ = f"traced_request_{getattr(handler, '__name__', 'handler')}"
    traced_request.__qualname__ = traced_request.__name__
    return traced_request


def _resolve_span_name(
    config: InstrumentationConfig | None,
    info: LayerInfo,
    default_name: str,
) -> str:
    """Run the span name hook, falling back to the default name."""
    if config is None or config.span_name_hook is None:
        return default_name
    try:
        name = config.span_name_hook(info, default_name)
    except Exception as exc:
        _, message = as_error_and_message(exc)
        logger.warning(
            "span_name_hook failed, using default span name",
            extra={"span_name": default_name, "error": message},
        )
        return default_name
    return name if isinstance(name, str) and name else default_name


def _run_request_hook(config: InstrumentationConfig | None, span: Span, info: LayerInfo) -> None:
    """Run the request hook without letting it fail the request."""
    if config is None or config.request_hook is None:
        return
    try:
        config.request_hook(span, info)
    except Exception as exc:
        _, message = as_error_and_message(exc)
        logger.warning(
            "request_hook failed",
            extra={"layer_type": info.layer_type.value, "error": message},
        )


def _wrap_with_middleware(
    next_handler: Handler,
    middleware: Callable[..., Any],
) -> Handler:
    """Wrap a handler with a single middleware function.

    Args:
        next_handler: The next function in the chain (middleware or handler).
        middleware: The middleware function with signature (request, call_next).

    Returns:
        A new async function that calls middleware(request, call_next).
    """

    async def wrapped(request: Any) -> Any:
        async def call_next(req: Any) -> Any:
            return await next_handler(req)

        return await middleware(request, call_next)

    wrapped.__name__ = (
        f"{getattr(middleware, '__name__', 'middleware')}_wrapping_"
        f"{getattr(next_handler, '__name__', 'handler')}"
    )
    wrapped.__qualname__ = wrapped.__name__

    return wrapped
