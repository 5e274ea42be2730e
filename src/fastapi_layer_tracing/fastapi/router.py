"""FastAPI adapter for layer tracing.

Provides an APIRoute subclass whose endpoint runs behind a traced
middleware chain, and a router factory that uses it for every route.
"""

import logging
import re
from collections.abc import Callable, Collection, Sequence
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.routing import APIRoute
from opentelemetry.trace import TracerProvider

from fastapi_layer_tracing.config import InstrumentationConfig
from fastapi_layer_tracing.core.chain import build_traced_chain, get_tracer, normalize_middleware
from fastapi_layer_tracing.core.path_store import LayerPathStore

logger = logging.getLogger(__name__)


def create_traced_router(
    *,
    prefix: str = "",
    middleware: Sequence[Callable[..., Any]] | Callable[..., Any] | None = None,
    config: InstrumentationConfig | None = None,
    tracer_provider: TracerProvider | None = None,
    **router_kwargs: Any,
) -> APIRouter:
    """Create a FastAPI APIRouter whose routes are traced layer by layer.

    Each request produces a router span (when prefix is set), one span per
    middleware and a request handler span, nested in that order.

    Args:
        prefix: URL prefix of the router, traced as its mount path.
        middleware: Async (request, call_next) middleware applied to every
            route, outermost first.
        config: Ignore patterns and hooks.
        tracer_provider: Provider for layer spans. Defaults to the global one.
        **router_kwargs: Forwarded to APIRouter.

    Returns:
        A FastAPI APIRouter.

    Raises:
        LayerConfigError: If middleware is invalid or not async.

    Example:
        from fastapi import FastAPI
        from fastapi_layer_tracing import create_traced_router

        router = create_traced_router(prefix="/users", middleware=[auth_required])

        @router.get("/{user_id}")
        async def get_user(user_id: str) -> dict:
            return {"user_id": user_id}

        app = FastAPI()
        app.include_router(router)
    """
    route_class = make_traced_route_class(
        middleware=middleware,
        mount_path=prefix,
        config=config,
        tracer_provider=tracer_provider,
    )
    router = APIRouter(prefix=prefix, route_class=route_class, **router_kwargs)

    logger.info(
        "Created traced router",
        extra={"prefix": prefix or "(none)"},
    )

    return router


def make_traced_route_class(
    *,
    middleware: Sequence[Callable[..., Any]] | Callable[..., Any] | None = None,
    mount_path: str = "",
    config: InstrumentationConfig | None = None,
    tracer_provider: TracerProvider | None = None,
    store: LayerPathStore | None = None,
) -> type[APIRoute]:
    """Create a custom APIRoute subclass that traces its handler chain.

    The wrapping happens in get_route_handler(), called AFTER FastAPI resolves
    dependency injection. Middleware receives (request, call_next) and the
    handler span covers parameter resolution and the endpoint itself.

    The router and handler parts of the path are worked out per request from
    the route path and any prefix in front of it, so prefixes added by
    include_router or by mounting the app are part of the router span.

    Args:
        middleware: Async middleware (outermost first).
        mount_path: Prefix of the router the routes are declared on.
        config: Ignore patterns and hooks.
        tracer_provider: Provider for layer spans. Defaults to the global one.
        store: Path fragment store shared by the routes of this class.

    Returns:
        A subclass of APIRoute with traced middleware wrapping.

    Raises:
        LayerConfigError: If middleware is invalid or not async.
    """
    middleware_stack = normalize_middleware(
        middleware,
        source=f"traced router {mount_path or '(none)'}",
    )
    tracer = get_tracer(tracer_provider)
    path_store = store if store is not None else LayerPathStore()
    # endpoint -> handler paths as declared on the router
    declared: dict[Any, set[str]] = {}

    class TracedRoute(APIRoute):
        def get_route_handler(self) -> Callable[..., Any]:
            original_handler = super().get_route_handler()
            prefix_regex = re.compile("^(.*?)" + self.path_regex.pattern.removeprefix("^"))
            chains: dict[tuple[str, str], Callable[..., Any]] = {}

            if mount_path and _segment_starts(self.path, mount_path, 0):
                declared.setdefault(self.endpoint, set()).add(self.path[len(mount_path) :])

            def chain_for(full_path: str) -> Callable[..., Any]:
                router_path, handler_path = split_mount_path(
                    full_path, mount_path, declared.get(self.endpoint, ())
                )
                key = (router_path, handler_path)
                chain = chains.get(key)
                if chain is None:
                    logger.debug(
                        "Created traced route handler",
                        extra={
                            "path": full_path,
                            "router_path": router_path or "(none)",
                            "middleware_count": len(middleware_stack),
                        },
                    )
                    chain = chains[key] = build_traced_chain(
                        original_handler,
                        middleware_stack,
                        handler_path=handler_path,
                        mount_paths=(router_path,) if router_path else (),
                        config=config,
                        tracer=tracer,
                        store=path_store,
                    )
                return chain

            async def traced_route_handler(request: Request) -> Response:
                full_path = resolve_include_prefix(request.scope, prefix_regex) + self.path
                return await chain_for(full_path)(request)

            return traced_route_handler

    return TracedRoute


def resolve_include_prefix(scope: dict[str, Any], prefix_regex: re.Pattern[str]) -> str:
    """Return the part of the request path in front of a route's own path.

    Routers included with a prefix, and apps mounted under another app, put
    that prefix ahead of the path the route was created with. It is read from
    the request so it is known however the route was registered.

    Args:
        scope: ASGI scope of the request.
        prefix_regex: The route's path regex with a leading "^(.*?)" group.

    Returns:
        The prefix, or "" when the route path covers the whole request path.

    Examples:
        path /v1/items/7, route /items/{item_id} -> "/v1"
        root_path /api, path /api/items/7, route /items/{item_id} -> "/api"
    """
    root_path = scope.get("root_path", "")
    app_root_path = scope.get("app_root_path", root_path)
    path = scope.get("path", "")
    if root_path and path.startswith(root_path):
        path = path[len(root_path) :]
    mounted = root_path[len(app_root_path) :] if root_path.startswith(app_root_path) else ""

    match = prefix_regex.match(path)
    return mounted + (match.group(1) if match else "")


def split_mount_path(
    path: str,
    mount_path: str,
    handler_paths: Collection[str] = (),
) -> tuple[str, str]:
    """Split a full route path into its router part and handler part.

    The router part ends after an occurrence of mount_path that sits on
    segment boundaries, so prefixes added when the router is included
    elsewhere stay with it. When mount_path occurs more than once, the split
    whose handler part is one of handler_paths wins, else the first one.

    Args:
        path: Full route path (e.g., /v1/users/{user_id}).
        mount_path: Prefix of the declaring router (e.g., /users).
        handler_paths: Handler paths the route was declared with.

    Returns:
        (router_path, handler_path); router_path is "" when mount_path is
        empty or not found.

    Examples:
        /users/{user_id}, /users -> ("/users", "/{user_id}")
        /v1/users/{user_id}, /users -> ("/v1/users", "/{user_id}")
        /v1/v/x, /v -> ("/v1/v", "/x")
        /health, "" -> ("", "/health")
    """
    if not mount_path:
        return "", path

    splits: list[int] = []
    index = path.find(mount_path)
    while index != -1:
        if _segment_starts(path, mount_path, index):
            splits.append(index + len(mount_path))
        index = path.find(mount_path, index + 1)

    if not splits:
        return "", path
    for split in splits:
        if path[split:] in handler_paths:
            return path[:split], path[split:]
    return path[: splits[0]], path[splits[0] :]


def _segment_starts(path: str, mount_path: str, index: int) -> bool:
    """Check that mount_path occurs at index as whole path segments."""
    if not path.startswith(mount_path, index):
        return False
    start_ok = index == 0 or mount_path.startswith("/") or path[index - 1] == "/"
    end = index + len(mount_path)
    end_ok = end == len(path) or mount_path.endswith("/") or path[end] == "/"
    return start_ok and end_ok
