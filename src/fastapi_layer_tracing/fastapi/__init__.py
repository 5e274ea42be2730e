"""FastAPI adapter for layer tracing."""

from fastapi_layer_tracing.fastapi.router import create_traced_router, make_traced_route_class

__all__ = ["create_traced_router", "make_traced_route_class"]
