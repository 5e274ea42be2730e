"""Layer classification for traced middleware chains.

Turns a layer descriptor into a display name and span attributes:
- "router" -> ROUTER, named after the path it is mounted on
- "bound dispatch" -> REQUEST_HANDLER, the terminal route handler
- anything else -> MIDDLEWARE, named after the middleware function
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ROUTER_KIND = "router"
REQUEST_HANDLER_KIND = "bound dispatch"


class LayerType(str, Enum):
    """Type of a layer in a middleware chain."""

    ROUTER = "router"
    MIDDLEWARE = "middleware"
    REQUEST_HANDLER = "request_handler"


class AttributeNames:
    """Span attribute keys set on layer spans."""

    EXPRESS_NAME = "express.name"
    EXPRESS_TYPE = "express.type"
    HTTP_ROUTE = "http.route"


@dataclass(frozen=True)
class Layer:
    """A read-only descriptor for one router, middleware or handler.

    Attributes:
        kind: "router", "bound dispatch" or the middleware function name.
        path: The layer's own declared path, if any.
    """

    kind: str
    path: str | None = None


@dataclass(frozen=True)
class LayerClassification:
    """Display name and span attributes derived from a layer."""

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def layer_type(self) -> LayerType:
        return LayerType(self.attributes[AttributeNames.EXPRESS_TYPE])


@dataclass(frozen=True)
class LayerInfo:
    """What hooks get to see about the layer being traced."""

    request: Any
    route: str
    layer_type: LayerType


def get_layer_metadata(layer: Layer, mounted_path: str | None = None) -> LayerClassification:
    """Parse a layer to retrieve a name and attributes.

    Args:
        layer: The layer descriptor.
        mounted_path: If present, the path on which the layer has been mounted.

    Returns:
        The classification. Attributes always carry EXPRESS_NAME and
        EXPRESS_TYPE; EXPRESS_NAME is None for a router with no mounted path.

    Examples:
        Layer("router"), "/api" -> "router - /api"
        Layer("bound dispatch", path="/x"), "/x" -> "request handler - /x"
        Layer("bound dispatch"), None -> "request handler"
        Layer("auth") -> "middleware - auth"
    """
    if layer.kind == ROUTER_KIND:
        return LayerClassification(
            name=f"router - {mounted_path}",
            attributes={
                AttributeNames.EXPRESS_NAME: mounted_path,
                AttributeNames.EXPRESS_TYPE: LayerType.ROUTER.value,
            },
        )

    if layer.kind == REQUEST_HANDLER_KIND:
        # The suffix checks the layer's own path but renders mounted_path,
        # so a handler with a path and no mounted_path is "request handler - None".
        name = "request handler"
        if layer.path:
            name = f"{name} - {mounted_path}"
        return LayerClassification(
            name=name,
            attributes={
                AttributeNames.EXPRESS_NAME: (
                    mounted_path if mounted_path is not None else "request handler"
                ),
                AttributeNames.EXPRESS_TYPE: LayerType.REQUEST_HANDLER.value,
            },
        )

    return LayerClassification(
        name=f"middleware - {layer.kind}",
        attributes={
            AttributeNames.EXPRESS_NAME: layer.kind,
            AttributeNames.EXPRESS_TYPE: LayerType.MIDDLEWARE.value,
        },
    )
