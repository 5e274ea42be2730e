"""Per-request accumulation of route path fragments.

Each nested router or handler contributes the path it was mounted on.
Fragments are kept in a side-table keyed by request identity so the
request object itself is never modified, and are released with it.
"""

import logging
import re
import weakref
from typing import Any

logger = logging.getLogger(__name__)

_REPEATED_SLASHES = re.compile(r"/{2,}")
_SKIPPED_FRAGMENTS = frozenset({"/", "/*"})


class LayerPathStore:
    """Side-table mapping an in-flight request to its path fragments.

    Fragments are appended in traversal order (outer to inner), so joining
    them yields the route the request matched. An entry is dropped when
    its context is garbage collected or explicitly discarded. Contexts
    without weak reference support are kept alive by the store until
    discard(), so call it once the request is finished.

    Example:
        store = LayerPathStore()
        store.store_layer_path(request, "/api")
        store.store_layer_path(request, "/users/{user_id}")
        store.route(request)  # "/api/users/{user_id}"
    """

    def __init__(self) -> None:
        # id(context) -> (owner, fragments). owner is None for contexts
        # released through weakref.finalize, else the context itself, held
        # so its id cannot be reused before discard().
        self._fragments: dict[int, tuple[Any, list[str]]] = {}

    def store_layer_path(self, context: Any, fragment: str | None = None) -> None:
        """Record a path fragment for a request.

        Args:
            context: The in-flight request.
            fragment: The path to append. When None, only makes sure the
                fragment list exists.
        """
        fragments = self._lookup(context)
        if fragments is None:
            fragments = []
            key = id(context)
            try:
                weakref.finalize(context, self._fragments.pop, key, None)
            except TypeError:
                logger.debug(
                    "Request context does not support weak references",
                    extra={"context_type": type(context).__name__},
                )
                self._fragments[key] = (context, fragments)
            else:
                self._fragments[key] = (None, fragments)
        if fragment is None:
            return
        fragments.append(fragment)

    def has_context(self, context: Any) -> bool:
        """Check whether a fragment list exists for the request."""
        return self._lookup(context) is not None

    def fragments(self, context: Any) -> tuple[str, ...]:
        """Return the fragments recorded for a request, outer to inner."""
        return tuple(self._lookup(context) or ())

    def route(self, context: Any) -> str:
        """Reconstruct the matched route from the recorded fragments.

        Root ("/") and wildcard ("/*") mounts carry no route information and
        are skipped. Repeated slashes left by joining are collapsed.

        Returns:
            The route, or "/" when nothing was recorded.
        """
        joined = "".join(f for f in self.fragments(context) if f not in _SKIPPED_FRAGMENTS)
        return _REPEATED_SLASHES.sub("/", joined) or "/"

    def discard(self, context: Any) -> None:
        """Drop the fragment list of a finished request."""
        if self._lookup(context) is not None:
            del self._fragments[id(context)]

    def _lookup(self, context: Any) -> list[str] | None:
        entry = self._fragments.get(id(context))
        if entry is None:
            return None
        owner, fragments = entry
        if owner is not None and owner is not context:
            return None
        return fragments

    def __len__(self) -> int:
        return len(self._fragments)


def store_layer_path(store: LayerPathStore, context: Any, fragment: str | None = None) -> None:
    """Store a layer path for a request so its route can be built later."""
    store.store_layer_path(context, fragment)
