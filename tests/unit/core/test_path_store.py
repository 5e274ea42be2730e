"""Unit tests for per-request path fragment storage."""

import gc
from types import SimpleNamespace

import pytest

from fastapi_layer_tracing.core.path_store import LayerPathStore, store_layer_path


@pytest.fixture
def store() -> LayerPathStore:
    return LayerPathStore()


class TestStoreLayerPath:
    """Tests for LayerPathStore.store_layer_path()."""

    def test_fragments_kept_in_call_order(self, store: LayerPathStore, make_request) -> None:
        """Fragments accumulate outer to inner."""
        request = make_request()

        for fragment in ("/api", "/v1", "/users/{user_id}"):
            store.store_layer_path(request, fragment)

        assert store.fragments(request) == ("/api", "/v1", "/users/{user_id}")

    def test_context_is_not_modified(self, store: LayerPathStore, make_request) -> None:
        """Nothing is attached to the request object."""
        request = make_request("/users")
        before = dict(vars(request))

        store.store_layer_path(request)
        store.store_layer_path(request, "/users")

        assert vars(request) == before

    def test_initialization_without_fragment(self, store: LayerPathStore, make_request) -> None:
        """Omitting the fragment only creates the empty list."""
        request = make_request()

        store.store_layer_path(request)

        assert store.has_context(request)
        assert store.fragments(request) == ()

    def test_repeated_initialization_is_idempotent(
        self, store: LayerPathStore, make_request
    ) -> None:
        """Initializing several times keeps one list and its fragments."""
        request = make_request()

        store.store_layer_path(request)
        store.store_layer_path(request, "/api")
        store.store_layer_path(request)
        store.store_layer_path(request)

        assert store.fragments(request) == ("/api",)
        assert len(store) == 1

    def test_requests_are_isolated(self, store: LayerPathStore, make_request) -> None:
        """Each request owns its own fragments."""
        first, second = make_request(), make_request()

        store.store_layer_path(first, "/a")
        store.store_layer_path(second, "/b")

        assert store.fragments(first) == ("/a",)
        assert store.fragments(second) == ("/b",)

    def test_unknown_context_has_no_fragments(
        self, store: LayerPathStore, make_request
    ) -> None:
        """Reading an unknown request does not create an entry."""
        request = make_request()

        assert store.fragments(request) == ()
        assert not store.has_context(request)

    def test_fragments_are_read_only_snapshot(
        self, store: LayerPathStore, make_request
    ) -> None:
        """The returned tuple does not change with later writes."""
        request = make_request()
        store.store_layer_path(request, "/a")
        snapshot = store.fragments(request)

        store.store_layer_path(request, "/b")

        assert snapshot == ("/a",)

    def test_module_level_helper(self, store: LayerPathStore, make_request) -> None:
        """store_layer_path() delegates to the store."""
        request = make_request()

        store_layer_path(store, request)
        store_layer_path(store, request, "/api")

        assert store.fragments(request) == ("/api",)


class TestLifetime:
    """Tests for releasing fragment lists."""

    def test_discard_drops_entry(self, store: LayerPathStore, make_request) -> None:
        """discard() removes the request's fragments."""
        request = make_request()
        store.store_layer_path(request, "/api")

        store.discard(request)

        assert not store.has_context(request)
        assert len(store) == 0

    def test_discard_unknown_context(self, store: LayerPathStore, make_request) -> None:
        """discard() on an unknown request is a no-op."""
        store.discard(make_request())
        assert len(store) == 0

    def test_entry_released_with_context(self, store: LayerPathStore, make_request) -> None:
        """Garbage collecting the request drops its fragments."""
        request = make_request()
        store.store_layer_path(request, "/api")
        assert len(store) == 1

        del request
        gc.collect()

        assert len(store) == 0

    def test_context_without_weakref_support(self, store: LayerPathStore) -> None:
        """Contexts that cannot be weakly referenced still work until discarded."""
        request = SimpleNamespace(path="/")

        store.store_layer_path(request, "/api")
        assert store.fragments(request) == ("/api",)

        store.discard(request)
        assert len(store) == 0

    @pytest.mark.parametrize("factory", [dict, SimpleNamespace])
    def test_fresh_contexts_without_weakref_start_empty(
        self, store: LayerPathStore, factory
    ) -> None:
        """Undiscarded contexts never leak fragments into later contexts."""
        seen: list[tuple[str, ...]] = []

        for i in range(50):
            context = factory()
            store.store_layer_path(context, f"/r{i}")
            seen.append(store.fragments(context))
            del context

        assert seen == [(f"/r{i}",) for i in range(50)]

    def test_discard_releases_held_context(self, store: LayerPathStore) -> None:
        """discard() drops the reference kept for a non-weakref context."""
        contexts = [{} for _ in range(3)]
        for context in contexts:
            store.store_layer_path(context, "/a")
        assert len(store) == 3

        for context in contexts:
            store.discard(context)

        assert len(store) == 0


class TestRoute:
    """Tests for LayerPathStore.route()."""

    @pytest.mark.parametrize(
        ("fragments", "expected"),
        [
            ((), "/"),
            (("/api",), "/api"),
            (("/api", "/users/{user_id}"), "/api/users/{user_id}"),
            (("/", "/users"), "/users"),
            (("/*", "/files"), "/files"),
            (("/api/", "/users"), "/api/users"),
            (("/api", "", "/users"), "/api/users"),
            (("/",), "/"),
        ],
    )
    def test_route_from_fragments(
        self,
        store: LayerPathStore,
        make_request,
        fragments: tuple[str, ...],
        expected: str,
    ) -> None:
        """Fragments join into the route, skipping root and wildcard mounts."""
        request = make_request()
        store.store_layer_path(request)
        for fragment in fragments:
            store.store_layer_path(request, fragment)

        assert store.route(request) == expected

    def test_route_for_unknown_context(self, store: LayerPathStore, make_request) -> None:
        """Unknown requests have the root route."""
        assert store.route(make_request()) == "/"
