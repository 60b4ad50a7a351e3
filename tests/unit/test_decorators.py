"""
policycache — Declarative Decorator and Lifecycle Tests
"""

from typing import Any

import pytest

from policycache import (
    CacheInterceptor,
    cache_evict,
    cacheable,
    get_facade,
    get_interceptor,
    get_registry,
    init_cache,
    shutdown_cache,
)
from policycache.cache.backends.memory import MemoryCacheBackend
from policycache.config import CacheBackend, CacheConfig, PolicyCacheConfig
from policycache.errors import ConfigurationError
from policycache.policies import CachePolicy, EvictPolicy

TASK_A = "11111111-1111-1111-1111-111111111111"
TASK_B = "22222222-2222-2222-2222-222222222222"


def make_service() -> type:
    """Build a fresh service class so registration happens inside the test."""

    class TaskService:
        reads = 0
        store: dict[str, dict[str, Any]] = {}

        @cacheable(ttl_seconds=60)
        async def find_by_id(self, task_id: str) -> dict[str, Any]:
            type(self).reads += 1
            return dict(self.store.get(task_id, {"id": task_id, "title": "untitled"}))

        @cacheable(key="tasks:all")
        async def find_all(self) -> list[str]:
            type(self).reads += 1
            return sorted(self.store)

        @cache_evict(pattern="cache:task:*")
        async def update(self, task_id: str, title: str) -> dict[str, Any]:
            self.store[task_id] = {"id": task_id, "title": title}
            return self.store[task_id]

        @cache_evict(keys=["cache:tasks:all"], before_invocation=True)
        async def create(self, task_id: str) -> None:
            if task_id == "bad":
                raise ValueError("invalid task")
            self.store[task_id] = {"id": task_id, "title": "new"}

    return TaskService


class TestDecorators:
    """Decorated coroutines route through the default interceptor."""

    async def test_registration_at_decoration_time(self) -> None:
        """Decorating registers the policy before any call."""
        service_cls = make_service()

        operation_id = service_cls.find_by_id.operation_id
        assert operation_id.endswith("TaskService.find_by_id")
        assert isinstance(get_registry().get(operation_id), CachePolicy)
        assert isinstance(get_registry().get(service_cls.update.operation_id), EvictPolicy)

    async def test_repeat_call_hits_cache(self) -> None:
        """Second call with the same arguments is served from cache."""
        service = make_service()()

        first = await service.find_by_id(TASK_A)
        second = await service.find_by_id(TASK_A)
        await service.find_by_id(TASK_B)

        assert first == second
        assert type(service).reads == 2

    async def test_receiver_excluded_from_key(self) -> None:
        """Different instances share entries for the same arguments."""
        service_cls = make_service()

        await service_cls().find_by_id(TASK_A)
        await service_cls().find_by_id(TASK_A)

        assert service_cls.reads == 1

    async def test_eviction_after_update(self) -> None:
        """An explicit pattern evicts fingerprinted entries."""
        service = make_service()()

        await service.find_by_id(TASK_A)
        await service.update(TASK_A, "renamed")
        fresh = await service.find_by_id(TASK_A)

        assert fresh["title"] == "renamed"
        assert type(service).reads == 2

    async def test_before_invocation_eviction_survives_failure(self) -> None:
        """Early eviction is not undone when the call raises."""
        service = make_service()()
        facade = get_facade()

        await service.find_all()
        assert await facade.exists("cache:tasks:all") is True

        with pytest.raises(ValueError, match="invalid task"):
            await service.create("bad")

        assert await facade.exists("cache:tasks:all") is False

    async def test_module_function_with_explicit_operation_id(self) -> None:
        """Module-level coroutines can name their own operation."""
        calls: list[int] = []

        @cacheable(operation_id="ReportService.weekly")
        async def weekly(week: int) -> dict[str, int]:
            calls.append(week)
            return {"week": week}

        assert await weekly(3) == {"week": 3}
        assert await weekly(3) == {"week": 3}
        assert calls == [3]
        assert "ReportService.weekly" in get_registry()

    async def test_colliding_operation_ids_rejected(self) -> None:
        """Two services' module-level get() cannot silently share entries."""

        @cacheable(operation_id="app.tasks.services.get")
        async def get_task(item_id: str) -> dict[str, str]:
            return {"kind": "task", "id": item_id}

        with pytest.raises(ConfigurationError):

            @cacheable(operation_id="app.projects.services.get")
            async def get_project_colliding(item_id: str) -> dict[str, str]:
                return {"kind": "project", "id": item_id}

        @cacheable(operation_id="ProjectService.get")
        async def get_project(item_id: str) -> dict[str, str]:
            return {"kind": "project", "id": item_id}

        assert (await get_task("42"))["kind"] == "task"
        assert (await get_project("42"))["kind"] == "project"
        assert (await get_task("42"))["kind"] == "task"

    async def test_default_eviction_only_matches_keys_embedding_the_id(self) -> None:
        """A bare @cache_evict() misses hashed @cacheable keys but clears id-bearing keys."""
        reads: list[str] = []

        class ProjectService:
            @cacheable()
            async def find_by_id(self, project_id: str) -> dict[str, str]:
                reads.append(project_id)
                return {"id": project_id}

            @cache_evict()
            async def archive(self, project_id: str) -> None:
                return None

        service = ProjectService()
        facade = get_facade()
        summary_key = f"cache:project:summary:{TASK_A}"
        await facade.set(summary_key, {"open": 1})

        await service.find_by_id(TASK_A)
        await service.archive(TASK_A)
        await service.find_by_id(TASK_A)

        assert reads == [TASK_A]
        assert await facade.exists(summary_key) is False

    async def test_wrapper_preserves_metadata(self) -> None:
        """functools.wraps keeps the original name."""
        service_cls = make_service()
        assert service_cls.find_by_id.__name__ == "find_by_id"

    def test_sync_function_rejected(self) -> None:
        """Plain functions cannot carry a policy."""
        with pytest.raises(ConfigurationError):

            @cacheable()
            def not_async() -> int:
                return 1

    def test_stacking_rejected(self) -> None:
        """One function carries at most one policy."""
        with pytest.raises(ConfigurationError):

            @cache_evict(all_entries=True)
            @cacheable()
            async def both() -> int:
                return 1

    def test_invalid_policy_rejected_at_declaration(self) -> None:
        """Bad arguments fail when the decorator is built."""
        with pytest.raises(ConfigurationError):
            cacheable(ttl_seconds=-5)


class TestLifecycle:
    """init_cache / shutdown_cache / lazy fallback."""

    async def test_lazy_interceptor_uses_memory(self) -> None:
        """Without init_cache() a memory backend is created on demand."""
        interceptor = get_interceptor()

        assert isinstance(interceptor, CacheInterceptor)
        assert isinstance(interceptor.facade.backend, MemoryCacheBackend)
        assert get_interceptor() is interceptor
        assert get_facade() is interceptor.facade

    async def test_init_and_shutdown(self) -> None:
        """init_cache() is idempotent and shutdown_cache() resets it."""
        config = PolicyCacheConfig(cache=CacheConfig(backend=CacheBackend.MEMORY, sweep_interval_seconds=0))

        interceptor = await init_cache(config)
        assert get_interceptor() is interceptor
        assert await init_cache(config) is interceptor
        assert get_facade() is interceptor.facade

        await get_facade().set("cache:k", "v")
        await shutdown_cache()

        assert get_interceptor() is not interceptor
