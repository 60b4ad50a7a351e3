"""
policycache — Observability Tests
"""

import json
import logging

from policycache.errors import EvictionTargetError
from policycache.observability import JSONFormatter, ObservabilityAdapter, get_observability, initialize_observability


class TestObservabilityAdapter:
    def test_counters_by_tags(self) -> None:
        """Counters aggregate by name and tag set."""
        adapter = ObservabilityAdapter()
        adapter.increment("cache.hit", tags={"operation": "a"})
        adapter.increment("cache.hit", tags={"operation": "a"})
        adapter.increment("cache.hit", tags={"operation": "b"})

        assert adapter.get_count("cache.hit", {"operation": "a"}) == 2
        assert adapter.get_count("cache.hit") == 3
        assert adapter.get_count("cache.miss") == 0
        assert {"name": "cache.hit", "tags": {"operation": "b"}, "value": 1.0} in adapter.get_metrics("cache.hit")

    def test_disabled_metrics_are_dropped(self) -> None:
        """Increments are ignored when metrics are off."""
        adapter = ObservabilityAdapter(enable_metrics=False)
        adapter.increment("cache.hit")
        assert adapter.get_metrics() == []

    def test_reset(self) -> None:
        """reset() clears counters."""
        adapter = ObservabilityAdapter()
        adapter.increment("cache.set")
        adapter.reset()
        assert adapter.get_count("cache.set") == 0

    def test_trace_ids(self) -> None:
        """Trace ids are kept in context."""
        adapter = ObservabilityAdapter(enable_tracing=True)
        trace_id = adapter.generate_trace_id()
        assert adapter.get_trace_id() == trace_id

        with adapter.trace("cache.evict", tags={"operation": "x"}):
            pass

    def test_singletons(self) -> None:
        """initialize_observability() replaces the global adapter."""
        adapter = initialize_observability(enable_metrics=False)
        assert get_observability() is adapter
        assert adapter.enable_metrics is False


class TestJSONFormatter:
    def test_structured_extra_fields(self) -> None:
        """Logging extra fields appear in JSON output."""
        error = EvictionTargetError("TaskService.update")
        record = logging.LogRecord("policycache.interceptor", logging.DEBUG, __file__, 1, str(error), None, None)
        for name, value in {"operation_id": "TaskService.update", **error.log_extra()}.items():
            setattr(record, name, value)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == str(error)
        assert payload["operation_id"] == "TaskService.update"
        assert payload["error_code"] == "MALFORMED_EVICTION_TARGET"
