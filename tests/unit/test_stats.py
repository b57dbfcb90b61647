"""Tests for the relay stats registry."""

from agentcore_proxy.pipeline.stats import RelayStatsRegistry


def test_empty_registry():
    stats = RelayStatsRegistry().get_stats()

    assert stats["requests"] == 0
    assert stats["error_rate"] == 0
    assert stats["avg_latency_ms"] == 0
    assert stats["status"] == "healthy"


def test_counts_and_latency():
    registry = RelayStatsRegistry()
    registry.record("completed", 10.0, chunks=3, nbytes=30)
    registry.record("relay_io", 20.0, chunks=1, nbytes=5)

    stats = registry.get_stats()

    assert stats["requests"] == 2
    assert stats["errors"] == 1
    assert stats["outcomes"] == {"completed": 1, "relay_io": 1}
    assert stats["chunks_relayed"] == 4
    assert stats["bytes_relayed"] == 35
    assert stats["avg_latency_ms"] == 15.0
    assert stats["error_rate"] == 0.5


def test_degraded_needs_enough_requests():
    registry = RelayStatsRegistry()
    for _ in range(4):
        registry.record("backend_unavailable", 1.0)

    assert registry.get_stats()["status"] == "healthy"

    registry.record("backend_unavailable", 1.0)

    assert registry.get_stats()["status"] == "degraded"


def test_reset():
    registry = RelayStatsRegistry()
    registry.record("completed", 5.0, chunks=1, nbytes=1)

    registry.reset()

    assert registry.get_stats()["requests"] == 0
    assert registry.get_stats()["outcomes"] == {}
