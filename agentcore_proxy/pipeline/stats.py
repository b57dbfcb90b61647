from collections import defaultdict
from threading import Lock


class RelayStatsRegistry:
    """Process-wide counters for proxied streams, keyed by outcome.

    The outcome is ``completed`` or the error code that ended the stream.
    """

    def __init__(self):
        self._lock = Lock()
        self._outcomes = defaultdict(int)
        self._requests = 0
        self._chunks = 0
        self._bytes = 0
        self._total_latency_ms = 0.0

    def record(self, outcome: str, latency_ms: float, chunks: int = 0, nbytes: int = 0):
        with self._lock:
            self._requests += 1
            self._outcomes[outcome] += 1
            self._chunks += chunks
            self._bytes += nbytes
            self._total_latency_ms += latency_ms

    def reset(self):
        with self._lock:
            self._outcomes.clear()
            self._requests = 0
            self._chunks = 0
            self._bytes = 0
            self._total_latency_ms = 0.0

    def get_stats(self):
        with self._lock:
            requests = self._requests
            completed = self._outcomes.get("completed", 0)
            errors = requests - completed

            avg_latency = self._total_latency_ms / requests if requests > 0 else 0
            error_rate = errors / requests if requests > 0 else 0

            status = "healthy"
            if requests >= 5 and error_rate > 0.2:
                status = "degraded"

            return {
                "requests": requests,
                "errors": errors,
                "outcomes": dict(self._outcomes),
                "chunks_relayed": self._chunks,
                "bytes_relayed": self._bytes,
                "avg_latency_ms": round(avg_latency, 2),
                "error_rate": round(error_rate, 2),
                "status": status,
            }


relay_stats_registry = RelayStatsRegistry()
