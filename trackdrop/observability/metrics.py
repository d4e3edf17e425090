"""Simple in-memory metrics for pipeline runs and publish latency."""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class MetricPoint:
    """Single metric value with timestamp."""
    value: float
    timestamp: float = field(default_factory=time.time)


class MetricsCollector:
    """Collector for pipeline and publish-target metrics."""

    def __init__(self):
        self._runs: Dict[str, int] = {}
        self._failed_stages: Dict[str, int] = {}
        self._publish_latencies: Dict[str, List[MetricPoint]] = {}
        self._publish_errors: Dict[str, int] = {}
        self._max_samples = 1000

    def record_run(self, status: str, failed_stage: Optional[str] = None) -> None:
        self._runs[status] = self._runs.get(status, 0) + 1
        if failed_stage:
            self._failed_stages[failed_stage] = self._failed_stages.get(failed_stage, 0) + 1

    def record_publish(self, target: str, latency_sec: float, error: bool = False) -> None:
        if error:
            self._publish_errors[target] = self._publish_errors.get(target, 0) + 1
            return
        samples = self._publish_latencies.setdefault(target, [])
        samples.append(MetricPoint(latency_sec))
        if len(samples) > self._max_samples:
            samples.pop(0)

    def get_stats(self) -> Dict:
        """Return current metrics snapshot."""
        publish = {}
        for target in set(self._publish_latencies) | set(self._publish_errors):
            latencies = [p.value for p in self._publish_latencies.get(target, [])[-100:]]
            publish[target] = {
                "uploads": len(self._publish_latencies.get(target, [])),
                "errors": self._publish_errors.get(target, 0),
                "latency_mean_sec": sum(latencies) / len(latencies) if latencies else 0,
            }
        return {
            "runs": dict(self._runs),
            "runs_total": sum(self._runs.values()),
            "failed_stages": dict(self._failed_stages),
            "publish": publish,
        }

    def reset(self) -> None:
        self._runs.clear()
        self._failed_stages.clear()
        self._publish_latencies.clear()
        self._publish_errors.clear()


_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
