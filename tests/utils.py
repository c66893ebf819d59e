from typing import Dict, FrozenSet, Optional, Tuple

from prometheus_client import CollectorRegistry

SampleKey = Tuple[str, FrozenSet[Tuple[str, str]]]


def _sample_key(name: str, labels: Optional[Dict[str, str]]) -> SampleKey:
    return name, frozenset((labels or {}).items())


class MetricsSnapshot:
    """Sample values of a registry at one point in time"""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry
        self.samples: Dict[SampleKey, float] = {
            _sample_key(sample.name, sample.labels): sample.value
            for metric in registry.collect()
            for sample in metric.samples
        }

    def get_delta(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Change of a sample since the snapshot, unknown samples count as 0"""
        before = self.samples.get(_sample_key(name, labels), 0.0)
        after = self.registry.get_sample_value(name, labels=labels) or 0.0
        return after - before


def save_metrics_state(registry: CollectorRegistry) -> MetricsSnapshot:
    return MetricsSnapshot(registry)
