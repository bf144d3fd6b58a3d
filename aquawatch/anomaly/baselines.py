"""
Baseline resolution for households.

A baseline store answers "what is normal for this household". Unknown
households resolve to a documented system-wide default rather than failing,
so every well-formed reading can be classified.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from aquawatch.core.config import AnomalyConfig, config

from .schema import Baseline

logger = logging.getLogger(__name__)

DEFAULT_BASELINE = Baseline(avg_flow=45.0, avg_pressure=2.5)


class BaselineStore(ABC):
    """
    Capability for per-household baseline lookup.

    Implementations must never raise for an unknown household; they return
    ``default`` instead.
    """

    default: Baseline = DEFAULT_BASELINE

    @abstractmethod
    def lookup(self, household_id: str) -> Optional[Baseline]:
        """Return the stored baseline, or None when the household is unknown."""
        pass

    def get_baseline(self, household_id: str) -> Baseline:
        baseline = self.lookup(household_id)
        if baseline is None:
            logger.debug("No baseline for household %s; using default", household_id)
            return self.default
        return baseline


class InMemoryBaselineStore(BaselineStore):
    """
    Dict-backed baseline store.

    Safe for concurrent reads and updates.
    """

    def __init__(
        self,
        baselines: Optional[Mapping[str, Baseline]] = None,
        default: Optional[Baseline] = None,
    ) -> None:
        self._baselines: Dict[str, Baseline] = dict(baselines or {})
        self._lock = threading.Lock()
        if default is not None:
            self.default = default

    @classmethod
    def from_config(cls, anomaly_config: Optional[AnomalyConfig] = None) -> "InMemoryBaselineStore":
        cfg = anomaly_config or config.anomaly
        baselines = {
            household_id: Baseline(avg_flow=b.avg_flow, avg_pressure=b.avg_pressure)
            for household_id, b in cfg.household_baselines.items()
        }
        default = Baseline(
            avg_flow=cfg.default_baseline.avg_flow,
            avg_pressure=cfg.default_baseline.avg_pressure,
        )
        return cls(baselines, default=default)

    def lookup(self, household_id: str) -> Optional[Baseline]:
        with self._lock:
            return self._baselines.get(household_id)

    def set_baseline(self, household_id: str, baseline: Baseline) -> None:
        with self._lock:
            self._baselines[household_id] = baseline

    def households(self) -> list:
        with self._lock:
            return sorted(self._baselines)
