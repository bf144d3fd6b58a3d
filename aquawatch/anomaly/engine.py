"""
Water-usage anomaly classification engine.

Runs the theft, leak and blockage detectors against each reading, ranks the
findings by severity and returns exactly one AnomalyResult per reading.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from aquawatch.core.config import DetectorThresholds, config

from .baselines import BaselineStore, InMemoryBaselineStore
from .detectors import BlockageDetector, LeakDetector, TheftDetector
from .schema import AnomalyResult, AnomalyType, Baseline, BatchClassification, Reading, Severity
from .scoring import select_highest

logger = logging.getLogger(__name__)

NORMAL_MESSAGE = "Normal water usage detected"


@dataclass
class AnomalyClassifier:
    """
    Deterministic rule-based classifier.

    Notes:
    - ``classify`` is pure: no shared mutable state, safe to call from
      several threads at once.
    - All detectors run on every reading; the highest severity wins and the
      order theft -> leak -> blockage breaks ties.
    - Baselines come from the injected store, never from globals.
    """

    baseline_store: BaselineStore = field(default_factory=InMemoryBaselineStore.from_config)
    thresholds: DetectorThresholds = field(default_factory=lambda: config.anomaly.thresholds)
    timezone_name: Optional[str] = field(default_factory=lambda: config.local_timezone)

    def __post_init__(self) -> None:
        self._theft = TheftDetector(self.thresholds)
        self._leak = LeakDetector(self.thresholds, self.timezone_name)
        self._blockage = BlockageDetector(self.thresholds)

    def classify(self, reading: Reading, baseline: Baseline) -> AnomalyResult:
        candidates = [
            self._theft.detect(reading, baseline),
            self._leak.detect(reading, baseline),
            self._blockage.detect(reading, baseline),
        ]

        selected = select_highest(candidates)
        if selected is not None:
            return selected

        return AnomalyResult(
            household_id=reading.household_id,
            anomaly_type=AnomalyType.NONE,
            severity=Severity.LOW,
            confidence=self.thresholds.normal_confidence,
            message=NORMAL_MESSAGE,
            timestamp=reading.timestamp,
        )

    def classify_reading(self, reading: Reading) -> AnomalyResult:
        baseline = self.baseline_store.get_baseline(reading.household_id)
        return self.classify(reading, baseline)

    def classify_batch(
        self, readings: Iterable[Reading], anomalies_only: bool = False
    ) -> BatchClassification:
        """
        Classify an ordered batch.

        Args:
            readings: Readings in submission order.
            anomalies_only: Drop ``none`` results from the returned list.

        Returns:
            BatchClassification whose results keep input order. The anomaly
            count is taken before filtering.
        """
        results: List[AnomalyResult] = [self.classify_reading(r) for r in readings]
        anomalies = [r for r in results if r.is_anomaly]

        logger.debug("Classified %d readings, %d anomalies", len(results), len(anomalies))

        return BatchClassification(
            total_readings=len(results),
            anomalies_detected=len(anomalies),
            results=anomalies if anomalies_only else results,
        )
