"""
Anomaly module: rule-based classification of household water readings.

Implements baseline lookup, the theft/leak/blockage detectors, severity
ranking, and the classifier that ties them together.
"""

from .baselines import DEFAULT_BASELINE, BaselineStore, InMemoryBaselineStore
from .detectors import BlockageDetector, LeakDetector, TheftDetector, is_night_hour, local_hour
from .engine import AnomalyClassifier
from .schema import AnomalyResult, AnomalyType, Baseline, BatchClassification, Reading, Severity
from .scoring import select_highest, severity_rank

__all__ = [
	"AnomalyClassifier",
	"AnomalyResult",
	"AnomalyType",
	"Baseline",
	"BatchClassification",
	"Reading",
	"Severity",
	"BaselineStore",
	"InMemoryBaselineStore",
	"DEFAULT_BASELINE",
	"TheftDetector",
	"LeakDetector",
	"BlockageDetector",
	"local_hour",
	"is_night_hour",
	"select_highest",
	"severity_rank",
]
