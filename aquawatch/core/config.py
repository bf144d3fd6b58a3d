"""
Application configuration for the AquaWatch monitoring service.

Provides environment-aware settings with the reference defaults. All detector
thresholds are configurable to avoid hard-coded "magic numbers" in rules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DetectorThresholds(BaseModel):
	"""
	Thresholds for the theft, leak and blockage detectors.

	Rationale:
	- Theft is relative to the household baseline (flow ratio).
	- Leak uses a fixed night-time floor regardless of daytime profile.
	- Blockage combines a near-zero flow floor with a relative pressure drop.
	"""

	theft_flow_multiplier: float = Field(1.5, gt=0.0, description="Flow ratio that triggers theft")
	theft_medium_ratio: float = Field(1.8, gt=0.0, description="Flow ratio for medium theft")
	theft_high_ratio: float = Field(2.0, gt=0.0, description="Flow ratio for high theft")
	theft_max_confidence: float = Field(95.0, ge=0.0, le=100.0)

	night_start_hour: int = Field(23, ge=0, le=23, description="First night hour (inclusive)")
	night_end_hour: int = Field(5, ge=0, le=23, description="Last night hour (inclusive)")
	leak_night_flow_threshold: float = Field(
		5.0, ge=0.0, description="Night flow (L/min) above which a leak is reported"
	)
	leak_medium_flow: float = Field(10.0, ge=0.0, description="Night flow for medium leak")
	leak_high_flow: float = Field(15.0, ge=0.0, description="Night flow for high leak")
	leak_confidence_per_lpm: float = Field(5.0, ge=0.0)
	leak_max_confidence: float = Field(90.0, ge=0.0, le=100.0)

	zero_flow_threshold: float = Field(0.5, ge=0.0, description="Flow (L/min) treated as zero")
	low_pressure_ratio: float = Field(
		0.7, gt=0.0, le=1.0, description="Fraction of baseline pressure below which pressure is low"
	)
	zero_flow_confidence: float = Field(85.0, ge=0.0, le=100.0)
	low_pressure_confidence: float = Field(70.0, ge=0.0, le=100.0)

	normal_confidence: float = Field(95.0, ge=0.0, le=100.0)


class BaselineDefaults(BaseModel):
	"""
	Historical usage reference for a single household.
	"""

	avg_flow: float = Field(45.0, gt=0.0)
	avg_pressure: float = Field(2.5, gt=0.0)


class DurationHints(BaseModel):
	"""
	Minimum sustained durations (milliseconds) per anomaly type.

	Reported by the API documentation endpoint. Single-reading classification
	does not use them.
	"""

	theft_ms: int = Field(300_000, ge=0)
	leak_ms: int = Field(1_800_000, ge=0)
	blockage_ms: int = Field(7_200_000, ge=0)


class AnomalyConfig(BaseModel):
	"""
	Classifier configuration.
	"""

	thresholds: DetectorThresholds = DetectorThresholds()
	durations: DurationHints = DurationHints()
	default_baseline: BaselineDefaults = BaselineDefaults()

	household_baselines: Dict[str, BaselineDefaults] = Field(
		default_factory=lambda: {
			"H001": BaselineDefaults(avg_flow=45.0, avg_pressure=2.5),
			"H002": BaselineDefaults(avg_flow=38.0, avg_pressure=2.4),
			"H003": BaselineDefaults(avg_flow=52.0, avg_pressure=2.6),
			"H004": BaselineDefaults(avg_flow=41.0, avg_pressure=2.3),
			"H005": BaselineDefaults(avg_flow=47.0, avg_pressure=2.5),
		}
	)


class AlertConfig(BaseModel):
	"""
	Alert persistence and listing configuration.

	Notes:
	- persist_retries: attempts before a persistence failure propagates.
	- retry_base_delay_seconds: first backoff delay, doubled per attempt.
	"""

	persist_retries: int = Field(3, ge=1)
	retry_base_delay_seconds: float = Field(0.1, ge=0.0)
	retry_max_delay_seconds: float = Field(2.0, ge=0.0)
	default_limit: int = Field(50, ge=1)


class SimulatorConfig(BaseModel):
	"""
	Mock sensor generator configuration.
	"""

	anomaly_probability: float = Field(0.1, ge=0.0, le=1.0)
	interval_seconds: int = Field(60, ge=1)
	flow_variation: float = Field(20.0, ge=0.0, description="Total flow spread (L/min)")
	pressure_variation: float = Field(0.8, ge=0.0, description="Total pressure spread (bar)")
	households: List[str] = Field(
		default_factory=lambda: ["H001", "H002", "H003", "H004", "H005"]
	)


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="AQUAWATCH_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	local_timezone: Optional[str] = Field(
		None, description="IANA zone used for night-hour checks on aware timestamps"
	)
	anomaly: AnomalyConfig = AnomalyConfig()
	alerts: AlertConfig = AlertConfig()
	simulator: SimulatorConfig = SimulatorConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
