"""Configuration system for dom-indexer.

Every value can be overridden through environment variables (or a `.env` file). The `CONFIG` proxy
re-reads the environment on each attribute access so tests and long-running services always see the
current values.
"""

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatEnvConfig(BaseSettings):
	"""All environment variables in a flat namespace."""

	model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', case_sensitive=True, extra='allow')

	# Logging
	DOM_INDEXER_LOGGING_LEVEL: str = Field(default='info')

	# Protocol timeouts (seconds)
	DOM_INDEXER_CDP_TIMEOUT: float = Field(default=10.0, gt=0)
	DOM_INDEXER_BOX_MODEL_TIMEOUT: float = Field(default=2.0, gt=0)
	DOM_INDEXER_RECONCILE_TIMEOUT: float = Field(default=15.0, gt=0)

	# Filtering thresholds
	DOM_INDEXER_OCCLUSION_THRESHOLD: float = Field(default=0.8, ge=0, le=1)
	DOM_INDEXER_CONTAINMENT_THRESHOLD: float = Field(default=0.99, ge=0, le=1)
	DOM_INDEXER_ROW_TOLERANCE: float = Field(default=20.0, ge=0)

	# Viewport fallback when Page.getLayoutMetrics is unavailable
	DOM_INDEXER_DEFAULT_VIEWPORT_WIDTH: float = Field(default=1280.0, gt=0)
	DOM_INDEXER_DEFAULT_VIEWPORT_HEIGHT: float = Field(default=720.0, gt=0)

	# Readiness / retry for get_indexed_elements
	DOM_INDEXER_READY_STATE_TIMEOUT: float = Field(default=3.0, ge=0)
	DOM_INDEXER_EXTRACTION_RETRIES: int = Field(default=3, ge=1)


class Config:
	"""Configuration proxy that reads a fresh `FlatEnvConfig` on every access."""

	def __getattr__(self, name: str) -> Any:
		if name.startswith('_'):
			raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

		env_config = FlatEnvConfig()
		if name in FlatEnvConfig.model_fields:
			return getattr(env_config, name)

		raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")


CONFIG = Config()
