"""Targeted estimation specific configuration."""

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from .base import BaseConfiguration, Environment, config_manager

CONFIG_NAME = "targeted_estimation"


class TargetedEstimationConfig(BaseConfiguration):
    """Configuration for targeted (TMLE / one-step) estimation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TARGETED_",
        case_sensitive=False,
        extra="ignore",
    )

    # Truncation
    ps_lowerbound: float = Field(
        default=1e-8,
        description="Default lower bound applied to the treatment density by the estimators",
    )
    max_ps_lowerbound: float = Field(
        default=0.1, description="Upper cap on any resolved truncation threshold"
    )
    covariate_threshold: float = Field(
        default=0.005,
        description="Default truncation threshold of the standalone covariate helper",
    )

    # Fluctuation
    fluctuation_tol: float = Field(
        default=1e-8, description="Convergence tolerance of the fluctuation GLM"
    )
    fluctuation_max_iter: int = Field(
        default=100, description="Maximum IRLS iterations of the fluctuation GLM"
    )

    # Logging
    verbosity: int = Field(default=1, description="Default verbosity of the estimators")
    log_level: str = Field(default="INFO", description="Log level outside development")

    @field_validator("ps_lowerbound", "max_ps_lowerbound", "covariate_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("Truncation thresholds must be between 0 and 1")
        return v

    @field_validator("fluctuation_max_iter")
    @classmethod
    def validate_max_iter(cls, v: int) -> int:
        if v < 1:
            raise ValueError("fluctuation_max_iter must be at least 1")
        return v

    @field_validator("verbosity")
    @classmethod
    def validate_verbosity(cls, v: int) -> int:
        if v < 0:
            raise ValueError("verbosity cannot be negative")
        return v

    def validate_configuration(self) -> list[str]:
        """Validate targeted estimation specific configuration."""
        issues = super().validate_configuration()

        if self.ps_lowerbound > self.max_ps_lowerbound:
            issues.append(
                "ps_lowerbound exceeds max_ps_lowerbound and will be capped"
            )
        if self.environment == Environment.PRODUCTION and self.verbosity > 1:
            issues.append("Verbose estimator logging is not recommended in production")
        if self.fluctuation_tol > 1e-4:
            issues.append("A loose fluctuation tolerance may leave the score equation unsolved")

        return issues


def get_config() -> TargetedEstimationConfig:
    """Return the registered configuration, creating it from the environment if needed."""
    config = config_manager.get_configuration(CONFIG_NAME)
    if config is None:
        config = TargetedEstimationConfig()
        config_manager.register_configuration(CONFIG_NAME, config)
    return config  # type: ignore[return-value]
