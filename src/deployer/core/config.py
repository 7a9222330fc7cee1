from dataclasses import dataclass
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "bluegreen-deployer"
    VERSION: str = "0.1.0"

    # Environment
    ENVIRONMENT: str = "staging"  # staging, production
    DEBUG: bool = False
    HEALTH_CHECK_URL: Optional[str] = None  # live site watched after the switch

    # Credentials
    FIREBASE_TOKEN: Optional[str] = None
    NODE_ENV: Optional[str] = None
    SLACK_WEBHOOK: Optional[str] = None

    # Hosting
    SLOT_URL_TEMPLATE: str = "https://{slot}---{environment}-cuisinezen.web.app"
    STATE_PATH: str = "deployment-state.json"

    # Gates
    QUALITY_GATE_COMMAND: str = "npm run gates:all"
    QUALITY_GATE_TIMEOUT: float = 300.0
    QUALITY_GATE_MIN_SCORE: float = 85.0
    DOD_RESULTS_PATH: str = "dod-results.json"
    LOAD_TEST_COMMAND: str = (
        "npx playwright test --config=qa-automation/configs/playwright.config.ts "
        "--grep load-test"
    )
    LOAD_TEST_TIMEOUT: float = 180.0

    # Rollout policy
    ROLLBACK_THRESHOLD: float = 5.0  # max average error rate, percent
    MONITORING_DURATION: float = 300.0  # seconds

    METRICS_TEXTFILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()


@dataclass(frozen=True)
class DeploymentConfig:
    """Immutable per-run deployment configuration."""
    environment: str = "staging"
    strategy: str = "blue-green"
    health_check_url: Optional[str] = None  # monitored instead of the slot URL when set
    rollback_threshold: float = 5.0  # overrides the evaluator's error-rate bound
    monitoring_duration: float = 300.0  # seconds

    def __post_init__(self):
        if self.environment not in ("staging", "production"):
            raise ValueError(f"Unknown environment: {self.environment}")
        if self.strategy != "blue-green":
            raise ValueError(f"Unsupported strategy: {self.strategy}")
        if not 0 <= self.rollback_threshold <= 100:
            raise ValueError("Rollback threshold must be between 0 and 100")
        if self.monitoring_duration <= 0:
            raise ValueError("Monitoring duration must be positive")

    @property
    def gradual(self) -> bool:
        """Production rolls traffic over in canary steps."""
        return self.environment == "production"

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "DeploymentConfig":
        return cls(
            environment=source.ENVIRONMENT,
            health_check_url=source.HEALTH_CHECK_URL,
            rollback_threshold=source.ROLLBACK_THRESHOLD,
            monitoring_duration=source.MONITORING_DURATION,
        )
