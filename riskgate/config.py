"""Configuration management for riskgate."""

from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BaseBranchStrategy = Literal['default', 'pr-head']


class AutonomousSettings(BaseModel):
    """Toggles for each stage of the autonomous remediation pipeline."""

    enabled: bool = Field(default=False, description="Run test generation and companion PR flow")
    create_pr: bool = Field(default=True, description="Open a companion PR for generated tests")
    monitor_ci: bool = Field(default=True, description="Watch CI on the companion PR")
    auto_fix: bool = Field(default=True, description="Attempt one automated fix on CI failure")
    base_branch_strategy: BaseBranchStrategy = Field(
        default='default',
        description="Base for the test branch: default branch tip or PR head"
    )


class NotifyOnSettings(BaseModel):
    """Which events are sent to the notification sink."""

    analysis: bool = True
    test_pr_created: bool = True
    ci_failure: bool = True
    critical_risk: bool = True


class FrameworkDefaults(BaseModel):
    """Frameworks assumed when the repository does not tell us."""

    e2e: str = "playwright"
    unit: str = "vitest"
    api: str = "playwright"


class Settings(BaseSettings):
    """riskgate configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="dev", description="Environment: dev, prod")

    # GitHub Configuration
    github_token: Optional[str] = Field(default=None, description="GitHub token")
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL"
    )
    github_timeout: int = Field(default=30, description="GitHub API call timeout in seconds")

    # AI/Claude Configuration
    claude_api_key: Optional[str] = Field(default=None, description="Claude API key")
    llm_model: str = Field(default="claude-sonnet-4-20250514", description="Model used for generation")
    llm_max_tokens: int = Field(default=8000, description="Maximum tokens per completion")

    # Notifications
    slack_webhook_url: Optional[str] = Field(default=None, description="Slack incoming webhook URL")
    slack_channel: Optional[str] = Field(default=None, description="Slack channel override")
    notify_on: NotifyOnSettings = Field(default_factory=NotifyOnSettings)

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log format: json, console"
    )

    # Test generation
    test_output_dir: str = Field(default="", description="Directory prefix for committed tests")
    branch_prefix: str = Field(default="riskgate", description="Prefix for companion PR branches")
    test_frameworks: FrameworkDefaults = Field(default_factory=FrameworkDefaults)
    syntax_validation: Literal['default', 'off'] = Field(
        default='default',
        description="Syntax validator: default, off"
    )

    # Autonomous pipeline
    autonomous: AutonomousSettings = Field(default_factory=AutonomousSettings)

    # CI monitoring
    ci_initial_delay_seconds: float = Field(
        default=60,
        description="Grace delay before the first CI poll"
    )
    ci_poll_interval_seconds: float = Field(
        default=30,
        description="Delay between CI polls"
    )
    ci_max_checks: int = Field(
        default=20,
        description="Maximum CI polls per session before timing out"
    )
    max_fix_attempts: int = Field(
        default=3,
        description="LLM fix generation tries inside one remediation"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (for testing)."""
    global _settings
    _settings = None
