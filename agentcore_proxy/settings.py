"""Runtime configuration for agentcore-proxy.

Settings are read from the environment through pydantic-settings and grouped
into sections, exposed as the module-level ``app_settings``:

    app_settings.backend   - which AgentCore runtime to call and how
    app_settings.server    - bind address and request defaults
    app_settings.logging   - log level and output format

``AGENT_ARN`` is the only required value. It is not validated at import time
so that tooling and tests can import the package; ``require_agent_arn()`` is
called when the application starts and fails fast if it is missing.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentcore_proxy.common.errors import ConfigurationError

DEFAULT_PROMPT = "こんにちは、元気ですか？"


class BackendSettings(BaseSettings):
    """Target AgentCore runtime and HTTP client tuning."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    agent_arn: str | None = Field(
        default=None,
        validation_alias=AliasChoices("AGENT_ARN", "AGENTCORE_PROXY_AGENT_ARN"),
    )
    region: str = Field(
        default="us-west-2",
        validation_alias=AliasChoices("AWS_REGION", "AWS_DEFAULT_REGION"),
    )
    qualifier: str = Field(
        default="DEFAULT", validation_alias="AGENTCORE_PROXY_QUALIFIER"
    )
    endpoint_url: str | None = Field(
        default=None, validation_alias="AGENTCORE_PROXY_ENDPOINT_URL"
    )
    connect_timeout: float = Field(
        default=10.0, gt=0, validation_alias="AGENTCORE_PROXY_CONNECT_TIMEOUT"
    )
    # Lambda's execution ceiling is 15 minutes; a stream can stay quiet that long.
    read_timeout: float = Field(
        default=900.0, gt=0, validation_alias="AGENTCORE_PROXY_READ_TIMEOUT"
    )

    def require_agent_arn(self) -> str:
        if not self.agent_arn:
            raise ConfigurationError("AGENT_ARN must be set in environment variables")
        return self.agent_arn


class ServerSettings(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTCORE_PROXY_", extra="ignore"
    )

    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    default_prompt: str = Field(default=DEFAULT_PROMPT, min_length=1)


class LoggingSettings(BaseSettings):
    """Log output settings."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTCORE_PROXY_LOG_", extra="ignore", populate_by_name=True
    )

    level: str = "INFO"
    json_output: bool = Field(
        default=False, validation_alias="AGENTCORE_PROXY_LOG_JSON"
    )


class Settings(BaseModel):
    """All configuration sections."""

    backend: BackendSettings = Field(default_factory=BackendSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


app_settings = Settings()
