import os

from pydantic import BaseModel, Field

# The save endpoint accepts at most this many tiers per scope unless configured otherwise
DEFAULT_MAX_TIERS_PER_SCOPE = 4


class TariffSettings(BaseModel):
    """
    Settings for the tariff editor, its HTTP client and the save endpoint.
    """
    api_base_url: str = Field(default="http://localhost:8000", description="Base URL of the tariff API")
    request_timeout: int = Field(default=30, ge=1, description="HTTP timeout in seconds for tariff requests")
    max_tiers_per_scope: int = Field(default=DEFAULT_MAX_TIERS_PER_SCOPE, ge=1, description="Maximum tiers per pricing scope accepted on save")
    log_level: str = Field(default="INFO", description="Log level for the tariff services")

    @classmethod
    def from_env(cls) -> "TariffSettings":
        """Reads TARIFF_* and LOG_LEVEL environment variables, falling back to the defaults."""
        values = {}
        env_map = {
            "api_base_url": "TARIFF_API_BASE_URL",
            "request_timeout": "TARIFF_REQUEST_TIMEOUT",
            "max_tiers_per_scope": "TARIFF_MAX_TIERS_PER_SCOPE",
            "log_level": "LOG_LEVEL",
        }
        for field_name, env_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                values[field_name] = value
        return cls(**values)
