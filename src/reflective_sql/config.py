import os
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError

Language = Literal["en", "es"]

ENV_PREFIX = "RSQL_"


class Settings(BaseModel):
    service_name: str = "reflective-sql"
    environment: str = "dev"

    # Response and prompt language
    language: Language = "en"

    # Correction loop ceiling (number of reflection attempts)
    max_reflections: int = Field(default=3, gt=0)

    # Result cache
    cache_enabled: bool = True
    cache_max_size: int = Field(default=1000, gt=0)
    cache_cleanup_interval_seconds: float = Field(default=300.0, ge=0)  # 0 disables the sweeper

    # Schema snapshot reuse window (0 refetches on every call)
    schema_ttl_seconds: float = Field(default=300.0, ge=0)
    db_schema: str = "public"

    llm_timeout_seconds: float = Field(default=60.0, gt=0)

    # Cleaned SQL shorter than this falls back to the raw model text
    min_sql_length: int = Field(default=5, ge=0)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from RSQL_* environment variables.

        Unset variables keep their defaults. RSQL_MAX_REFLECTIONS=5 maps to
        max_reflections=5, and so on for every field.

        Raises:
            ConfigurationError: If any value fails validation
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e.error_count()} error(s)",
                details={"errors": [
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]}
            )
