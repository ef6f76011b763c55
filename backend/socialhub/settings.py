from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore", populate_by_name=True)

    # Runtime
    environment: str = Field(default="development", validation_alias="APP_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    # Overrides the version read from the installed distribution metadata.
    service_version: str | None = Field(default=None, validation_alias="SERVICE_VERSION")

    # AWS / data
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    ddb_table_name: str | None = Field(default=None, validation_alias="DDB_TABLE_NAME")
    # Local DynamoDB (e.g. http://localhost:8000); unset means the AWS endpoint.
    ddb_endpoint_url: str | None = Field(default=None, validation_alias="DDB_ENDPOINT_URL")

    # Request observability
    request_id_header: str = Field(default="X-Request-Id", validation_alias="REQUEST_ID_HEADER")
    # Comma-separated glob patterns; matching paths get no access log record.
    access_log_exclude_paths: str = Field(
        default="/health,/healthz", validation_alias="ACCESS_LOG_EXCLUDE_PATHS"
    )

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def access_log_exclude_patterns(self) -> list[str]:
        raw = self.access_log_exclude_paths or ""
        return [p.strip() for p in raw.split(",") if p.strip()]

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development/staging may run without a table (tests inject one),
        production must be fully configured.
        """
        if not self.is_production:
            return

        missing: list[str] = []
        if not self.ddb_table_name:
            missing.append("DDB_TABLE_NAME")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "log_level": self.log_level,
            "aws": {
                "aws_region": self.aws_region,
                "ddb_table_name": self.ddb_table_name,
                "ddb_endpoint_url": self.ddb_endpoint_url,
            },
            "observability": {
                "request_id_header": self.request_id_header,
                "access_log_exclude_paths": self.access_log_exclude_patterns,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s
