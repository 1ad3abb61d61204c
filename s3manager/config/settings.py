"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Sources, highest precedence first: constructor arguments, environment
variables, a .env file, then config.yaml in ~/.s3manager/ or the working
directory. Variable names are unprefixed (ENDPOINT, ACCESS_KEY_ID, ...).

Mock mode enables local development without an S3 endpoint.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from ..core.models import SignatureType, SSEConfig

CONFIG_FILE_NAME = "config.yaml"

# Later files override earlier ones
CONFIG_FILE_PATHS = [
    Path(CONFIG_FILE_NAME),
    Path.home() / ".s3manager" / CONFIG_FILE_NAME,
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # API Configuration
    app_title: str = "S3 Manager"
    app_version: str = "0.1.0"

    # S3 Endpoint
    endpoint: str = Field(
        default="s3.amazonaws.com",
        description="Host (and optional port) of the S3-compatible API, without scheme"
    )
    region: str = Field(
        default="",
        description="Region used for signing and for new buckets. Empty lets the SDK decide."
    )
    use_ssl: bool = Field(
        default=True,
        description="Talk to the endpoint over https"
    )
    skip_ssl_verification: bool = Field(
        default=False,
        description="Disable TLS certificate verification. Only for self-signed test setups."
    )
    ca_cert: str = Field(
        default="",
        description="Path to a PEM CA bundle to trust for the endpoint"
    )
    signature_type: str = Field(
        default="V4",
        description="Request signing: V2, V4, V4Streaming or Anonymous"
    )
    timeout: int = Field(
        default=600,
        ge=1,
        description="Seconds; upstream connect/read timeout and server keep-alive"
    )

    # Credentials
    use_iam: bool = Field(
        default=False,
        description="Use the IAM/instance credential chain instead of static keys"
    )
    iam_endpoint: str = Field(
        default="",
        description="Instance metadata endpoint override for IAM credentials"
    )
    access_key_id: str = Field(
        default="",
        description="Static access key. Required unless USE_IAM or mock mode."
    )
    secret_access_key: str = Field(
        default="",
        description="Static secret key. Required unless USE_IAM or mock mode."
    )

    # Encryption
    sse_type: str = Field(
        default="",
        description="Server-side encryption for uploads: empty, SSE, KMS or SSE-C"
    )
    sse_key: str = Field(
        default="",
        description="KMS key id (KMS) or 32-byte customer key (SSE-C)"
    )

    # Application Behavior
    allow_delete: bool = Field(
        default=True,
        description="Expose the bucket and object DELETE routes"
    )
    force_download: bool = Field(
        default=True,
        description="Send downloads as attachments instead of rendering inline"
    )
    list_recursive: bool = Field(
        default=False,
        description="List every key in the bucket view instead of one folder level"
    )
    shared_buckets_path: str = Field(
        default="",
        description="bucket/key of a YAML list of extra bucket names to show"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real endpoint. Enables local dev without S3."
    )

    # Server
    address: str = Field(
        default="0.0.0.0",
        description="Address to listen on"
    )
    port: int = Field(
        default=8080,
        description="Port to listen on"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        yaml_file=CONFIG_FILE_PATHS,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Add the YAML config file below env vars and .env."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def endpoint_url(self) -> str:
        """Full endpoint URL. The scheme comes from USE_SSL."""
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.endpoint}"

    @property
    def signature(self) -> SignatureType:
        return SignatureType.from_string(self.signature_type)

    @property
    def sse(self) -> SSEConfig:
        return SSEConfig.from_settings(self.sse_type, self.sse_key)

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode or using IAM.
        """
        missing = []

        if self.storage_mock_mode or self.use_iam:
            return missing

        if not self.access_key_id:
            missing.append("ACCESS_KEY_ID")
        if not self.secret_access_key:
            missing.append("SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
