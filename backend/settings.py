from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent

_DEFAULT_PROXY_HOSTS = ("127.0.0.1", "localhost")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "KitReg"
    APP_VERSION: str = "0.1.0"
    ENV: str = "dev"

    SECRET_KEY: str = Field(..., min_length=1)
    DATABASE_URL: str = Field(..., min_length=1)

    # Plain fallback used until an admin stores a password hash in the database.
    ADMIN_PASSWORD: str = ""
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 12 * 60
    ADMIN_COOKIE_NAME: str = "admin_token"
    ADMIN_PASSWORD_MIN_LENGTH: int = 6

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 1800

    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"
    LOG_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5
    REQUEST_ID_HEADER: str = "X-Request-ID"
    REQUEST_LOG_EXCLUDE_PATHS: tuple[str, ...] = ("/health", "/healthz", "/metrics")
    PROXY_TRUSTED_HOSTS: tuple[str, ...] = _DEFAULT_PROXY_HOSTS

    REGISTRATION_PAGE_SIZE: int = 20
    EXPORT_FILENAME_PREFIX: str = "registrations"

    S3_ENDPOINT: str = "http://minio:9000"
    S3_BUCKET: str = "kitreg"
    S3_ACCESS_KEY: str = "minioadmin"
    S3_SECRET_KEY: str = "minioadmin"
    S3_REGION: str = "us-east-1"
    # create the bucket on startup when it is missing (local MinIO setups)
    S3_ENSURE_BUCKET: bool = False

    PHOTO_PREFIX: str = "photos"
    PHOTO_PUBLIC_BASE_URL: str = ""
    PHOTO_UPLOAD_EXPIRES: int = 900
    PHOTO_MAX_BYTES: int = 5 * 1024 * 1024

    @field_validator("PROXY_TRUSTED_HOSTS", mode="before")
    @classmethod
    def _parse_proxy_hosts(cls, value: object) -> tuple[str, ...]:
        """Normalise trusted proxy hosts from env variables."""

        if value is None:
            return _DEFAULT_PROXY_HOSTS
        if isinstance(value, str):
            hosts = [item.strip() for item in value.split(",") if item.strip()]
            return tuple(hosts) if hosts else _DEFAULT_PROXY_HOSTS
        if isinstance(value, (list, tuple, set)):
            hosts = [str(item).strip() for item in value if str(item).strip()]
            return tuple(hosts) if hosts else _DEFAULT_PROXY_HOSTS
        raise TypeError("PROXY_TRUSTED_HOSTS must be a string or an iterable of strings")

    @property
    def photo_base_url(self) -> str:
        """Public prefix under which uploaded photos are served."""

        if self.PHOTO_PUBLIC_BASE_URL:
            return self.PHOTO_PUBLIC_BASE_URL.rstrip("/")
        return f"{self.S3_ENDPOINT.rstrip('/')}/{self.S3_BUCKET}"


def ensure_directories(settings_obj: "Settings") -> None:
    Path(settings_obj.LOG_DIR).mkdir(parents=True, exist_ok=True)


settings = Settings()
ensure_directories(settings)
