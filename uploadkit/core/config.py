import os
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, List, Optional

from dotenv import load_dotenv


load_dotenv()

DEFAULT_MAX_BATCH_SIZE = 1024 * 1024 * 1024  # 1 GiB
DEFAULT_MAX_JSON_SIZE = 1024 * 1024  # 1 MiB


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class UploadConfig:
    """Per-call settings for the upload pipeline.

    ``max_batch_size_bytes`` bounds the whole multipart body, not a single
    file. Zero or less means unset. An empty ``allowed_content_types`` accepts
    every sniffed type.
    """

    max_batch_size_bytes: int = 0
    allowed_content_types: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, max_batch_size_bytes: int = 0, allowed_content_types: Optional[Iterable[str]] = None) -> "UploadConfig":
        return cls(
            max_batch_size_bytes=max_batch_size_bytes,
            allowed_content_types=frozenset(allowed_content_types or ()),
        )


def effective_upload_config(config: Optional[UploadConfig] = None) -> UploadConfig:
    """Return a fully populated copy of ``config`` with defaults resolved."""
    if config is None:
        return UploadConfig(max_batch_size_bytes=DEFAULT_MAX_BATCH_SIZE)
    if config.max_batch_size_bytes <= 0:
        return replace(config, max_batch_size_bytes=DEFAULT_MAX_BATCH_SIZE)
    return config


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    MAX_UPLOAD_SIZE: int = int(os.getenv("MAX_UPLOAD_SIZE", str(DEFAULT_MAX_BATCH_SIZE)))
    ALLOWED_FILE_TYPES: str = os.getenv("ALLOWED_FILE_TYPES", "image/jpeg,image/png,image/gif")
    MAX_JSON_SIZE: int = int(os.getenv("MAX_JSON_SIZE", str(DEFAULT_MAX_JSON_SIZE)))
    ALLOW_UNKNOWN_FIELDS: bool = _env_bool("ALLOW_UNKNOWN_FIELDS")
    DOWNLOAD_DIR: str = os.getenv("DOWNLOAD_DIR", "./files")
    REMOTE_SERVICE_URL: str = os.getenv("REMOTE_SERVICE_URL", "http://localhost:8080/simulated-service")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")

    CORS_ALLOWED_ORIGINS_ENV: str = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000")

    @staticmethod
    def allowed_origins(extra_origins: List[str] | None = None) -> List[str]:
        merged = _split_csv(os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000"))
        if extra_origins:
            merged.extend(extra_origins)
        # Deduplicate while preserving order
        seen = set()
        result: List[str] = []
        for origin in merged:
            if origin not in seen:
                seen.add(origin)
                result.append(origin)
        return result

    @classmethod
    def upload_config(cls) -> UploadConfig:
        return UploadConfig.build(cls.MAX_UPLOAD_SIZE, _split_csv(cls.ALLOWED_FILE_TYPES))

    @classmethod
    def validate(cls) -> None:
        if not cls.UPLOAD_DIR:
            raise ValueError("UPLOAD_DIR environment variable must not be empty")
        if cls.MAX_UPLOAD_SIZE < 0:
            raise ValueError("MAX_UPLOAD_SIZE must not be negative")
        if cls.MAX_JSON_SIZE <= 0:
            raise ValueError("MAX_JSON_SIZE must be positive")
