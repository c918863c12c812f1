"""
Configuration management for the imglift service.
Handles loading, validating, and providing access to application settings.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass


@dataclass
class AppConfig:
    """Application configuration settings."""
    host: str
    port: int
    debug: bool
    site_url: str


@dataclass
class RemoveBgConfig:
    """remove.bg API settings."""
    api_key: str
    api_url: str
    timeout_seconds: float

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class SupabaseConfig:
    """Supabase project settings."""
    url: str
    anon_key: str
    service_role_key: str
    timeout_seconds: float
    images_bucket: str

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    @property
    def api_key(self) -> str:
        """Key used for server-side calls; the service role key bypasses RLS."""
        return self.service_role_key or self.anon_key


@dataclass
class QuotaSettings:
    """Free-tier quota settings."""
    free_limit: int
    failure_policy: str
    reservation_ttl_seconds: int


@dataclass
class UploadConfig:
    """Upload admission settings."""
    max_file_size_mb: int
    allowed_types: list[str]

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class StorageConfig:
    """Storage backend settings."""
    backend: str
    data_dir: str
    local_auth_tokens: dict[str, str]


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "imglift_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        self._config = self._get_default_config()

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                pass

        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "app": {
                "host": "0.0.0.0",
                "port": 3000,
                "debug": False,
                "site_url": "https://imglift.online"
            },
            "removebg": {
                "api_key": "",
                "api_url": "https://api.remove.bg/v1.0/removebg",
                "timeout_seconds": 60
            },
            "supabase": {
                "url": "",
                "anon_key": "",
                "service_role_key": "",
                "timeout_seconds": 10,
                "images_bucket": "processed-images"
            },
            "quota": {
                "free_limit": 2,
                "failure_policy": "fail_open",
                "reservation_ttl_seconds": 120
            },
            "upload": {
                "max_file_size_mb": 5,
                "allowed_types": [
                    "image/jpeg",
                    "image/jpg",
                    "image/png",
                    "image/webp",
                    "image/gif"
                ]
            },
            "storage": {
                "backend": "local",
                "data_dir": "data",
                "local_auth_tokens": {}
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config."""
        for section, values in file_config.items():
            if section in self._config:
                if isinstance(values, dict):
                    self._config[section].update(values)
                else:
                    self._config[section] = values
            else:
                self._config[section] = values

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        # App settings
        if os.getenv("APP_HOST"):
            self._config["app"]["host"] = os.getenv("APP_HOST")

        if os.getenv("APP_PORT"):
            self._config["app"]["port"] = int(os.getenv("APP_PORT"))

        if os.getenv("APP_DEBUG"):
            self._config["app"]["debug"] = os.getenv("APP_DEBUG").lower() == "true"

        if os.getenv("SITE_URL"):
            self._config["app"]["site_url"] = os.getenv("SITE_URL").rstrip("/")

        # remove.bg settings
        if os.getenv("REMOVEBG_API_KEY"):
            self._config["removebg"]["api_key"] = os.getenv("REMOVEBG_API_KEY")

        if os.getenv("REMOVEBG_API_URL"):
            self._config["removebg"]["api_url"] = os.getenv("REMOVEBG_API_URL")

        if os.getenv("REMOVEBG_TIMEOUT"):
            self._config["removebg"]["timeout_seconds"] = float(os.getenv("REMOVEBG_TIMEOUT"))

        # Supabase settings
        if os.getenv("SUPABASE_URL"):
            self._config["supabase"]["url"] = os.getenv("SUPABASE_URL").rstrip("/")

        if os.getenv("SUPABASE_ANON_KEY"):
            self._config["supabase"]["anon_key"] = os.getenv("SUPABASE_ANON_KEY")

        if os.getenv("SUPABASE_SERVICE_ROLE_KEY"):
            self._config["supabase"]["service_role_key"] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

        if os.getenv("SUPABASE_TIMEOUT"):
            self._config["supabase"]["timeout_seconds"] = float(os.getenv("SUPABASE_TIMEOUT"))

        # Quota settings
        if os.getenv("FREE_REMOVAL_LIMIT"):
            self._config["quota"]["free_limit"] = int(os.getenv("FREE_REMOVAL_LIMIT"))

        if os.getenv("QUOTA_FAILURE_POLICY"):
            self._config["quota"]["failure_policy"] = os.getenv("QUOTA_FAILURE_POLICY").strip().lower()

        if os.getenv("QUOTA_RESERVATION_TTL"):
            self._config["quota"]["reservation_ttl_seconds"] = int(os.getenv("QUOTA_RESERVATION_TTL"))

        # Upload settings
        if os.getenv("MAX_UPLOAD_SIZE_MB"):
            self._config["upload"]["max_file_size_mb"] = int(os.getenv("MAX_UPLOAD_SIZE_MB"))

        # Storage settings
        if os.getenv("STORAGE_BACKEND"):
            self._config["storage"]["backend"] = os.getenv("STORAGE_BACKEND").strip().lower()

        if os.getenv("DATA_DIR"):
            self._config["storage"]["data_dir"] = os.getenv("DATA_DIR")

        if os.getenv("LOCAL_AUTH_TOKENS"):
            self._config["storage"]["local_auth_tokens"] = parse_token_pairs(os.getenv("LOCAL_AUTH_TOKENS"))

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=app_config["port"],
            debug=app_config["debug"],
            site_url=app_config["site_url"].rstrip("/")
        )

    def get_removebg_config(self) -> RemoveBgConfig:
        """Get remove.bg configuration."""
        rb_config = self._config["removebg"]
        return RemoveBgConfig(
            api_key=rb_config["api_key"],
            api_url=rb_config["api_url"],
            timeout_seconds=rb_config["timeout_seconds"]
        )

    def get_supabase_config(self) -> SupabaseConfig:
        """Get Supabase configuration."""
        sb_config = self._config["supabase"]
        return SupabaseConfig(
            url=sb_config["url"].rstrip("/"),
            anon_key=sb_config["anon_key"],
            service_role_key=sb_config["service_role_key"],
            timeout_seconds=sb_config["timeout_seconds"],
            images_bucket=sb_config["images_bucket"]
        )

    def get_quota_settings(self) -> QuotaSettings:
        """Get quota configuration."""
        quota_config = self._config["quota"]
        return QuotaSettings(
            free_limit=quota_config["free_limit"],
            failure_policy=quota_config["failure_policy"],
            reservation_ttl_seconds=quota_config["reservation_ttl_seconds"]
        )

    def get_upload_config(self) -> UploadConfig:
        """Get upload configuration."""
        upload_config = self._config["upload"]
        return UploadConfig(
            max_file_size_mb=upload_config["max_file_size_mb"],
            allowed_types=list(upload_config["allowed_types"])
        )

    def get_storage_config(self) -> StorageConfig:
        """Get storage backend configuration."""
        storage_config = self._config["storage"]
        return StorageConfig(
            backend=storage_config["backend"],
            data_dir=storage_config["data_dir"],
            local_auth_tokens=dict(storage_config["local_auth_tokens"])
        )

    def get_config(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def save_config(self) -> None:
        """Save current configuration to file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)


def parse_token_pairs(raw: str) -> dict[str, str]:
    """
    Parse a ``token:user_id,token:user_id`` list into a mapping.

    Entries without a separator or with an empty side are skipped.
    """
    pairs = {}
    for item in raw.split(","):
        token, sep, user_id = item.strip().partition(":")
        if sep and token.strip() and user_id.strip():
            pairs[token.strip()] = user_id.strip()
    return pairs
