from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from utils import expand_path


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EMAIL_MANAGER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )
    credentials_dir: str = "~/.credentials"
    credentials_file: str = "google_credentials.json"
    token_file: str = "token_gmail.json"
    oauth_host: str = "localhost"
    oauth_port: int = 8080
    auth_timeout: float = 180.0  # seconds to wait for the browser redirect
    shutdown_timeout: float = 5.0
    open_browser: bool = True
    download_dir: str = "~/Downloads"
    max_results: int = 10
    log_level: str = "WARNING"

    @property
    def credentials_path(self) -> Path:
        return expand_path(self.credentials_dir) / self.credentials_file

    @property
    def token_path(self) -> Path:
        return expand_path(self.credentials_dir) / self.token_file
