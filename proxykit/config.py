"""
SDK configuration from environment variables.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProxyKitConfig(BaseSettings):
    # Loopback REST API of the proxy app's network extension
    api_host: str = "localhost"
    api_port: int = 15182

    # Client-side request timeout in seconds. Long polls ask the server to wait one second less.
    request_timeout: float = 20.0
    # Short poll timeout used while the proxy is not fully started, to notice a restart quickly
    dead_poll_timeout: float = 2.0
    # Pause after a refused connection, so a stopped proxy doesn't cause a tight loop
    connect_retry_delay: float = 1.0

    # UI deep links
    ui_scheme: str = "proxyapp"
    universal_link_host: str = "proxyapp.example"
    universal_link_path: str = "/rc/"

    # Identity of the host application, sent along with API token requests
    app_id: Optional[str] = None
    app_name: Optional[str] = None

    # Initial access token. The SDK never writes it back.
    api_token: Optional[str] = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PROXYKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def api_base_url(self) -> str:
        return f"http://{self.api_host}:{self.api_port}"


@lru_cache
def get_config() -> ProxyKitConfig:
    return ProxyKitConfig()
