"""Configuration for the sanggwon geodata resolver."""

from __future__ import annotations

import logging

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholders understood by the key-redaction proxy.
KEY_PLACEHOLDERS = {
    "data_api_key": "CONFIDENTIAL_DATA_API_KEY",
    "vworld_key": "CONFIDENTIAL_VWORLD_KEY",
    "sgis_service_id": "CONFIDENTIAL_SGIS_ID",
    "sgis_secret_key": "CONFIDENTIAL_SGIS_SECRET",
}


def _secret_value(value: SecretStr | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return str(value)


class Settings(BaseSettings):
    """Runtime settings loaded from environment."""

    data_api_key: SecretStr = SecretStr("")
    vworld_key: SecretStr = SecretStr("")
    sgis_service_id: str = ""
    sgis_secret_key: SecretStr = SecretStr("")

    data_api_base_url: str = "https://apis.data.go.kr/B553077/api/open/sdsc2"
    vworld_search_url: str = "https://api.vworld.kr/req/search"
    vworld_address_url: str = "https://api.vworld.kr/req/address"
    vworld_wfs_url: str = "https://api.vworld.kr/req/wfs"
    vworld_wfs_typename: str = "lt_c_ademd_info"
    sgis_base_url: str = "https://sgisapi.mods.go.kr/OpenAPI3"

    search_radius_meters: int = 500
    page_size: int = 500
    page_batch_size: int = Field(default=3, ge=1)
    page_batch_delay_seconds: float = 0.05

    relay_url_templates: list[str] = Field(default_factory=list)
    use_key_proxy: bool = False
    key_proxy_url: str = ""

    boundary_dataset_path: str | None = None

    http_timeout_seconds: float = 10.0
    token_refresh_margin_seconds: int = 300
    default_token_ttl_ms: int = 14_400_000

    model_config = SettingsConfigDict(env_prefix="SANGGWON_GEO_", env_file=".env")

    def credential(self, name: str) -> str:
        """Return the credential, or its proxy placeholder in proxied mode."""
        if self.use_key_proxy:
            return KEY_PLACEHOLDERS[name]
        return _secret_value(getattr(self, name)).strip()

    def has_credential(self, name: str) -> bool:
        return bool(self.credential(name))


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install a basic log format for applications embedding the resolver."""
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
