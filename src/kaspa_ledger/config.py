"""
Configuration management using pydantic-settings.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="KASPA_LEDGER_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    # hid: USB device, tcp: emulator APDU port
    transport: Literal["hid", "tcp"] = "hid"
    tcp_host: str = "127.0.0.1"
    tcp_port: int = 9999
    debug_apdu: bool = False

    api_url: str = "https://api.kaspa.org"
    api_timeout: float = 30.0

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
