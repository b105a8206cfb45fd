"""
Application configuration
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_TITLE: str = "Tap Redirect API"
    API_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Storage
    DB_PATH: str = "/files/tapredirect/redirects.db"

    # Where taps on cards without a profile are sent
    LANDING_URL: str = "https://tapme.example/welcome"

    # Geolocation ("" disables lookups)
    GEO_LOOKUP_URL: str = "http://ip-api.com/json/{ip}?fields=status,countryCode,region,city"
    GEO_TIMEOUT_SECONDS: float = 1.0
    TRUST_PROXY_HEADERS: bool = False

    # Side effects
    TAP_QUEUE_SIZE: int = 1000

    @property
    def geolocation_enabled(self) -> bool:
        return bool(self.GEO_LOOKUP_URL.strip())


settings = Settings()
