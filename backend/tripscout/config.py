from pydantic_settings import BaseSettings

from tripscout.exceptions import ConfigurationError


class Settings(BaseSettings):
    # Amadeus (flights, locations, hotel list)
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"

    # RapidAPI (IRCTC trains, RedBus buses, Booking.com hotels)
    rapidapi_key: str = ""
    irctc_host: str = "irctc1.p.rapidapi.com"
    redbus_host: str = "redbus-service.p.rapidapi.com"
    booking_host: str = "booking-com.p.rapidapi.com"

    # Generative fallback
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"

    # Redis persisted cache tier; empty disables it
    redis_url: str = ""

    # Cache TTLs (seconds)
    cache_ttl_seconds: int = 5 * 60
    persisted_cache_ttl_seconds: int = 15 * 60
    location_cache_ttl_seconds: int = 24 * 60 * 60

    # Pacing
    min_api_interval_seconds: float = 3.0
    rate_limit_cooldown_seconds: float = 120.0
    request_timeout_seconds: float = 15.0
    max_rate_limit_retries: int = 2
    backoff_base_seconds: float = 2.0

    currency: str = "INR"

    # CORS
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def has_amadeus(self) -> bool:
        return bool(self.amadeus_client_id and self.amadeus_client_secret)

    @property
    def has_rapidapi(self) -> bool:
        return bool(self.rapidapi_key)

    def require_for(self, category: str) -> None:
        """Raise ConfigurationError when credentials for a search category are missing.

        Checked at call time so a missing key only disables its own category.
        """
        if category in ("flight", "hotel") and not self.has_amadeus:
            raise ConfigurationError(
                "Amadeus API credentials missing. "
                "Set AMADEUS_CLIENT_ID and AMADEUS_CLIENT_SECRET."
            )
        if category in ("train", "bus", "hotel") and not self.has_rapidapi:
            raise ConfigurationError("RapidAPI key missing. Set RAPIDAPI_KEY.")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
