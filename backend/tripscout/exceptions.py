"""Error taxonomy for the search engine.

Only ConfigurationError (and its ProviderAuthError subclass) and
InvalidQueryError reach callers of the public search operations. The
remaining exceptions are raised by the provider gateway and converted into
an AdapterOutcome at the adapter boundary.
"""


class TravelSearchError(Exception):
    """Base class for all tripscout errors."""


class ConfigurationError(TravelSearchError):
    """Required credentials for a search category are absent."""


class ProviderAuthError(ConfigurationError):
    """A provider rejected the configured credentials."""

    def __init__(self, provider: str, detail: str = ""):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} rejected the configured credentials. {detail}".strip())


class InvalidQueryError(TravelSearchError, ValueError):
    """The query cannot be turned into a searchable keyword."""


class RateLimitedError(TravelSearchError):
    """Upstream signalled a rate limit, or the key is cooling down."""

    def __init__(self, key: str, cooling_down: bool = False):
        self.key = key
        self.cooling_down = cooling_down
        state = "cooling down" if cooling_down else "rate-limited"
        super().__init__(f"{key} is {state}")


class PlanRestrictedError(TravelSearchError):
    """Upstream rejected the operation for the current account tier."""

    def __init__(self, key: str, detail: str = ""):
        self.key = key
        self.detail = detail
        super().__init__(f"{key} is not available on this plan: {detail}")


class ProviderUnavailableError(TravelSearchError):
    """Transport failure, timeout, or an unexpected upstream status."""

    def __init__(self, key: str, status_code: int | None = None, detail: str = ""):
        self.key = key
        self.status_code = status_code
        self.detail = detail
        status = f"HTTP {status_code}" if status_code else "transport error"
        super().__init__(f"{key} failed ({status}): {detail}")
