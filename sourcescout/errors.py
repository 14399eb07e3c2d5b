"""Error taxonomy shared by the search core and the HTTP layer."""
from __future__ import annotations


class SearchError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": self.message}


class ValidationFailure(SearchError):
    status_code = 400


class FeatureUnavailable(SearchError):
    status_code = 403

    def __init__(self, message: str, feature: str, tier: str) -> None:
        super().__init__(message)
        self.feature = feature
        self.tier = tier

    def to_payload(self) -> dict:
        return {"error": self.message, "feature": self.feature, "currentTier": self.tier, "upgrade": True}


class QuotaExceeded(SearchError):
    status_code = 403

    def __init__(self, message: str, limit: int, usage: int, tier: str) -> None:
        super().__init__(message)
        self.limit = limit
        self.usage = usage
        self.tier = tier

    def to_payload(self) -> dict:
        return {
            "error": self.message,
            "limit": self.limit,
            "currentUsage": self.usage,
            "currentTier": self.tier,
            "upgrade": True,
        }


class TotalFailure(SearchError):
    """Unexpected breakage outside any single provider."""

    def __init__(self, request_id: str) -> None:
        super().__init__("Internal server error")
        self.request_id = request_id

    def to_payload(self) -> dict:
        return {"error": self.message, "requestId": self.request_id}


class ProviderFailure(Exception):
    """Raised inside a provider; the orchestrator converts it to zero results."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
