from typing import Any


class AnalyzerError(Exception):
    status_code = 500

    def __init__(self, message: str, payload: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_content(self) -> dict[str, Any]:
        return {"error": self.message, **self.payload}


class ValidationError(AnalyzerError):
    status_code = 400


class NotFoundError(AnalyzerError):
    status_code = 404


class QuotaExceededError(AnalyzerError):
    status_code = 429

    def __init__(self, analyses_used: int, analyses_limit: int):
        super().__init__(
            "Free trial already used for this IP.",
            {
                "upgradeRequired": True,
                "analyses_used": analyses_used,
                "analyses_limit": analyses_limit,
            },
        )
        self.analyses_used = analyses_used
        self.analyses_limit = analyses_limit


class ConfigurationError(AnalyzerError):
    status_code = 500


class UpstreamFetchError(AnalyzerError):
    status_code = 500

    def __init__(self, message: str, status: int | None = None, payload: dict[str, Any] | None = None):
        super().__init__(message, payload)
        self.status = status


class YouTubeQuotaExceededError(UpstreamFetchError):
    def __init__(self, status: int | None = None):
        super().__init__(
            f"YouTube API quota exceeded (status {status})",
            status=status,
            payload={"error_code": "youtube_quota_exhausted"},
        )
