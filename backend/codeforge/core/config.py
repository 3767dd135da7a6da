from pydantic_settings import BaseSettings

from codeforge.services.rate_limiting.limiter import ActionLimit


class Settings(BaseSettings):
    PROJECT_NAME: str = "CodeForge API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Admin routes (X-Secret-Key header or ?secretKey=)
    OWNER_SECRET_KEY: str = ""

    FRONTEND_URL: str = "*"

    # Rate limiting (per user, per action)
    RATE_LIMIT_CLEANUP_INTERVAL_SEC: int = 300
    RATE_LIMIT_MESSAGES_PER_MIN: int = 30
    RATE_LIMIT_MESSAGES_BLOCK_SEC: int = 300
    RATE_LIMIT_ROOM_JOINS_PER_MIN: int = 10
    RATE_LIMIT_ROOM_JOINS_BLOCK_SEC: int = 60
    RATE_LIMIT_MESSAGE_EDITS_PER_MIN: int = 15
    RATE_LIMIT_MESSAGE_EDITS_BLOCK_SEC: int = 120

    def action_limits(self) -> dict[str, ActionLimit]:
        return {
            "messages": ActionLimit(
                window_ms=60_000,
                max_requests=self.RATE_LIMIT_MESSAGES_PER_MIN,
                block_duration_ms=self.RATE_LIMIT_MESSAGES_BLOCK_SEC * 1000,
            ),
            "roomJoins": ActionLimit(
                window_ms=60_000,
                max_requests=self.RATE_LIMIT_ROOM_JOINS_PER_MIN,
                block_duration_ms=self.RATE_LIMIT_ROOM_JOINS_BLOCK_SEC * 1000,
            ),
            "messageEdits": ActionLimit(
                window_ms=60_000,
                max_requests=self.RATE_LIMIT_MESSAGE_EDITS_PER_MIN,
                block_duration_ms=self.RATE_LIMIT_MESSAGE_EDITS_BLOCK_SEC * 1000,
            ),
        }

    # Retry with backoff (seconds)
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_SEC: float = 0.3
    RETRY_MAX_DELAY_SEC: float = 3.0
    RETRY_FACTOR: float = 2.0

    # Coding platforms
    PLATFORM_REQUEST_TIMEOUT_SEC: float = 10.0
    GITHUB_TOKEN: str = ""  # Optional, raises GitHub's anonymous rate limit

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
