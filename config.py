from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    LOG_LEVEL: str = "INFO" # Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL, NONE)
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # Upstream base URLs. Credentials are never configured here, they arrive per request.
    QWEN_API_BASE: str = "https://qianwen.biz.aliyun.com"
    GEMINI_API_BASE: str = "https://gemini.google.com/api"
    VEO_API_BASE: str = "https://veo.google.com/api"
    VEO2_API_BASE: str = "https://veo.google.com/api/v2"

    UPSTREAM_TIMEOUT: float = 180.0 # Seconds for every provider call
    IMAGE_FETCH_TIMEOUT: float = 30.0 # Seconds for downloading caller-supplied images

    # Only image URLs served from this CDN are returned by Qwen image generation
    QWEN_IMAGE_DOMAIN: str = "wanx.alicdn.com"


settings = Settings()
