"""Centralised settings loaded from environment / .env file."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Language = Literal["en-US", "zh-CN"]

DEFAULT_BASE_URL = "https://open.bigmodel.cn/api/paas/v4/chat/completions"


class GatewayConfig(BaseModel):
    """Immutable gateway configuration, fixed at construction time."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field("", repr=False)
    base_url: str = DEFAULT_BASE_URL
    model: str = "glm-4"
    temperature: float = Field(0.3, ge=0.0, le=1.0)
    top_p: float = Field(0.7, gt=0.0, le=1.0)
    max_tokens: int = Field(10000, gt=0)
    timeout: float = Field(120.0, gt=0.0, description="Per-request deadline in seconds")
    max_retries: int = Field(3, ge=1, description="Attempts in total, not re-tries")
    max_requests_per_minute: int = Field(60, ge=1)
    language: Language = "en-US"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # silently ignore env vars not declared as fields
    )

    # LLM
    # Format is "<key id>.<secret>"; an empty key surfaces as NotInitialized
    glm_api_key: str = Field("", repr=False, description="GLM API credential")
    glm_base_url: str = DEFAULT_BASE_URL
    glm_model: str = "glm-4"
    glm_temperature: float = 0.3
    glm_top_p: float = 0.7
    glm_max_tokens: int = 10000

    # Resilience
    request_timeout: float = 120.0  # seconds
    max_retries: int = 3
    max_requests_per_minute: int = 60

    # User-facing messages
    message_language: Language = "en-US"

    # PDF / OCR
    ocr_quality_threshold: int = 100  # chars/page below which OCR is triggered
    ocr_languages: str = "chi_sim+eng"
    tesseract_cmd: str = ""

    # Logging
    log_level: str = "INFO"

    def gateway_config(self) -> GatewayConfig:
        return GatewayConfig(
            api_key=self.glm_api_key,
            base_url=self.glm_base_url,
            model=self.glm_model,
            temperature=self.glm_temperature,
            top_p=self.glm_top_p,
            max_tokens=self.glm_max_tokens,
            timeout=self.request_timeout,
            max_retries=self.max_retries,
            max_requests_per_minute=self.max_requests_per_minute,
            language=self.message_language,
        )


settings = Settings()
