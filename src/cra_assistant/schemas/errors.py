"""Error taxonomy shared by the gateway and its consumers.

Every failure leaving the gateway is an ``AppError`` value: a machine-readable
code, a category, a severity that tells the consumer whether to block or merely
warn, a localized message for the reviewer, and a technical message plus
context for diagnostics.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(StrEnum):
    NOT_INITIALIZED = "AI_NOT_INITIALIZED"
    AUTH_FAILED = "AI_AUTH_FAILED"
    BAD_REQUEST = "AI_BAD_REQUEST"
    REQUEST_FAILED = "AI_REQUEST_FAILED"
    PARSE_FAILED = "AI_PARSE_FAILED"


class ErrorCategory(StrEnum):
    DOMAIN = "domain"
    INFRASTRUCTURE = "infrastructure"
    UI = "ui"
    NETWORK = "network"


class ErrorSeverity(StrEnum):
    CRITICAL = "critical"   # blocks the current operation
    WARNING = "warning"     # reviewer may continue
    INFO = "info"


class NetworkCause(StrEnum):
    """Sub-cause of a RequestFailed error."""
    CONNECTION_RESET = "ECONNRESET"
    TIMEOUT = "ETIMEDOUT"
    DNS_FAILURE = "ENOTFOUND"
    CONNECTION_REFUSED = "ECONNREFUSED"
    SERVER_ERROR = "SERVER_ERROR"
    OTHER = "ENETWORK"


class AppError(BaseModel):
    code: ErrorCode
    category: ErrorCategory
    severity: ErrorSeverity
    user_message: str
    technical_message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    context: dict[str, Any] = Field(default_factory=dict)
    cause: NetworkCause | None = None

    @property
    def is_fatal(self) -> bool:
        return self.severity == ErrorSeverity.CRITICAL


# ---------------------------------------------------------------------------
# Message catalogue
# ---------------------------------------------------------------------------

_USER_MESSAGES: dict[str, dict[str, str]] = {
    "en-US": {
        ErrorCode.NOT_INITIALIZED: "Please configure a valid GLM API key first.",
        ErrorCode.AUTH_FAILED: "The API key is invalid or lacks permission. Please check your settings.",
        ErrorCode.BAD_REQUEST: "The request was rejected as malformed.",
        ErrorCode.REQUEST_FAILED: "AI request failed. Please check your network connection.",
        ErrorCode.PARSE_FAILED: "The AI response could not be parsed; the JSON was incomplete or invalid.",
        NetworkCause.CONNECTION_RESET: (
            "The API server closed the connection. It may be busy or the request too large; "
            "please try again later."
        ),
        NetworkCause.TIMEOUT: "The API request timed out. Check your network connection or try again later.",
        NetworkCause.DNS_FAILURE: "Cannot reach the API server. Please check your network settings.",
    },
    "zh-CN": {
        ErrorCode.NOT_INITIALIZED: "请先设置有效的GLM-4 API密钥",
        ErrorCode.AUTH_FAILED: "API密钥无效或权限不足，请检查设置",
        ErrorCode.BAD_REQUEST: "请求格式错误",
        ErrorCode.REQUEST_FAILED: "AI请求失败，请检查网络连接",
        ErrorCode.PARSE_FAILED: "AI响应解析失败，返回的JSON格式不完整或有错误",
        NetworkCause.CONNECTION_RESET: "API连接被服务器中断，可能是服务器繁忙或请求过大，请稍后重试",
        NetworkCause.TIMEOUT: "API请求超时，请检查网络连接或稍后重试",
        NetworkCause.DNS_FAILURE: "无法连接到API服务器，请检查网络设置",
    },
}

_CLASSIFICATION: dict[ErrorCode, tuple[ErrorCategory, ErrorSeverity]] = {
    ErrorCode.NOT_INITIALIZED: (ErrorCategory.DOMAIN, ErrorSeverity.CRITICAL),
    ErrorCode.AUTH_FAILED: (ErrorCategory.NETWORK, ErrorSeverity.CRITICAL),
    ErrorCode.BAD_REQUEST: (ErrorCategory.DOMAIN, ErrorSeverity.CRITICAL),
    ErrorCode.REQUEST_FAILED: (ErrorCategory.NETWORK, ErrorSeverity.CRITICAL),
    ErrorCode.PARSE_FAILED: (ErrorCategory.DOMAIN, ErrorSeverity.WARNING),
}


def user_message(code: ErrorCode, cause: NetworkCause | None = None, language: str = "en-US") -> str:
    catalogue = _USER_MESSAGES.get(language, _USER_MESSAGES["en-US"])
    if cause is not None and cause in catalogue:
        return catalogue[cause]
    return catalogue[code]


def make_error(
    code: ErrorCode,
    technical_message: str,
    *,
    context: dict[str, Any] | None = None,
    cause: NetworkCause | None = None,
    language: str = "en-US",
) -> AppError:
    category, severity = _CLASSIFICATION[code]
    return AppError(
        code=code,
        category=category,
        severity=severity,
        user_message=user_message(code, cause, language),
        technical_message=technical_message,
        context=context or {},
        cause=cause,
    )
