"""
AI gateway client: turns an extraction request into a typed Result.

Flow per ``extract`` call:
  1. Format the kind's prompt template and truncate the input to its budget.
  2. For every HTTP attempt: take a rate-limit slot, sign a fresh token, POST.
  3. Retry network-class failures and 5xx with exponential backoff + jitter
     (tenacity); 401/403 and 400 fail on the first attempt.
  4. Parse the answer (repairing truncated JSON once) and map it to the
     kind-specific schema.

Nothing raises past this class: every failure becomes ``Err(AppError)``.
Build one instance at startup and pass it to whoever needs it.
"""

from __future__ import annotations

import asyncio
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from cra_assistant.config import GatewayConfig
from cra_assistant.gateway.auth import CredentialError, generate_token, split_credential
from cra_assistant.gateway.rate_limiter import SlidingWindowRateLimiter, Sleep
from cra_assistant.gateway.repair import parse_json_response
from cra_assistant.gateway.transform import TRANSFORMS
from cra_assistant.gateway.transport import (
    RETRYABLE_ERRORS,
    AuthenticationError,
    BadRequestError,
    ChatTransport,
    GLMTransport,
    NetworkError,
    ServerError,
)
from cra_assistant.logging import log
from cra_assistant.prompts.extraction import (
    CONNECTION_TEST_PROMPT,
    CONNECTION_TEST_SYSTEM,
    PROMPTS,
    SYSTEM_PROMPT,
    format_prompt,
    truncate_content,
)
from cra_assistant.schemas.errors import AppError, ErrorCode, NetworkCause, make_error
from cra_assistant.schemas.extraction import (
    CriteriaSet,
    ExtractionRequest,
    MedicationRecord,
    PromptKind,
    SubjectVisit,
    SubjectVisitItem,
    VisitSchedule,
)
from cra_assistant.schemas.result import Err, Ok, Result

BACKOFF_BASE_SECONDS = 1.0
BACKOFF_JITTER_SECONDS = 0.5


class GatewayClient:
    def __init__(
        self,
        config: GatewayConfig,
        *,
        transport: ChatTransport | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._transport = transport or GLMTransport(config)
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter(config.max_requests_per_minute)
        self._sleep = sleep
        self._init_error: AppError | None = None
        self.initialize()

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._rate_limiter

    @property
    def initialized(self) -> bool:
        return self._init_error is None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> Result[None]:
        """Validate the configured credential; extraction is refused until it passes."""
        try:
            split_credential(self._config.api_key)
        except CredentialError as exc:
            self._init_error = make_error(
                ErrorCode.NOT_INITIALIZED,
                str(exc),
                context={"source": "GatewayClient"},
                language=self._config.language,
            )
            log.warning("gateway.not_initialized", reason=str(exc))
            return Err(self._init_error)
        self._init_error = None
        return Ok(None)

    def update_api_key(self, api_key: str) -> Result[None]:
        self._config = self._config.model_copy(update={"api_key": api_key})
        return self.initialize()

    def reset_rate_limiter(self) -> None:
        self._rate_limiter.reset()

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract(
        self,
        prompt_kind: PromptKind,
        input_text: str,
        extra_params: dict[str, str] | None = None,
    ) -> Result[Any]:
        request = ExtractionRequest(raw_text=input_text, prompt_kind=prompt_kind, params=extra_params or {})
        return await self.run(request)

    async def run(self, request: ExtractionRequest) -> Result[Any]:
        kind = request.prompt_kind
        prompt = PROMPTS[kind]

        missing = prompt.placeholders - {"content"} - set(request.params)
        if missing:
            return Err(make_error(
                ErrorCode.BAD_REQUEST,
                f"Missing prompt parameters for {kind}: {sorted(missing)}",
                context={"context": kind.value},
                language=self._config.language,
            ))

        content = truncate_content(request.raw_text, prompt.token_budget)
        user_prompt = format_prompt(prompt.template, {**request.params, "content": content})

        response = await self._complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            context=kind.value,
        )
        if isinstance(response, Err):
            return response

        parsed = parse_json_response(response.value, language=self._config.language)
        if isinstance(parsed, Err):
            log.warning("gateway.parse_failed", context=kind.value, error=parsed.error.technical_message)
            return parsed

        result = TRANSFORMS[kind](parsed.value)
        log.info("gateway.extracted", context=kind.value, items=_count(result))
        return Ok(result)

    async def extract_criteria(self, protocol_text: str) -> Result[CriteriaSet]:
        return await self.extract(PromptKind.CRITERIA, protocol_text)

    async def extract_visit_schedule(self, protocol_text: str) -> Result[list[VisitSchedule]]:
        return await self.extract(PromptKind.VISIT_SCHEDULE, protocol_text)

    async def recognize_medications(self, subject_text: str) -> Result[list[MedicationRecord]]:
        return await self.extract(PromptKind.MEDICATIONS, subject_text)

    async def extract_subject_number(self, subject_text: str) -> Result[str]:
        return await self.extract(PromptKind.SUBJECT_NUMBER, subject_text)

    async def extract_subject_visit_dates(
        self, subject_text: str, visit_schedule_summary: str
    ) -> Result[list[SubjectVisit]]:
        return await self.extract(
            PromptKind.SUBJECT_VISIT_DATES,
            subject_text,
            {"visit_schedule_summary": visit_schedule_summary},
        )

    async def extract_subject_visit_items(
        self, subject_text: str, visit_items_summary: str
    ) -> Result[list[SubjectVisitItem]]:
        return await self.extract(
            PromptKind.SUBJECT_VISIT_ITEMS,
            subject_text,
            {"visit_items_summary": visit_items_summary},
        )

    async def test_connection(self) -> Result[str]:
        response = await self._complete(
            [
                {"role": "system", "content": CONNECTION_TEST_SYSTEM},
                {"role": "user", "content": CONNECTION_TEST_PROMPT},
            ],
            context="test_connection",
        )
        if isinstance(response, Err):
            return response
        log.info("gateway.connection_ok", model=self._config.model)
        return Ok(response.value.strip())

    # ------------------------------------------------------------------
    # Resilience
    # ------------------------------------------------------------------

    async def _complete(self, messages: list[dict[str, str]], context: str) -> Result[str]:
        if self._init_error is not None:
            return Err(self._init_error)

        body = {
            "model": self._config.model,
            "messages": messages,
            "temperature": self._config.temperature,
            "top_p": self._config.top_p,
            "max_tokens": self._config.max_tokens,
        }
        attempts = 0

        async def attempt() -> str:
            nonlocal attempts
            attempts += 1
            await self._rate_limiter.acquire()
            log.info(
                "gateway.attempt",
                context=context,
                attempt=attempts,
                max_attempts=self._config.max_retries,
            )
            token = generate_token(self._config.api_key)
            return await self._transport.send(body, token)

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self._config.max_retries),
            wait=wait_exponential(multiplier=BACKOFF_BASE_SECONDS, exp_base=2)
            + wait_random(0, BACKOFF_JITTER_SECONDS),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=_log_retry(context),
            reraise=True,
        )

        try:
            content = await retrying(attempt)
        except Exception as exc:  # noqa: BLE001
            return Err(self._classify_failure(exc, context, attempts))

        log.info("gateway.response", context=context, attempts=attempts, chars=len(content))
        return Ok(content)

    def _classify_failure(self, exc: Exception, context: str, attempts: int) -> AppError:
        language = self._config.language
        ctx: dict[str, Any] = {"context": context, "attempts": attempts}

        if isinstance(exc, AuthenticationError):
            code, cause = ErrorCode.AUTH_FAILED, None
        elif isinstance(exc, BadRequestError):
            code, cause = ErrorCode.BAD_REQUEST, None
        elif isinstance(exc, NetworkError):
            code, cause = ErrorCode.REQUEST_FAILED, exc.cause
        elif isinstance(exc, ServerError):
            code, cause = ErrorCode.REQUEST_FAILED, NetworkCause.SERVER_ERROR
        else:
            code, cause = ErrorCode.REQUEST_FAILED, None

        if cause is not None:
            ctx["error_code"] = cause.value
        log.error(
            "gateway.request_failed",
            code=code,
            cause=cause,
            error=str(exc),
            error_type=type(exc).__name__,
            **ctx,
        )
        return make_error(code, str(exc), context=ctx, cause=cause, language=language)


def _log_retry(context: str):
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            "gateway.attempt_failed",
            context=context,
            attempt=retry_state.attempt_number,
            error=str(exc),
            delay=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
        )
    return before_sleep


def _count(result: Any) -> int:
    if isinstance(result, CriteriaSet):
        return len(result.inclusion) + len(result.exclusion)
    if isinstance(result, list):
        return len(result)
    return 1 if result else 0
