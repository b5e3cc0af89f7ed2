"""
Correction request client with ordered model fallback.

Every attempt is announced through on_attempt(model, attempt) before it is
sent, and on_progress(percent) reports 0 (sent), 50 (response received) and
100 (body parsed). Observers are plain callables; an observer that raises is
logged and ignored.
"""

import asyncio
import logging
import time
import warnings
from typing import Callable, Optional, Sequence

from pydantic import ValidationError

from ..config import (
    CORRECTION_MAX_TOKENS,
    CORRECTION_TEMPERATURE,
    CORRECTION_TIMEOUT_SEC,
)
from ..errors import (
    AllModelsExhaustedError,
    CorrectionError,
    InputValidationError,
    ModelAttemptError,
    RequestTimeoutError,
    TransportError,
    UsageMismatchWarning,
)
from ..models import CorrectionContext, CorrectionResult, RequestConfig
from .prompts import build_system_prompt, build_user_prompt
from .transport import PROMPT_REQUIRED, InferenceTransport, TransportResponse

log = logging.getLogger(__name__)

AttemptCallback = Callable[[str, int], None]
ProgressCallback = Callable[[int], None]

PROGRESS_SENT = 0
PROGRESS_RECEIVED = 50
PROGRESS_PARSED = 100


def error_message(response: TransportResponse) -> str:
    """The error body's message, else a status-derived one."""
    msg = response.body.get("error") if isinstance(response.body, dict) else None
    if isinstance(msg, str) and msg.strip():
        return msg.strip()
    if isinstance(msg, dict) and msg.get("message"):
        return str(msg["message"])
    status = f"HTTP {response.status_code}"
    return f"{status}: {response.reason}" if response.reason else status


class CorrectionClient:
    def __init__(
        self,
        transport: InferenceTransport,
        models: Sequence[str],
        default_timeout: Optional[float] = CORRECTION_TIMEOUT_SEC,
        default_max_tokens: Optional[int] = CORRECTION_MAX_TOKENS,
        default_temperature: Optional[float] = CORRECTION_TEMPERATURE,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not models:
            raise ValueError("CorrectionClient needs at least one model")
        self.transport = transport
        self.models = list(models)
        self.default_timeout = default_timeout
        self.default_max_tokens = default_max_tokens
        self.default_temperature = default_temperature
        self._clock = clock

    def request_config(self, context: CorrectionContext) -> RequestConfig:
        return RequestConfig(
            system_prompt=context.system_prompt or build_system_prompt(context),
            max_tokens=context.max_tokens if context.max_tokens is not None else self.default_max_tokens,
            temperature=context.temperature if context.temperature is not None else self.default_temperature,
            timeout=context.timeout if context.timeout is not None else self.default_timeout,
        )

    async def correct(
        self,
        text: str,
        context: Optional[CorrectionContext] = None,
        on_attempt: Optional[AttemptCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CorrectionResult:
        """
        Ask each model in turn to correct text, returning the first usable answer.

        Raises:
            InputValidationError: text is empty (nothing is sent).
            AllModelsExhaustedError: every model failed; .last_error holds the final cause.
        """
        if not (text or "").strip():
            raise InputValidationError(PROMPT_REQUIRED)

        context = context or CorrectionContext()
        config = self.request_config(context)
        prompt = build_user_prompt(text, context)

        last_error: Optional[Exception] = None
        attempted: list[str] = []

        for attempt, model in enumerate(self.models, start=1):
            attempted.append(model)
            _notify(on_attempt, model, attempt)
            _notify(on_progress, PROGRESS_SENT)
            try:
                result = await self._attempt(prompt, config, model, on_progress)
            except CorrectionError as e:
                last_error = e
                remaining = len(self.models) - attempt
                if remaining:
                    log.warning("Model %s failed (%s); falling back (%d left)", model, e, remaining)
                else:
                    log.error("Model %s failed (%s); no models left", model, e)
                continue

            _check_usage(result)
            _notify(on_progress, PROGRESS_PARSED)
            log.info(
                "Correction from %s/%s in %d ms (%d tokens)",
                result.provider, result.model, result.latency, result.usage.total_tokens,
            )
            return result

        raise AllModelsExhaustedError(attempted, last_error)

    async def _attempt(
        self,
        prompt: str,
        config: RequestConfig,
        model: str,
        on_progress: Optional[ProgressCallback],
    ) -> CorrectionResult:
        started = self._clock()
        response = await self._send(prompt, config, model)
        _notify(on_progress, PROGRESS_RECEIVED)

        if not response.ok:
            raise ModelAttemptError(model, response.status_code, error_message(response))

        body = dict(response.body)
        body.setdefault("model", model)
        body.setdefault("provider", self.transport.provider)
        body.setdefault("latency", int(round((self._clock() - started) * 1000)))
        try:
            return CorrectionResult.model_validate(body)
        except ValidationError as e:
            raise ModelAttemptError(model, response.status_code, f"Malformed response: {e}") from e

    async def _send(self, prompt: str, config: RequestConfig, model: str) -> TransportResponse:
        call = self.transport.send(prompt, config, model)
        try:
            if not config.timeout:
                return await call
            return await asyncio.wait_for(call, config.timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(model, config.timeout) from e
        except CorrectionError:
            raise
        except Exception as e:
            raise TransportError(f"{self.transport.provider} transport failed: {e}") from e


def _check_usage(result: CorrectionResult) -> None:
    u = result.usage
    if u.total_tokens != u.input_tokens + u.output_tokens:
        msg = (
            f"Usage mismatch from {result.model}: total {u.total_tokens} != "
            f"input {u.input_tokens} + output {u.output_tokens}"
        )
        log.warning(msg)
        warnings.warn(msg, UsageMismatchWarning, stacklevel=3)


def _notify(callback: Optional[Callable[..., None]], *args) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        log.exception("Correction observer raised; ignoring")
