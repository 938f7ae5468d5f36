"""Resilient submission of inference requests.

Each call picks a credential at random, streams the response under a timeout
and recovers from failures in a fixed order:

* invalid credential: drop the cached client and fail immediately;
* quota exhausted: rotate to another credential without spending a retry
  slot, then downgrade the shared tier once every credential has been tried,
  then fall back to backoff;
* anything else: exponential backoff with jitter, one retry slot per attempt.
"""

from __future__ import annotations

import asyncio
import random
from functools import lru_cache
from typing import Awaitable, Callable

from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.llm.clients import ClientFactory, InferenceClient, build_client_factory
from patent_qc_app.llm.context import InferenceContext, RetryScheduled, get_inference_context
from patent_qc_app.llm.errors import (
    InferenceError,
    InferenceTimeoutError,
    InvalidCredentialError,
    QuotaExceededError,
    RetriesExhaustedError,
    classify_error,
)
from patent_qc_app.llm.models import InferenceOutcome, InferenceRequest, ModelTier
from patent_qc_app.llm.pricing import TierRates, calculate_cost, count_input_chars, rates_from_settings

LOGGER = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class InferenceOrchestrator:
    """Submit requests against the shared context with retry and recovery."""

    def __init__(
        self,
        *,
        settings: AppSettings | None = None,
        context: InferenceContext | None = None,
        client_factory: ClientFactory | None = None,
        sleep: Sleep | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.context = context or get_inference_context()
        self.client_factory = client_factory or build_client_factory(self.settings)
        self.rates: dict[ModelTier, TierRates] = rates_from_settings(self.settings)
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._clients: dict[str | None, InferenceClient] = {}

    async def submit(
        self,
        request: InferenceRequest,
        *,
        retries: int | None = None,
        initial_delay_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> InferenceOutcome:
        retries = self.settings.max_retries if retries is None else retries
        initial_delay_ms = self.settings.initial_backoff_ms if initial_delay_ms is None else initial_delay_ms
        timeout_ms = self.settings.request_timeout_ms if timeout_ms is None else timeout_ms
        if retries < 1:
            raise ValueError("retries must be at least 1")

        pool = self.context.credentials
        credential = pool.select_random() if len(pool) > 1 else pool.current
        rotations_left = len(pool) - 1
        tried = {pool.index_of(credential)}
        input_chars = count_input_chars(request.parts)
        last_error: InferenceError | None = None

        attempt = 0
        while attempt < retries:
            tier = self.context.tier
            model = self.context.model_for(tier)
            try:
                client = self._client_for(credential)
                text = await asyncio.wait_for(
                    self._consume(client, model, request),
                    timeout=timeout_ms / 1000,
                )
            except asyncio.TimeoutError:
                error: InferenceError = InferenceTimeoutError(f"Request timed out after {timeout_ms / 1000:g} seconds")
            except Exception as exc:
                error = classify_error(exc)
            else:
                return self._outcome(text, model, tier, input_chars)

            last_error = error
            LOGGER.warning(
                "Inference attempt failed",
                extra={
                    "label": request.label,
                    "attempt": attempt + 1,
                    "retries": retries,
                    "model": model,
                    "kind": error.kind.value,
                    "error": str(error),
                },
            )

            if isinstance(error, InvalidCredentialError):
                self._clients.pop(credential, None)
                raise error

            if isinstance(error, QuotaExceededError):
                if rotations_left > 0:
                    rotations_left -= 1
                    self._clients.pop(credential, None)
                    credential = self.context.rotate_credential(
                        pool.index_of(credential), label=request.label, avoid=tuple(tried)
                    )
                    tried.add(pool.index_of(credential))
                    await self._sleep(self.settings.rotation_delay_ms / 1000)
                    continue
                if self.context.tier is not tier:
                    # A sibling call already downgraded; retry on the new tier.
                    continue
                if self.context.downgrade_tier(label=request.label):
                    rotations_left = len(pool) - 1
                    tried = {pool.index_of(credential)}
                    if self.settings.reset_attempts_on_downgrade:
                        attempt = 0
                    continue

            if attempt < retries - 1:
                delay = self._backoff_seconds(initial_delay_ms, attempt)
                self.context.notify(
                    RetryScheduled(
                        label=request.label,
                        model=model,
                        attempt=attempt + 2,
                        retries=retries,
                        delay_seconds=round(delay, 1),
                        reason=str(error),
                    )
                )
                await self._sleep(delay)
            attempt += 1

        LOGGER.error("All retry attempts failed", extra={"label": request.label, "retries": retries})
        raise RetriesExhaustedError(retries, last_error)

    async def _consume(self, client: InferenceClient, model: str, request: InferenceRequest) -> str:
        fragments: list[str] = []
        async for fragment in client.stream_generate(model, request.parts, request.response_schema):
            fragments.append(fragment)
        return "".join(fragments)

    def _client_for(self, credential: str | None) -> InferenceClient:
        client = self._clients.get(credential)
        if client is None:
            client = self.client_factory(credential)
            self._clients[credential] = client
        return client

    def _backoff_seconds(self, initial_delay_ms: int, attempt: int) -> float:
        jitter = self._rng.random() * self.settings.backoff_jitter_ms
        return (initial_delay_ms * 2**attempt + jitter) / 1000

    def _outcome(self, text: str, model: str, tier: ModelTier, input_chars: int) -> InferenceOutcome:
        rates = self.rates[tier]
        output_chars = len(text)
        return InferenceOutcome(
            text=text,
            model=model,
            tier=tier,
            input_chars=input_chars,
            output_chars=output_chars,
            cost=calculate_cost(input_chars, output_chars, rates),
        )


@lru_cache(maxsize=1)
def get_orchestrator() -> InferenceOrchestrator:
    """Process-wide orchestrator sharing the process-wide context."""
    return InferenceOrchestrator()
