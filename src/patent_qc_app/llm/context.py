"""Process-wide capacity state shared by every in-flight inference call."""

from __future__ import annotations

import random
from functools import lru_cache
from typing import Callable, Literal, Sequence, Union

from pydantic import BaseModel

from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.llm.models import ModelTier

LOGGER = get_logger(__name__)


class RetryScheduled(BaseModel):
    event: Literal["retry_scheduled"] = "retry_scheduled"
    label: str
    model: str
    attempt: int
    retries: int
    delay_seconds: float
    reason: str


class CredentialRotated(BaseModel):
    event: Literal["credential_rotated"] = "credential_rotated"
    label: str
    from_index: int
    to_index: int


class TierDowngraded(BaseModel):
    event: Literal["tier_downgraded"] = "tier_downgraded"
    label: str
    from_model: str
    to_model: str


OrchestratorEvent = Union[RetryScheduled, CredentialRotated, TierDowngraded]
Observer = Callable[[OrchestratorEvent], None]


class CredentialPool:
    """Ordered API keys with a current index.

    ``select_random`` spreads load per top-level call; ``rotate`` is used on
    quota errors and never lands on the index it is leaving.
    """

    def __init__(self, credentials: Sequence[str], *, rng: random.Random | None = None) -> None:
        self._credentials = list(credentials)
        self._rng = rng or random.Random()
        self.current_index = 0

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def current(self) -> str | None:
        if not self._credentials:
            return None
        return self._credentials[self.current_index]

    def index_of(self, credential: str | None) -> int:
        if credential is None or credential not in self._credentials:
            return -1
        return self._credentials.index(credential)

    def select_random(self) -> str | None:
        if not self._credentials:
            return None
        self.current_index = self._rng.randrange(len(self._credentials))
        return self._credentials[self.current_index]

    def rotate(self, away_from: int | None = None, avoid: Sequence[int] = ()) -> str | None:
        """Move to another credential, preferring indices not listed in ``avoid``."""
        if not self._credentials:
            return None
        if len(self._credentials) == 1:
            return self._credentials[0]
        leaving = self.current_index if away_from is None or away_from < 0 else away_from
        candidates = [index for index in range(len(self._credentials)) if index != leaving]
        fresh = [index for index in candidates if index not in avoid]
        candidates = fresh or candidates
        self.current_index = self._rng.choice(candidates)
        return self._credentials[self.current_index]


class InferenceContext:
    """Shared tier and credential state, mutated only through narrow methods.

    No lock is taken. Concurrent attempts may race on these fields; every
    retry re-reads them, so a lost update only delays the effect by one attempt.
    """

    def __init__(
        self,
        *,
        smart_model: str,
        fast_model: str,
        credentials: CredentialPool,
        tier: ModelTier = ModelTier.SMART,
    ) -> None:
        self.smart_model = smart_model
        self.fast_model = fast_model
        self.credentials = credentials
        self.tier = tier
        self._observers: list[Observer] = []

    @classmethod
    def from_settings(cls, settings: AppSettings, *, rng: random.Random | None = None) -> "InferenceContext":
        return cls(
            smart_model=settings.smart_model,
            fast_model=settings.fast_model,
            credentials=CredentialPool(settings.credentials, rng=rng),
        )

    def model_for(self, tier: ModelTier) -> str:
        return self.smart_model if tier is ModelTier.SMART else self.fast_model

    def active_model(self) -> str:
        return self.model_for(self.tier)

    def set_tier(self, tier: ModelTier) -> None:
        """Explicit user choice, e.g. switching back to the smart tier."""
        LOGGER.info("Model tier set", extra={"tier": tier.value, "model": self.model_for(tier)})
        self.tier = tier

    def downgrade_tier(self, label: str = "inference") -> bool:
        """Drop to the fast tier. Returns False when already there."""
        if self.tier is ModelTier.FAST:
            return False
        from_model = self.active_model()
        self.tier = ModelTier.FAST
        LOGGER.warning(
            "Quota exhausted on smart tier, switching process-wide to fast tier",
            extra={"from_model": from_model, "to_model": self.fast_model},
        )
        self.notify(TierDowngraded(label=label, from_model=from_model, to_model=self.fast_model))
        return True

    def rotate_credential(
        self, away_from: int | None = None, label: str = "inference", avoid: Sequence[int] = ()
    ) -> str | None:
        from_index = self.credentials.current_index if away_from is None else away_from
        credential = self.credentials.rotate(away_from=from_index, avoid=avoid)
        to_index = self.credentials.current_index
        LOGGER.info("Rotated API credential", extra={"from_index": from_index, "to_index": to_index})
        self.notify(CredentialRotated(label=label, from_index=from_index, to_index=to_index))
        return credential

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def notify(self, event: OrchestratorEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as exc:  # observers must not break inference
                LOGGER.warning("Observer failed", extra={"event": event.event, "error": str(exc)})


@lru_cache(maxsize=1)
def get_inference_context() -> InferenceContext:
    """Process-wide context, created once at startup."""
    return InferenceContext.from_settings(get_settings())
