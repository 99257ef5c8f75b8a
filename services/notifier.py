"""Delivery of the completion payload to the evaluator's callback URL."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from config import Settings
from utils import with_backoff

logger = logging.getLogger("deployer.notifier")


class EvaluationNotifier:
    """POST a JSON payload, retrying with exponential backoff until a 2xx answer."""

    def __init__(
        self,
        timeout: float = 10.0,
        base_delay: float = 1.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_delay = base_delay
        self.sleep = sleep
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "EvaluationNotifier":
        return cls(
            timeout=settings.callback_timeout_seconds,
            base_delay=settings.notify_base_delay_seconds,
            **kwargs,
        )

    def close(self) -> None:
        self._client.close()

    def notify(self, url: str, payload: Dict[str, Any], max_attempts: int = 5) -> bool:
        attempts = 0

        def attempt() -> bool:
            nonlocal attempts
            attempts += 1
            try:
                response = self._client.post(url, json=payload)
            except httpx.HTTPError as exc:
                logger.warning(
                    "Callback attempt %s/%s failed: %s",
                    attempts,
                    max_attempts,
                    exc,
                )
                return False
            if response.is_success:
                return True
            logger.warning(
                "Callback attempt %s/%s returned HTTP %s",
                attempts,
                max_attempts,
                response.status_code,
            )
            return False

        delivered = with_backoff(
            attempt,
            max_attempts=max_attempts,
            base_delay=self.base_delay,
            sleep=self.sleep,
        )
        if delivered:
            logger.info("Callback delivered to %s after %s attempt(s)", url, attempts)
        else:
            logger.error(
                "Unable to notify evaluation URL %s after %s attempts",
                url,
                max_attempts,
            )
        return delivered
