"""Utility helpers for URL construction, content encoding and retry policy."""

from __future__ import annotations

import base64
import logging
import time
from typing import Callable

logger = logging.getLogger("deployer.utils")


def build_pages_url(owner: str, repo_name: str, pages_host: str = "github.io") -> str:
    """Construct the canonical GitHub Pages URL for the repo."""

    owner = owner.strip("/")
    repo_name = repo_name.strip("/")
    return f"https://{owner}.{pages_host}/{repo_name}/"


def build_repo_url(html_base_url: str, owner: str, repo_name: str) -> str:
    """Construct the browsable repository URL, e.g. https://github.com/owner/repo."""

    return f"{html_base_url.rstrip('/')}/{owner.strip('/')}/{repo_name.strip('/')}"


def encode_content(content: str) -> str:
    """Base64-encode UTF-8 text as required by the GitHub contents API."""

    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def with_backoff(
    attempt: Callable[[], bool],
    max_attempts: int = 5,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Call ``attempt`` until it returns True or ``max_attempts`` is exhausted.

    After the zero-indexed attempt ``i`` fails, waits ``base_delay * 2**i``
    seconds before trying again. There is no wait before the first attempt nor
    after the last. Exceptions raised by ``attempt`` count as a failed attempt.
    """

    for index in range(max_attempts):
        try:
            if attempt():
                return True
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Attempt %s/%s raised: %s",
                index + 1,
                max_attempts,
                exc,
            )

        if index < max_attempts - 1:
            sleep(base_delay * (2**index))
    return False
