"""LLM-backed generator that produces the app page and README for a task brief."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from openai import OpenAI, OpenAIError

from codegen import (
    DOCUMENT_END,
    DOCUMENT_START,
    render_app_prompt,
    render_fallback_html,
    render_fallback_readme,
    render_readme_prompt,
)
from config import Settings
from schemas import Attachment, TaskRequest

logger = logging.getLogger("deployer.llm")

OPENING_FENCE_RE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\n?")
CLOSING_FENCE_RE = re.compile(r"\n?```$")


class LLMGenerationError(RuntimeError):
    """Raised when the LLM is unable to produce a usable document."""


def _strip_code_fence(payload: str) -> str:
    """
    Remove Markdown fence markers around the answer.

    The opening (```html, with or without a newline) and closing markers are
    stripped independently; fences inside the body are left alone.
    """

    text = OPENING_FENCE_RE.sub("", payload.strip(), count=1)
    text = CLOSING_FENCE_RE.sub("", text, count=1)
    return text.strip()


def validate_html_document(document: str) -> str:
    """Return ``document`` if it is a complete HTML page, else raise."""

    if not document.startswith(DOCUMENT_START) or not document.endswith(DOCUMENT_END):
        raise LLMGenerationError("LLM returned non-HTML or partial HTML.")
    return document


@dataclass
class ArtifactBundle:
    html: str
    readme: str
    html_fallback: bool = False
    readme_fallback: bool = False


class LLMGenerator:
    """High-level façade around the OpenAI chat completion API."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        self.model = settings.openai_model
        self.temperature = settings.openai_temperature
        self.max_tokens_app = settings.openai_max_tokens_app
        self.max_tokens_readme = settings.openai_max_tokens_readme

        if client is not None:
            self.client = client
            return

        auth_token = settings.openai_api_key or settings.ai_pipe_token
        if not auth_token:
            raise LLMGenerationError(
                "Neither OPENAI_API_KEY nor AI_PIPE_TOKEN is configured.",
            )

        client_kwargs: Dict[str, object] = {"api_key": auth_token}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        if settings.ai_pipe_token and not settings.openai_api_key:
            client_kwargs["default_headers"] = {
                "Authorization": f"Bearer {settings.ai_pipe_token}",
                "X-API-Key": settings.ai_pipe_token,
            }

        self.client = OpenAI(**client_kwargs)

    def _complete(self, prompt: str, max_tokens: int) -> str:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except OpenAIError as exc:
            raise LLMGenerationError(f"OpenAI API call failed: {exc}") from exc

        if not completion.choices:
            raise LLMGenerationError("LLM returned no choices.")
        message = completion.choices[0].message
        if not message or not message.content:
            raise LLMGenerationError("LLM returned an empty response.")
        return _strip_code_fence(message.content)

    def request_app_html(
        self,
        brief: str,
        attachments: Sequence[Attachment],
        checks: Sequence[str],
    ) -> str:
        prompt = render_app_prompt(brief, attachments, checks)
        return validate_html_document(self._complete(prompt, self.max_tokens_app))

    def request_readme(self, brief: str, repo_name: str) -> str:
        readme = self._complete(render_readme_prompt(brief, repo_name), self.max_tokens_readme)
        if not readme:
            raise LLMGenerationError("LLM returned an empty README.")
        return readme

    def generate_app(
        self,
        brief: str,
        attachments: Sequence[Attachment],
        checks: Sequence[str],
    ) -> str:
        """Return the generated page, or the fallback page on any failure."""

        return self._generate_app(brief, attachments, checks)[0]

    def generate_readme(self, brief: str, repo_name: str) -> str:
        """Return the generated README, or the fallback README on any failure."""

        return self._generate_readme(brief, repo_name)[0]

    def _generate_app(self, brief, attachments, checks) -> tuple[str, bool]:
        try:
            document = self.request_app_html(brief, attachments, checks)
        except LLMGenerationError as exc:
            logger.warning("LLM page generation failed: %s", exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled LLM error: %s", exc)
        else:
            logger.info("Generated index.html via LLM model %s", self.model)
            return document, False
        return render_fallback_html(brief), True

    def _generate_readme(self, brief, repo_name) -> tuple[str, bool]:
        try:
            readme = self.request_readme(brief, repo_name)
        except LLMGenerationError as exc:
            logger.warning("LLM README generation failed: %s", exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled LLM error: %s", exc)
        else:
            logger.info("Generated README.md via LLM model %s", self.model)
            return readme, False
        return render_fallback_readme(repo_name, brief), True

    def generate_bundle(self, task: TaskRequest) -> ArtifactBundle:
        html, html_fallback = self._generate_app(task.brief, task.attachments, task.checks)
        readme, readme_fallback = self._generate_readme(task.brief, task.task)
        if html_fallback:
            logger.warning(
                "Falling back to deterministic page for task %s",
                task.task,
            )
        return ArtifactBundle(
            html=html,
            readme=readme,
            html_fallback=html_fallback,
            readme_fallback=readme_fallback,
        )
