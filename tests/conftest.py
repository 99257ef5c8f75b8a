from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from config import Settings
from fakes import CallbackRecorder, FakeGitHub, FakeOpenAI
from pipeline import DeploymentPipeline
from services.github_service import GitHubService
from services.llm_generator import LLMGenerator
from services.notifier import EvaluationNotifier


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        app_secret="s3cret",
        github_token="ghp_test",
        github_owner="octo",
        github_base_url="https://api.github.com",
        github_html_url="https://github.com",
        github_pages_host="github.io",
        github_default_branch="main",
        openai_api_key="sk-test",
        openai_base_url=None,
        ai_pipe_token=None,
        notify_max_attempts=5,
        notify_base_delay_seconds=1.0,
    )


@pytest.fixture
def fake_github(settings: Settings) -> FakeGitHub:
    return FakeGitHub(owner=settings.github_owner)


@pytest.fixture
def callback() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def llm_client() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def github_service(settings: Settings, fake_github: FakeGitHub) -> GitHubService:
    client = httpx.Client(
        base_url=settings.github_base_url,
        transport=httpx.MockTransport(fake_github.handler),
    )
    with GitHubService(settings, client=client) as service:
        yield service


@pytest.fixture
def build_pipeline(
    settings: Settings,
    fake_github: FakeGitHub,
    callback: CallbackRecorder,
    llm_client: FakeOpenAI,
    sleeps: List[float],
) -> Callable[..., DeploymentPipeline]:
    def _build(pipeline_settings: Optional[Settings] = None) -> DeploymentPipeline:
        active = pipeline_settings or settings
        github = GitHubService(
            active,
            client=httpx.Client(
                base_url=active.github_base_url,
                transport=httpx.MockTransport(fake_github.handler),
            ),
        )
        notifier = EvaluationNotifier(
            base_delay=active.notify_base_delay_seconds,
            client=httpx.Client(transport=httpx.MockTransport(callback.handler)),
            sleep=sleeps.append,
        )
        generator = LLMGenerator(active, client=llm_client)
        return DeploymentPipeline(active, generator=generator, github=github, notifier=notifier)

    return _build


@pytest.fixture
def task_payload() -> Dict[str, Any]:
    return {
        "email": "student@example.com",
        "secret": "s3cret",
        "task": "demo-task",
        "round": 1,
        "nonce": "nonce-123",
        "brief": "Build a page that greets the visitor.",
        "checks": ["Page has an h1", "Greeting is visible"],
        "evaluation_url": "https://evaluator.example.com/notify",
        "attachments": [{"name": "sample.csv", "url": "data:text/csv;base64,YSxiCjEsMgo="}],
    }
