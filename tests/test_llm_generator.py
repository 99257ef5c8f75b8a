from __future__ import annotations

from openai import OpenAIError

from codegen import DOCUMENT_END, DOCUMENT_START
from fakes import VALID_HTML, VALID_README, FakeOpenAI
from schemas import Attachment, TaskRequest
from services.llm_generator import LLMGenerator, _strip_code_fence


def _generator(settings, client: FakeOpenAI) -> LLMGenerator:
    return LLMGenerator(settings, client=client)


def test_valid_document_is_returned_unchanged(settings) -> None:
    client = FakeOpenAI()
    html = _generator(settings, client).generate_app("Greet", [], [])

    assert html == VALID_HTML
    assert client.calls[0]["model"] == settings.openai_model
    assert client.calls[0]["max_tokens"] == settings.openai_max_tokens_app


def test_code_fence_wrapper_is_stripped(settings) -> None:
    client = FakeOpenAI(app=f"```html\n{VALID_HTML}\n```")
    assert _generator(settings, client).generate_app("Greet", [], []) == VALID_HTML


def test_strip_code_fence_leaves_plain_text() -> None:
    assert _strip_code_fence("  # Title\n") == "# Title"
    assert _strip_code_fence("```markdown\n# Title\n```") == "# Title"


def test_missing_markers_fall_back(settings) -> None:
    client = FakeOpenAI(app="Sure! Here is your app: <div>hello</div>")
    html = _generator(settings, client).generate_app("Greet <visitors>", [], [])

    assert html.startswith(DOCUMENT_START) and html.endswith(DOCUMENT_END)
    assert "LLM generation failed" in html
    assert "Greet &lt;visitors&gt;" in html
    assert "<div>hello</div>" not in html


def test_provider_error_falls_back_without_retry(settings) -> None:
    client = FakeOpenAI(app=OpenAIError("rate limited"))
    html = _generator(settings, client).generate_app("Greet", [], [])

    assert "LLM generation failed" in html
    assert len(client.calls) == 1


def test_empty_answer_falls_back(settings) -> None:
    client = FakeOpenAI(app="")
    assert "LLM generation failed" in _generator(settings, client).generate_app("Greet", [], [])


def test_prompt_includes_checks_and_attachments(settings) -> None:
    client = FakeOpenAI()
    attachment = Attachment(name="logo.png", url="data:image/png;base64," + "A" * 100)
    _generator(settings, client).generate_app("Greet", [attachment], ["has h1", "has footer"])

    prompt = client.calls[0]["messages"][0]["content"]
    assert "BRIEF: Greet" in prompt
    assert "1. has h1" in prompt
    assert "2. has footer" in prompt
    assert "- logo.png: data:image/png;base64," in prompt
    assert "A" * 100 not in prompt


def test_readme_failure_uses_fallback(settings) -> None:
    client = FakeOpenAI(readme=OpenAIError("down"))
    readme = _generator(settings, client).generate_readme("Greet", "demo-task")

    assert readme.startswith("# demo-task")
    assert "Greet" in readme
    assert "MIT" in readme


def test_generate_bundle_reports_fallbacks(settings, task_payload) -> None:
    client = FakeOpenAI(app="not html")
    task = TaskRequest.model_validate(task_payload)
    bundle = _generator(settings, client).generate_bundle(task)

    assert bundle.html_fallback is True
    assert bundle.readme_fallback is False
    assert bundle.readme == VALID_README.strip()
    assert len(client.calls) == 2


def test_trailing_fence_alone_is_stripped(settings) -> None:
    client = FakeOpenAI(app=VALID_HTML + "\n```")
    assert _generator(settings, client).generate_app("Greet", [], []) == VALID_HTML


def test_single_line_fenced_page_is_kept(settings) -> None:
    page = "<!DOCTYPE html><html><body>Hi</body></html>"
    client = FakeOpenAI(app=f"```html{page}```")

    html = _generator(settings, client).generate_app("Greet", [], [])

    assert html == page
    assert "LLM generation failed" not in html


def test_inner_readme_fences_survive() -> None:
    readme = "# Title\n\n```bash\nnpm start\n```\n\nDone."
    assert _strip_code_fence(f"```markdown\n{readme}\n```") == readme
