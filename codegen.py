"""Prompt and document templates for the generated single-page app."""

from __future__ import annotations

import html
from typing import Sequence

from schemas import Attachment

DOCUMENT_START = "<!DOCTYPE html>"
DOCUMENT_END = "</html>"

APP_PATH = "index.html"
README_PATH = "README.md"

ATTACHMENT_URL_PREVIEW = 60


def format_attachments(attachments: Sequence[Attachment]) -> str:
    if not attachments:
        return ""
    lines = [
        f"- {item.name or 'file'}: {(item.url or '')[:ATTACHMENT_URL_PREVIEW]}..."
        for item in attachments
    ]
    return "\n\nAttachments:\n" + "\n".join(lines)


def format_checks(checks: Sequence[str]) -> str:
    if not checks:
        return ""
    lines = [f"{index}. {check}" for index, check in enumerate(checks, start=1)]
    return "\n\nEvaluation Checks:\n" + "\n".join(lines)


def render_app_prompt(
    brief: str,
    attachments: Sequence[Attachment],
    checks: Sequence[str],
) -> str:
    """Build the user prompt asking for a single self-contained HTML document."""

    return (
        "You are an expert web developer. Create a COMPLETE, PRODUCTION-READY "
        "single-page HTML app.\n\n"
        f"BRIEF: {brief}"
        f"{format_attachments(attachments)}"
        f"{format_checks(checks)}\n\n"
        "REQUIREMENTS:\n"
        "1) One self-contained HTML file (CSS in <style>, JS in <script>)\n"
        "2) CDN libs only from https://cdnjs.cloudflare.com\n"
        "3) Must be functional (no placeholders)\n"
        "4) Good error handling\n"
        "5) Semantic HTML5\n"
        "6) Responsive & mobile-friendly\n"
        "7) Clear comments\n"
        "8) Professional UI\n\n"
        "OUTPUT:\n"
        f"- Start with {DOCUMENT_START}\n"
        f"- End with {DOCUMENT_END}\n"
        "- Output ONLY the HTML (no markdown/code fences)."
    )


def render_readme_prompt(brief: str, repo_name: str) -> str:
    return (
        "Create a professional README.md for:\n\n"
        f"Repository: {repo_name}\n"
        f"Project Brief: {brief}\n\n"
        "Sections:\n"
        "# Project Title\n"
        "## Features\n"
        "## Setup Instructions\n"
        "## Usage Guide\n"
        "## Code Structure\n"
        "## Technologies Used\n"
        "## License (MIT)\n\n"
        "Output ONLY Markdown; no extra text."
    )


def render_fallback_html(brief: str) -> str:
    """
    Minimal page published when the LLM cannot produce a usable document.

    The brief is HTML-escaped so arbitrary text cannot break the markup.
    """

    return f"""{DOCUMENT_START}
<html lang="en">
<head>
<meta charset="utf-8"/><meta name="viewport" content="width=device-width,initial-scale=1"/>
<title>Fallback App</title>
<link rel="stylesheet" href="https://cdnjs.cloudflare.com/ajax/libs/bootstrap/5.3.2/css/bootstrap.min.css"/>
<style>body{{padding:2rem}}</style>
</head>
<body class="container">
  <h1 class="mb-3">Fallback App</h1>
  <p class="text-muted">LLM generation failed; using fallback to continue deployment.</p>
  <div class="card"><div class="card-body">
    <h5 class="card-title">Brief</h5>
    <pre style="white-space:pre-wrap">{html.escape(brief)}</pre>
  </div></div>
<script src="https://cdnjs.cloudflare.com/ajax/libs/bootstrap/5.3.2/js/bootstrap.bundle.min.js"></script>
</body>
{DOCUMENT_END}"""


def render_fallback_readme(repo_name: str, brief: str) -> str:
    return (
        f"# {repo_name}\n\n"
        "Auto-generated fallback README.\n\n"
        "## Brief\n\n"
        f"{brief}\n\n"
        "## License\n\n"
        "MIT"
    )


def commit_message(path: str, round_number: int) -> str:
    """First round adds the file; later rounds record the revision."""

    if round_number <= 1:
        return f"Add {path}"
    return f"Update {path} - Round {round_number}"
