from __future__ import annotations

import base64
import json

import pytest

from services.github_service import GitHubServiceError


def _body(request) -> dict:
    return json.loads(request.content)


def test_ensure_repo_creates_public_mit_repo(github_service, fake_github) -> None:
    info = github_service.ensure_repo("demo-task")

    assert info.existed is False
    assert info.html_url == "https://github.com/octo/demo-task"
    assert info.pages_url == "https://octo.github.io/demo-task/"
    body = _body(fake_github.requests[0])
    assert body["name"] == "demo-task"
    assert body["private"] is False
    assert body["auto_init"] is True
    assert body["license_template"] == "mit"


def test_ensure_repo_reuses_existing_repo(github_service, fake_github) -> None:
    fake_github.add_repo("demo-task")

    info = github_service.ensure_repo("demo-task")

    assert info.existed is True
    assert info.html_url == "https://github.com/octo/demo-task"


def test_other_creation_errors_are_fatal(github_service, fake_github) -> None:
    fake_github.fail("create", 422, {"message": "Validation Failed", "errors": [{"message": "bad"}]})

    with pytest.raises(GitHubServiceError) as excinfo:
        github_service.ensure_repo("demo-task")
    assert excinfo.value.status_code == 422
    assert "Validation Failed" in str(excinfo.value)


def test_get_file_sha_distinguishes_missing_from_errors(github_service, fake_github) -> None:
    fake_github.add_repo("demo-task", {"index.html": "old"})

    assert github_service.get_file_sha("demo-task", "index.html") == fake_github.file_sha(
        "demo-task", "index.html"
    )
    assert github_service.get_file_sha("demo-task", "missing.txt") is None

    fake_github.fail("get", 500)
    with pytest.raises(GitHubServiceError):
        github_service.get_file_sha("demo-task", "index.html")


def test_write_file_creates_without_sha(github_service, fake_github) -> None:
    fake_github.add_repo("demo-task")

    sha = github_service.write_file("demo-task", "index.html", "<p>é</p>", "Add index.html")

    _, path, body = fake_github.puts[-1]
    assert path == "index.html"
    assert "sha" not in body
    assert body["message"] == "Add index.html"
    assert base64.b64decode(body["content"]).decode("utf-8") == "<p>é</p>"
    assert sha == fake_github.file_sha("demo-task", "index.html")


def test_write_file_replaces_with_current_sha(github_service, fake_github) -> None:
    fake_github.add_repo("demo-task", {"index.html": "old"})
    previous = fake_github.file_sha("demo-task", "index.html")

    github_service.write_file("demo-task", "index.html", "new", "Update index.html - Round 2")

    _, _, body = fake_github.puts[-1]
    assert body["sha"] == previous
    assert fake_github.file_content("demo-task", "index.html") == "new"


def test_stale_sha_conflict_surfaces(github_service, fake_github) -> None:
    fake_github.add_repo("demo-task", {"index.html": "old"})
    fake_github.fail("put:index.html", 409, {"message": "index.html does not match"})

    with pytest.raises(GitHubServiceError) as excinfo:
        github_service.write_file("demo-task", "index.html", "new", "Update")
    assert excinfo.value.status_code == 409


def test_pages_already_enabled_is_success(github_service, fake_github) -> None:
    fake_github.add_repo("demo-task")

    first = github_service.ensure_pages_enabled("demo-task", "main")
    second = github_service.ensure_pages_enabled("demo-task", "main")

    assert first == second == "https://octo.github.io/demo-task/"
    assert _body(fake_github.requests[0])["source"] == {"branch": "main", "path": "/"}


def test_pages_failure_is_fatal(github_service, fake_github) -> None:
    fake_github.add_repo("demo-task")
    fake_github.fail("pages", 403, {"message": "Resource not accessible"})

    with pytest.raises(GitHubServiceError, match="Resource not accessible"):
        github_service.ensure_pages_enabled("demo-task")


def test_latest_commit_sha_reads_branch_head(github_service, fake_github) -> None:
    repo = fake_github.add_repo("demo-task")

    assert github_service.latest_commit_sha("demo-task", "main") == repo["head"]

    with pytest.raises(GitHubServiceError):
        github_service.latest_commit_sha("demo-task", "gh-pages")
