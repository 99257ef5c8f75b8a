"""Thin GitHub REST client covering repo creation, file writes and Pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from config import Settings
from utils import build_pages_url, build_repo_url, encode_content

logger = logging.getLogger("deployer.github")


class GitHubServiceError(RuntimeError):
    """Raised when a GitHub API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RepoInfo:
    owner: str
    name: str
    html_url: str
    default_branch: str
    pages_url: Optional[str] = None
    existed: bool = False


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or response.text[:500]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or response.text[:500]


def _name_already_exists(response: httpx.Response) -> bool:
    if response.status_code != 422:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    if not isinstance(body, dict):
        return False
    errors = body.get("errors") or []
    return any(
        "name already exists" in str(error.get("message", ""))
        for error in errors
        if isinstance(error, dict)
    )


class GitHubService:
    """Synchronous wrapper around the subset of the GitHub API the pipeline needs."""

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None) -> None:
        if not settings.github_token or not settings.github_owner:
            raise GitHubServiceError("GITHUB_TOKEN and GITHUB_OWNER must be configured.")

        self.owner = settings.github_owner
        self.html_base_url = settings.github_html_url
        self.pages_host = settings.github_pages_host
        self.default_branch = settings.github_default_branch
        self.description = settings.repo_description
        self._client = client or httpx.Client(base_url=settings.github_base_url)
        self._client.headers.update(
            {
                "Authorization": f"Bearer {settings.github_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    def __enter__(self) -> "GitHubService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise GitHubServiceError(f"GitHub {method} {url} failed: {exc}") from exc

    def _contents_url(self, repo_name: str, path: str) -> str:
        return f"/repos/{self.owner}/{repo_name}/contents/{quote(path, safe='/')}"

    def ensure_repo(self, repo_name: str) -> RepoInfo:
        """
        Create a public, auto-initialised MIT repository named ``repo_name``.

        A 422 "name already exists" answer is treated as success so later
        rounds reuse the repository created by the first one.
        """

        response = self._request(
            "POST",
            "/user/repos",
            json={
                "name": repo_name,
                "description": self.description,
                "private": False,
                "auto_init": True,
                "license_template": "mit",
            },
        )

        if _name_already_exists(response):
            logger.info("Repository %s/%s already exists; reusing it", self.owner, repo_name)
            return RepoInfo(
                owner=self.owner,
                name=repo_name,
                html_url=build_repo_url(self.html_base_url, self.owner, repo_name),
                default_branch=self.default_branch,
                pages_url=build_pages_url(self.owner, repo_name, self.pages_host),
                existed=True,
            )

        if response.is_error:
            raise GitHubServiceError(
                f"GitHub create repo {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )

        data: Dict[str, Any] = response.json()
        logger.info("Created repository %s/%s", self.owner, repo_name)
        return RepoInfo(
            owner=self.owner,
            name=repo_name,
            html_url=data.get("html_url")
            or build_repo_url(self.html_base_url, self.owner, repo_name),
            default_branch=data.get("default_branch") or self.default_branch,
            pages_url=build_pages_url(self.owner, repo_name, self.pages_host),
        )

    def get_file_sha(self, repo_name: str, path: str) -> Optional[str]:
        """Return the blob sha stored for ``path``, or None if the file is absent."""

        response = self._request("GET", self._contents_url(repo_name, path))
        if response.status_code == 404:
            return None
        if response.is_error:
            raise GitHubServiceError(
                f"GitHub get sha {path} {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        data = response.json()
        return data.get("sha") if isinstance(data, dict) else None

    def put_file(
        self,
        repo_name: str,
        path: str,
        content: str,
        message: str,
        sha: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": message, "content": encode_content(content)}
        if sha:
            body["sha"] = sha

        response = self._request("PUT", self._contents_url(repo_name, path), json=body)
        if response.is_error:
            raise GitHubServiceError(
                f"GitHub PUT {path} {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return response.json()

    def write_file(self, repo_name: str, path: str, content: str, message: str) -> Optional[str]:
        """
        Create or replace ``path``, passing the current sha when one exists.

        A stale sha (someone else wrote in between) is rejected by GitHub and
        surfaces as ``GitHubServiceError``; it is not retried here.
        Returns the sha of the newly written blob.
        """

        current_sha = self.get_file_sha(repo_name, path)
        result = self.put_file(repo_name, path, content, message, sha=current_sha)
        logger.info(
            "%s %s in %s/%s",
            "Updated" if current_sha else "Created",
            path,
            self.owner,
            repo_name,
        )
        return (result.get("content") or {}).get("sha")

    def ensure_pages_enabled(self, repo_name: str, branch: Optional[str] = None) -> str:
        """Enable Pages from the branch root; an already configured site is fine."""

        response = self._request(
            "POST",
            f"/repos/{self.owner}/{repo_name}/pages",
            json={
                "build_type": "legacy",
                "source": {"branch": branch or self.default_branch, "path": "/"},
            },
        )
        if response.status_code == 409:
            logger.info("GitHub Pages already enabled for %s/%s", self.owner, repo_name)
        elif response.is_error:
            raise GitHubServiceError(
                f"GitHub enable pages {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return build_pages_url(self.owner, repo_name, self.pages_host)

    def latest_commit_sha(self, repo_name: str, branch: Optional[str] = None) -> str:
        branch = branch or self.default_branch
        response = self._request(
            "GET",
            f"/repos/{self.owner}/{repo_name}/git/refs/heads/{branch}",
        )
        if response.is_error:
            raise GitHubServiceError(
                f"GitHub ref {branch} {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        data = response.json()
        sha = (data.get("object") or {}).get("sha") if isinstance(data, dict) else None
        if not sha:
            raise GitHubServiceError(f"GitHub ref {branch} returned no commit sha.")
        return sha
