"""Pydantic request/response models used by the deployment service."""

import re
from typing import List, Literal

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

REPO_NAME_RE = re.compile(r"^[A-Za-z0-9._-]{1,100}$")
HTTP_URL_ADAPTER = TypeAdapter(HttpUrl)


class Attachment(BaseModel):
    """A file referenced by the brief, either a data URI or an absolute URL."""

    name: str = Field(..., min_length=1)
    url: str = Field(
        ...,
        min_length=1,
        description="Data URI or absolute URL pointing to the attachment contents.",
    )


class TaskRequest(BaseModel):
    """Payload accepted at POST /app to run one round of one task."""

    email: str = Field(..., min_length=1)
    secret: str = Field(..., min_length=1)
    task: str = Field(..., min_length=1)
    round: int = Field(1, ge=1)
    nonce: str = Field(..., min_length=1)
    brief: str = Field(..., min_length=1)
    checks: List[str] = Field(default_factory=list)
    evaluation_url: str = Field(..., min_length=1)
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator("task")
    @classmethod
    def _task_is_repo_name(cls, value: str) -> str:
        if not REPO_NAME_RE.match(value) or value in {".", ".."}:
            raise ValueError(
                "task must be a valid repository name (letters, digits, '.', '_' or '-')",
            )
        return value

    @field_validator("evaluation_url")
    @classmethod
    def _evaluation_url_is_http(cls, value: str) -> str:
        # Validate as a URL but keep the caller's exact string for the callback.
        try:
            HTTP_URL_ADAPTER.validate_python(value)
        except ValidationError as exc:
            raise ValueError("evaluation_url must be an http(s) URL") from exc
        return value


class CallbackPayload(BaseModel):
    """Body sent to the external evaluation URL."""

    email: str = Field(..., min_length=1)
    task: str
    round: int
    nonce: str
    repo_url: str
    commit_sha: str
    pages_url: str


class DeploymentResponse(BaseModel):
    """Returned once a round has been published and acknowledged."""

    status: Literal["ok"] = "ok"
    repo_url: str
    commit_sha: str
    pages_url: str


class ErrorResponse(BaseModel):
    """Body returned for rejected requests and failed rounds."""

    error: str
