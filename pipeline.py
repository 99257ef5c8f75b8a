"""Orchestrates one round of one task: generate, publish, resolve, notify."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError

from codegen import APP_PATH, README_PATH, commit_message
from config import Settings
from schemas import CallbackPayload, TaskRequest
from services.github_service import GitHubService, GitHubServiceError
from services.llm_generator import ArtifactBundle, LLMGenerator
from services.notifier import EvaluationNotifier

logger = logging.getLogger("deployer.pipeline")


class Stage(str, Enum):
    VALIDATE_INPUT = "validate_input"
    GENERATE_ARTIFACTS = "generate_artifacts"
    ENSURE_REPOSITORY = "ensure_repository"
    WRITE_FILES = "write_files"
    ENABLE_HOSTING = "enable_hosting"
    RESOLVE_REVISION = "resolve_revision"
    NOTIFY = "notify"
    DONE = "done"
    FAILED = "failed"


class PipelineError(RuntimeError):
    """Base class for fatal pipeline errors; records the stage that failed."""

    stage: Stage = Stage.FAILED

    def __init__(self, message: str, stage: Optional[Stage] = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class TaskValidationError(PipelineError):
    stage = Stage.VALIDATE_INPUT


class PublishError(PipelineError):
    """Repository creation, file write or Pages activation failed."""


class ResolutionError(PipelineError):
    stage = Stage.RESOLVE_REVISION


class NotificationError(PipelineError):
    stage = Stage.NOTIFY


@dataclass
class PipelineOutcome:
    stage: Stage
    repo_url: Optional[str] = None
    commit_sha: Optional[str] = None
    pages_url: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[Stage] = None
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.stage is Stage.DONE


def _describe_validation_error(exc: ValidationError) -> str:
    fields = sorted(
        {".".join(str(part) for part in error["loc"]) or "body" for error in exc.errors()}
    )
    return f"Missing or invalid fields: {', '.join(fields)}"


def validate_task_payload(payload: Optional[Mapping[str, Any]]) -> TaskRequest:
    """Parse a raw request body, raising ``TaskValidationError`` if it is incomplete."""

    if not isinstance(payload, Mapping):
        raise TaskValidationError("Request body must be a JSON object.")
    try:
        return TaskRequest.model_validate(dict(payload))
    except ValidationError as exc:
        raise TaskValidationError(_describe_validation_error(exc)) from exc


class DeploymentPipeline:
    """
    Run the deployment stages strictly in order.

    Generation never fails the run (it degrades to fallback documents). Any
    other error ends the run at the stage where it happened; nothing already
    written to GitHub is rolled back; the next round's create-or-reuse and
    overwrite semantics reconcile it.
    """

    def __init__(
        self,
        settings: Settings,
        generator: LLMGenerator,
        github: GitHubService,
        notifier: EvaluationNotifier,
    ) -> None:
        self.settings = settings
        self.generator = generator
        self.github = github
        self.notifier = notifier

    @classmethod
    def from_settings(cls, settings: Settings) -> "DeploymentPipeline":
        return cls(
            settings,
            generator=LLMGenerator(settings),
            github=GitHubService(settings),
            notifier=EvaluationNotifier.from_settings(settings),
        )

    def close(self) -> None:
        self.github.close()
        self.notifier.close()

    def run(self, task_request: TaskRequest) -> PipelineOutcome:
        stage = Stage.GENERATE_ARTIFACTS
        logger.info(
            "Starting round %s of task %s",
            task_request.round,
            task_request.task,
        )
        try:
            bundle = self.generator.generate_bundle(task_request)

            stage = Stage.ENSURE_REPOSITORY
            repo_info = self._publish_step(stage, self.github.ensure_repo, task_request.task)
            logger.info("Repository URL %s (existed=%s)", repo_info.html_url, repo_info.existed)

            stage = Stage.WRITE_FILES
            self._write_files(task_request, bundle)

            stage = Stage.ENABLE_HOSTING
            pages_url = self._publish_step(
                stage,
                self.github.ensure_pages_enabled,
                task_request.task,
                self.settings.github_default_branch,
            )
            logger.info("Pages URL %s", pages_url)

            stage = Stage.RESOLVE_REVISION
            try:
                commit_sha = self.github.latest_commit_sha(
                    task_request.task,
                    self.settings.github_default_branch,
                )
            except GitHubServiceError as exc:
                raise ResolutionError(str(exc)) from exc
            logger.info("Head commit %s", commit_sha[:7])

            stage = Stage.NOTIFY
            callback = CallbackPayload(
                email=task_request.email,
                task=task_request.task,
                round=task_request.round,
                nonce=task_request.nonce,
                repo_url=repo_info.html_url,
                commit_sha=commit_sha,
                pages_url=pages_url,
            )
            delivered = self.notifier.notify(
                task_request.evaluation_url,
                jsonable_encoder(callback),
                max_attempts=self.settings.notify_max_attempts,
            )
            if not delivered:
                raise NotificationError("Evaluation notification failed after retries")
        except Exception as exc:  # noqa: BLE001
            failed_stage = exc.stage if isinstance(exc, PipelineError) else stage
            logger.exception(
                "Task %s round %s failed during %s: %s",
                task_request.task,
                task_request.round,
                failed_stage.value,
                exc,
            )
            return PipelineOutcome(
                stage=Stage.FAILED,
                error=str(exc) or exc.__class__.__name__,
                failed_stage=failed_stage,
                error_type=exc.__class__.__name__,
            )

        logger.info("Task %s round %s deployed", task_request.task, task_request.round)
        return PipelineOutcome(
            stage=Stage.DONE,
            repo_url=repo_info.html_url,
            commit_sha=commit_sha,
            pages_url=pages_url,
        )

    def _write_files(self, task_request: TaskRequest, bundle: ArtifactBundle) -> None:
        for path, content in ((APP_PATH, bundle.html), (README_PATH, bundle.readme)):
            self._publish_step(
                Stage.WRITE_FILES,
                self.github.write_file,
                task_request.task,
                path,
                content,
                commit_message(path, task_request.round),
            )

    @staticmethod
    def _publish_step(stage: Stage, func, *args):
        try:
            return func(*args)
        except GitHubServiceError as exc:
            raise PublishError(str(exc), stage=stage) from exc
