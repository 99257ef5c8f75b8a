"""FastAPI entrypoint for the LLM app deployment service."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import ConfigurationError, Settings, get_settings
from pipeline import DeploymentPipeline, TaskValidationError, validate_task_payload
from schemas import DeploymentResponse, ErrorResponse

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
)
logger = logging.getLogger("deployer.api")

PipelineFactory = Callable[[Settings], DeploymentPipeline]

app = FastAPI(
    title="LLM App Deployer",
    version="0.1.0",
    description="Generates a single-page app from a brief, publishes it to GitHub Pages "
    "and notifies the evaluator.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["POST", "GET"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="Request body must be a JSON object.").model_dump(),
    )


def get_pipeline_factory() -> PipelineFactory:
    return DeploymentPipeline.from_settings


def validate_secret(secret: Any, settings: Settings) -> None:
    """Ensure the incoming request secret matches the configured shared secret."""

    if not secret or secret != settings.app_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid secret",
        )


@app.post(
    "/app",
    response_model=DeploymentResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
@app.post("/api/request", include_in_schema=False)
def receive_task(
    payload: Optional[Dict[str, Any]] = Body(None),
    settings: Settings = Depends(get_settings),
    pipeline_factory: PipelineFactory = Depends(get_pipeline_factory),
):
    """
    Run one round of a task synchronously and report the deployment.

    Checks happen in a fixed order before anything leaves the process:
    server configuration, then the shared secret, then the request fields.
    """

    payload = payload or {}
    logger.info(
        "Task received",
        extra={
            "task": payload.get("task"),
            "round": payload.get("round"),
            "has_secret": bool(payload.get("secret")),
        },
    )

    try:
        settings.ensure_complete()
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server missing one or more required settings (see logs)",
        ) from exc

    validate_secret(payload.get("secret"), settings)

    try:
        task_request = validate_task_payload(payload)
    except TaskValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    pipeline = pipeline_factory(settings)
    try:
        outcome = pipeline.run(task_request)
    finally:
        pipeline.close()

    if not outcome.succeeded:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error=outcome.error or "Deployment failed").model_dump(),
        )

    return DeploymentResponse(
        repo_url=outcome.repo_url,
        commit_sha=outcome.commit_sha,
        pages_url=outcome.pages_url,
    )


@app.post("/evaluate", tags=["testing"])
@app.post("/api/evaluate", include_in_schema=False)
def evaluate_echo(payload: Optional[Dict[str, Any]] = Body(None)) -> dict[str, str]:
    """Stand-in evaluation endpoint; use its URL as ``evaluation_url`` when testing."""

    logger.info("Evaluation payload received: %s", payload or {})
    return {"status": "ok"}


@app.get("/healthz", tags=["health"])
def health_check() -> dict[str, str]:
    """Simple liveness check."""

    return {"status": "ok"}
