import logging
from functools import lru_cache

import uvicorn
from fastapi import BackgroundTasks, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import Settings, configure_logging
from app.github_utils import GitHubPublisher
from app.llm_generator import CodeGenerator
from app.orchestrator import BuildOrchestrator
from app.schemas import BuildRequest
from app.task_store import create_task_store

logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_orchestrator() -> BuildOrchestrator:
    settings = get_settings()
    return BuildOrchestrator(
        generator=CodeGenerator(settings.gemini_api_key, settings.gemini_model),
        publisher=GitHubPublisher(settings.github_token, settings.github_user),
        store=create_task_store(settings.task_store_path),
        settle_delay=settings.settle_delay_seconds,
    )


configure_logging(get_settings().log_level)

app = FastAPI(title="LLM Pages App Deployer")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def _accept(data: BuildRequest, background_tasks: BackgroundTasks, settings: Settings,
            orchestrator: BuildOrchestrator, allowed_rounds: tuple):
    """
    Validate a build/revise request and queue its pipeline.

    The secret and round are checked before anything else happens; once they
    pass the caller gets an immediate acknowledgement and the slow LLM/GitHub
    work continues in the background. Its outcome is reported only through
    the evaluation callback.
    """
    logger.info(f"🔐 Verifying secret for task: {data.task}, round: {data.round}")
    if not settings.student_secret or data.secret != settings.student_secret:
        logger.warning("❌ Invalid secret provided")
        return JSONResponse(status_code=401, content={"error": "Invalid secret"})

    if data.round not in allowed_rounds:
        logger.warning(f"❌ Invalid round {data.round} for task {data.task}")
        return JSONResponse(status_code=400, content={"error": f"Invalid round: {data.round}"})

    background_tasks.add_task(orchestrator.run, data)
    logger.info(f"✅ Accepted task {data.task} round {data.round}")
    return {"message": "accepted", "task": data.task, "round": data.round}


@app.get("/")
def health():
    return {"status": "API is running", "message": "POST to /api/build to deploy apps"}


@app.post("/api/build")
def build_app(
    data: BuildRequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
):
    """Build (round 1) or revise (round 2) an app, selected by the round field."""
    return _accept(data, background_tasks, settings, orchestrator, allowed_rounds=(1, 2))


@app.post("/api/revise")
def revise_app(
    data: BuildRequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
):
    return _accept(data, background_tasks, settings, orchestrator, allowed_rounds=(2,))


def run() -> None:
    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    run()
