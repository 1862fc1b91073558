"""
FastAPI application entry point.

Builds the pipeline services once at startup, wires the routers, and renders
every PipelineError as an APIError body with the error's own status code.
"""

import logging
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Union

import httpx

from .models.common import APIError
from .routers import health, image_jobs, images, pipeline
from src.models.manager import ModelManager
from src.models.services.storage import StorageUploader
from src.pipeline.creative.board import BoardDirector
from src.pipeline.creative.executor import AgentStepExecutor
from src.pipeline.creative.imaging import ImageRequester
from src.pipeline.creative.orchestrator import PipelineOrchestrator
from src.pipeline.creative.registry import RolePromptRegistry
from src.pipeline.creative.retry import RetryingImageCaller
from src.pipeline.errors import PipelineError
from src.pipeline.image_jobs.client import ImageJobClient
from src.pipeline.image_jobs.types import ImageJobSettings

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent / "config"

# Global application state
app_state = {}


def build_services(config_path: Union[Path, str], http_client: Optional[httpx.AsyncClient] = None) -> dict:
    """Construct every long-lived service from one config file."""
    config_path = Path(config_path)
    model_manager = ModelManager(config_path=config_path)

    pipeline_cfg = model_manager.section("pipeline")
    registry = RolePromptRegistry.from_yaml(config_path.parent / pipeline_cfg.get("themes_path", "themes.yaml"))

    uploader = StorageUploader.from_config(model_manager.section("storage"), http_client=http_client)
    job_client = ImageJobClient(
        ImageJobSettings.from_config(model_manager.section("image_jobs")),
        http_client=http_client,
        uploader=uploader,
    )
    image_requester = ImageRequester(
        model_manager,
        caller=RetryingImageCaller(
            max_retries=int(pipeline_cfg.get("image_max_retries", 3)),
            base_delay=float(pipeline_cfg.get("image_base_delay_s", 1.0)),
        ),
        deadline=float(pipeline_cfg.get("image_deadline_s", 60.0)),
    )

    return {
        "model_manager": model_manager,
        "registry": registry,
        "uploader": uploader,
        "image_job_client": job_client,
        "image_requester": image_requester,
        "orchestrator": PipelineOrchestrator(AgentStepExecutor(model_manager), image_requester, registry, job_client=job_client),
        "board_director": BoardDirector(model_manager, image_requester, uploader=uploader),
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Expensive resources (provider clients, HTTP pools) are created once at
    startup and closed at shutdown.
    """
    print("1. Starting SketchForge API server...")

    http_client = httpx.AsyncClient(timeout=30.0)
    app_state.update(build_services(CONFIG_DIR / "config.yaml", http_client=http_client))
    app_state["http_client"] = http_client

    print(f"2. Services initialized, themes: {', '.join(app_state['registry'].theme_ids)}")
    print("3. API server ready to accept requests")

    yield  # Server runs here

    print("4. Shutting down SketchForge API server...")
    await app_state["model_manager"].cleanup()
    await http_client.aclose()
    app_state.clear()


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error_code}: {exc.message}")
    body = APIError(error=exc.message, error_code=exc.error_code, details=exc.details or None)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = APIError(
        error="Invalid request body",
        error_code="validation_error",
        details={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]},
    )
    return JSONResponse(status_code=400, content=body.model_dump(mode="json"))


def create_app() -> FastAPI:
    """
    Factory function to create and configure the FastAPI application.
    """
    app = FastAPI(
        title="SketchForge API",
        description="Whiteboard sketch to generated image: creative role pipeline and signed image jobs",
        version="1.0.0",
        lifespan=lifespan
    )

    # Configure CORS middleware for frontend communication
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Common frontend ports
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(pipeline.router, prefix="/pipeline", tags=["pipeline"])
    app.include_router(image_jobs.router, prefix="/image-job", tags=["image-jobs"])
    app.include_router(images.router, tags=["images"])

    @app.get("/")
    async def root():
        """Root endpoint with basic API information."""
        return {
            "name": "SketchForge API",
            "version": "1.0.0",
            "status": "operational",
            "endpoints": {
                "health": "/health",
                "pipeline": "/pipeline",
                "image_jobs": "/image-job",
                "image": "/image",
                "upload": "/upload",
                "board": "/board/generate",
                "docs": "/docs",
            }
        }

    return app


# Create the FastAPI app instance
app = create_app()
