"""
FastAPI dependency functions.

Every long-lived service is built once in the application lifespan and kept in
app_state; these getters hand them to the routers, and tests replace them
through app.dependency_overrides.
"""

from src.models.manager import ModelManager
from src.models.services.storage import StorageUploader
from src.pipeline.creative.board import BoardDirector
from src.pipeline.creative.imaging import ImageRequester
from src.pipeline.creative.orchestrator import PipelineOrchestrator
from src.pipeline.image_jobs.client import ImageJobClient


def _state(name: str):
    from ..main import app_state
    return app_state[name]


def get_model_manager() -> ModelManager:
    return _state("model_manager")


def get_orchestrator() -> PipelineOrchestrator:
    return _state("orchestrator")


def get_image_job_client() -> ImageJobClient:
    return _state("image_job_client")


def get_image_requester() -> ImageRequester:
    return _state("image_requester")


def get_board_director() -> BoardDirector:
    return _state("board_director")


def get_uploader() -> StorageUploader:
    return _state("uploader")
