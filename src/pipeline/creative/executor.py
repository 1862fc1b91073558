from typing import Optional, Sequence
import logging

from src.models.manager import ModelManager
from src.models.providers.base import ImageRef, ModelError
from ..errors import StepFailedError
from .types import Role

logger = logging.getLogger(__name__)


class AgentStepExecutor:
    """One chat completion per run: system prompt + text + optional reference images."""

    def __init__(self, manager: ModelManager, task: str = "role_step"):
        self.model_manager = manager
        self.task = task

    async def run(self, system_prompt: str, text: str, reference_images: Sequence[ImageRef] = (), role: Optional[Role] = None) -> str:
        role_name = role.value if role else None
        messages = [
            {"role": "system", "content": system_prompt or ""},
            {"role": "user", "content": text},
        ]
        logger.info(f"Running step {role_name or self.task} with {len(reference_images)} reference image(s)")

        try:
            response = await self.model_manager.call(
                task=self.task,
                messages_override=messages,
                images=list(reference_images) or None,
            )
        except ModelError as e:
            logger.error(f"Step {role_name} failed: {e}")
            raise StepFailedError(role_name, e) from e

        return response.content or ""
