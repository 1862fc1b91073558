from typing import Optional
import asyncio
import logging

from src.models.manager import ModelManager
from src.models.providers.base import ModelError
from ..errors import ImageTimeoutError, UpstreamError, ValidationError
from .retry import RetryingImageCaller

logger = logging.getLogger(__name__)

IMAGE_MODES = ("generate", "edit")


class ImageRequester:
    """
    Single-shot image path: one provider call, retried with backoff, under a hard deadline.

    The deadline covers all attempts together, so a hung provider surfaces as
    ImageTimeoutError instead of a pending request.
    """

    def __init__(self, manager: ModelManager, caller: Optional[RetryingImageCaller] = None, task: str = "image_generation", deadline: float = 60.0):
        self.model_manager = manager
        self.caller = caller or RetryingImageCaller()
        self.task = task
        self.deadline = deadline

    async def generate(self, prompt: str, mode: str = "generate", src_image_url: Optional[str] = None) -> str:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt required")
        if mode not in IMAGE_MODES:
            raise ValidationError(f"Unknown image mode: {mode}")
        if mode == "edit" and not src_image_url:
            raise ValidationError("srcImageUrl required for edit mode")

        logger.info(f"Requesting image ({mode}), prompt: {prompt[:120]}")

        async def attempt() -> str:
            response = await self.model_manager.generate_image(
                self.task, prompt, mode=mode, src_image_url=src_image_url
            )
            return response.url

        try:
            return await asyncio.wait_for(self.caller.call(attempt), timeout=self.deadline)
        except asyncio.TimeoutError as e:
            raise ImageTimeoutError(self.deadline) from e
        except ModelError as e:
            raise UpstreamError(f"Image generation failed: {e}") from e
