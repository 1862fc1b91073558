from dataclasses import dataclass
from typing import Optional
import logging

from src.models.manager import ModelManager
from src.models.providers.base import ImageRef, ModelError
from src.models.services.storage import StorageUploader
from src.utils.image_converter import to_image_url
from ..errors import UpstreamError, ValidationError
from .actions import ACTION_TOOLS, parse_action
from .imaging import ImageRequester
from .types import Action, EditImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardResult:
    action: Action
    image_url: str
    original_image_url: str
    persisted: bool

    @property
    def prompt(self) -> str:
        return self.action.prompt


class BoardDirector:
    """
    Direct board-to-image path: one vision call picks an action, then one image call.

    The result is copied to durable storage when possible; a failed copy keeps
    the provider url and reports persisted=False.
    """

    def __init__(self, manager: ModelManager, image_requester: ImageRequester, uploader: Optional[StorageUploader] = None, task: str = "board_director"):
        self.model_manager = manager
        self.image_requester = image_requester
        self.uploader = uploader
        self.task = task

    async def direct(self, board_image: ImageRef, template_id: Optional[str] = None, user_prompt: Optional[str] = None) -> BoardResult:
        try:
            board_url = to_image_url(board_image)
        except (ValueError, OSError) as e:
            raise ValidationError(f"Invalid board image: {e}") from e

        try:
            response = await self.model_manager.call(
                task=self.task,
                variables={"template_id": template_id or "generic", "user_prompt": user_prompt or ""},
                images=[board_url],
                tools=ACTION_TOOLS,
            )
        except ModelError as e:
            raise UpstreamError(f"Board analysis failed: {e}") from e

        action = parse_action(response.function_call, source_image_url=board_url)
        logger.info(f"Board director chose {type(action).__name__}")

        if isinstance(action, EditImage):
            image_url = await self.image_requester.generate(action.prompt, mode="edit", src_image_url=action.image_url)
        else:
            image_url = await self.image_requester.generate(action.prompt)

        if self.uploader is None:
            return BoardResult(action=action, image_url=image_url, original_image_url=image_url, persisted=False)

        stored = await self.uploader.persist(image_url)
        return BoardResult(action=action, image_url=stored.url, original_image_url=image_url, persisted=stored.persisted)
