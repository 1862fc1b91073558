"""
Function-call parsing for the board director.

The model is offered two tools; whatever it answers is validated here and
turned into a GenerateImage or EditImage. Anything else is an UnknownActionError.
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError as SchemaError

from src.models.providers.base import FunctionCall
from ..errors import UnknownActionError
from .types import Action, EditImage, GenerateImage


class GenerateImageArgs(BaseModel):
    prompt: str


class EditImageArgs(BaseModel):
    prompt: str
    imageUrl: Optional[str] = None


ACTION_TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "generate_image",
            "description": "Generate an image based on the provided prompt",
            "parameters": {
                "type": "object",
                "properties": {
                    "prompt": {"type": "string", "description": "High-quality prompt for the image model"},
                },
                "required": ["prompt"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "edit_image",
            "description": "Generate a new image based on an existing image and prompt",
            "parameters": {
                "type": "object",
                "properties": {
                    "prompt": {"type": "string", "description": "Refined prompt for editing the image"},
                    "imageUrl": {"type": "string", "description": "URL of the source image"},
                },
                "required": ["prompt", "imageUrl"],
            },
        },
    },
]


def parse_action(call: Optional[FunctionCall], source_image_url: Optional[str] = None) -> Action:
    """
    Validate a provider function call.

    source_image_url is used for edit_image when the model left imageUrl out,
    which happens when the board itself is the thing to edit.
    """
    if call is None:
        raise UnknownActionError("Model returned no action")

    try:
        args = json.loads(call.arguments or "{}")
    except json.JSONDecodeError as e:
        raise UnknownActionError(f"Arguments for '{call.name}' are not valid JSON: {e}", call.name) from e
    if not isinstance(args, dict):
        raise UnknownActionError(f"Arguments for '{call.name}' must be an object", call.name)

    try:
        if call.name == "generate_image":
            parsed = GenerateImageArgs.model_validate(args)
            return GenerateImage(prompt=parsed.prompt)
        if call.name == "edit_image":
            parsed = EditImageArgs.model_validate(args)
            image_url = source_image_url or parsed.imageUrl
            if not image_url:
                raise UnknownActionError("edit_image without a source image", call.name)
            return EditImage(prompt=parsed.prompt, image_url=image_url)
    except SchemaError as e:
        raise UnknownActionError(f"Invalid arguments for '{call.name}': {e}", call.name) from e

    raise UnknownActionError(f"Unknown action '{call.name}'", call.name)
