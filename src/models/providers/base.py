from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional, List, Literal, Union, Type
from pathlib import Path
from pydantic import BaseModel
from PIL import Image

#unified model errors
class ModelError(RuntimeError): ...
class ModelTimeout(ModelError): ...
class ModelRetryable(ModelError): ...

ImageRef = Union[str, Path, bytes, Image.Image] #str must be a url or data uri; Path, raw bytes or PIL image are encoded

@dataclass(frozen=True)
class ChatRequest:
    model: str
    messages: List[Dict[str, Any]]
    params: Dict[str, Any] | None = None
    schema: Optional[Type[BaseModel]] = None #pydantic model -> json schema
    extra_body: Optional[Dict[str, Any]] = None #extra body for openai-compatible gateways
    images: Optional[List[ImageRef]] = None #images to include in the chat
    tools: Optional[List[Dict[str, Any]]] = None #function tools the model may call

@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: str #raw json string as returned by the provider

@dataclass(frozen=True)
class ModelResponse:
    content: str
    raw: Any #provider-native response obj/dict
    meta: Dict[str, Any] #timings, token  counts, model, created_at, etc.
    parsed: Optional[BaseModel] = None #populated if schema was provided
    function_call: Optional[FunctionCall] = None #first tool/function call, if any

@dataclass(frozen=True)
class ImageRequest:
    model: str
    prompt: str
    mode: Literal["generate", "edit"] = "generate"
    src_image_url: Optional[str] = None
    params: Dict[str, Any] | None = None

@dataclass(frozen=True)
class ImageResponse:
    url: str #remote url or data uri
    raw: Any
    meta: Dict[str, Any]

class ModelProvider(ABC):
    @abstractmethod
    async def chat(self, req: ChatRequest) -> ModelResponse:
        raise NotImplementedError

    @abstractmethod
    async def generate_image(self, req: ImageRequest) -> ImageResponse:
        raise NotImplementedError

    @abstractmethod
    async def health_check(self) -> bool:
        raise NotImplementedError

    async def cleanup(self) -> None:
        return None
