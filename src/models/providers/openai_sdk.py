from __future__ import annotations
from typing import Dict, Any, Optional, List
import time
from os import getenv
from pydantic import ValidationError

from openai import AsyncOpenAI
from openai import APIError, APITimeoutError, APIConnectionError
from tenacity import retry, stop_after_attempt, wait_exponential_jitter, retry_if_exception

from .base import (
    ModelProvider, ChatRequest, ModelResponse, ImageRequest, ImageResponse, FunctionCall,
    ModelError, ModelRetryable, ModelTimeout,
)
from ...utils.image_converter import to_image_url

RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}

# Define retryable OpenAI exceptions
def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (APITimeoutError, APIConnectionError)):
        return True
    if isinstance(exc, APIError):
        if getattr(exc, 'status_code', None) in RETRYABLE_STATUS:
            return True
    if isinstance(exc, ModelRetryable):
        return True
    return False

class OpenAIProvider(ModelProvider):
    """Chat and image generation against any OpenAI-compatible endpoint (OpenAI, aihubmix, OpenRouter)."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, api_key_env: str = "OPENAI_API_KEY", default_headers: Optional[Dict[str, str]] = None, timeout: float = 60.0, **kwargs):
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or getenv(api_key_env),
            default_headers=default_headers or {},
            timeout=timeout,
            **kwargs
        )
        self.base_url = base_url
        self.timeout = timeout

    def _format_messages(self, messages: List[Dict[str, Any]], images: List[Any]) -> List[Dict[str, Any]]:
        """Attach images to the first user message using the content array format"""
        if not images:
            return messages

        image_contents = []
        for img in images:
            try:
                image_contents.append({
                    "type": "image_url",
                    "image_url": {"url": to_image_url(img), "detail": "high"}
                })
            except Exception as e:
                raise ModelError(f"Failed to convert image for OpenAI: {e}") from e

        processed_messages = []
        images_added = False

        for msg in messages:
            if msg.get("role") == "user" and not images_added:
                processed_msg = msg.copy()
                content_array = [{"type": "text", "text": msg.get("content", "")}]
                content_array.extend(image_contents)
                processed_msg["content"] = content_array
                processed_messages.append(processed_msg)
                images_added = True
            else:
                processed_messages.append(msg)

        return processed_messages

    @retry(reraise=True, wait=wait_exponential_jitter(initial=0.5, max=4), stop=stop_after_attempt(3), retry=retry_if_exception(_is_retryable))
    async def chat(self, req: ChatRequest) -> ModelResponse:
        params = dict(req.params or {})

        response_format = None
        if req.schema is not None:
            response_format = {
                "type": "json_schema",
                "json_schema": {
                    "name": "response_schema",
                    "schema": req.schema.model_json_schema()
                }
            }

        messages = self._format_messages(req.messages, req.images or [])

        completion_params = {
            "model": req.model,
            "messages": messages,
            **params
        }

        if response_format:
            completion_params["response_format"] = response_format

        if req.tools:
            completion_params["tools"] = req.tools

        if req.extra_body:
            completion_params["extra_body"] = req.extra_body

        t0 = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(**completion_params)
        except APITimeoutError as e:
            raise ModelTimeout(f"OpenAI timeout: {e}") from e
        except APIError as e:
            msg = f"OpenAI API error: {e}"
            if _is_retryable(e):
                raise ModelRetryable(msg) from e
            raise ModelError(msg) from e
        except Exception as e:
            raise ModelError(f"OpenAI provider error: {e}") from e

        dt = time.perf_counter() - t0

        # an empty choices list is well-formed, a missing one is not
        try:
            choices = response.choices
        except AttributeError as e:
            raise ModelError(f"Invalid response structure from OpenAI API: {e}") from e
        if choices is None:
            raise ModelError("Invalid response structure from OpenAI API: no choices")

        content = ""
        function_call = None
        if choices:
            message = getattr(choices[0], "message", None)
            if message is None:
                raise ModelError("Invalid response structure from OpenAI API: choice without message")
            content = message.content or ""
            function_call = self._extract_function_call(message)

        meta = {
            "provider": "openai",
            "model": getattr(response, 'model', req.model),
            "latency": dt,
            "base_url": self.base_url or "https://api.openai.com/v1",
            "timeout": self.timeout
        }

        usage = getattr(response, 'usage', None)
        if usage:
            meta["usage"] = usage.model_dump() if hasattr(usage, "model_dump") else {
                "prompt_tokens": getattr(usage, 'prompt_tokens', None),
                "completion_tokens": getattr(usage, 'completion_tokens', None),
                "total_tokens": getattr(usage, 'total_tokens', None)
            }

        if choices:
            meta["finish_reason"] = getattr(choices[0], 'finish_reason', None)

        if hasattr(response, 'id'):
            meta["id"] = response.id

        parsed = None
        if req.schema is not None and content:
            try:
                parsed = req.schema.model_validate_json(content)
            except ValidationError as ve:
                # keep the raw content, let the caller decide
                meta["validation_error"] = str(ve)

        return ModelResponse(content=content, raw=response, meta=meta, parsed=parsed, function_call=function_call)

    @staticmethod
    def _extract_function_call(message: Any) -> Optional[FunctionCall]:
        tool_calls = getattr(message, "tool_calls", None) or []
        for call in tool_calls:
            fn = getattr(call, "function", None)
            if fn is not None and getattr(fn, "name", None):
                return FunctionCall(name=fn.name, arguments=fn.arguments or "")
        # legacy function_call field, still returned by some gateways
        legacy = getattr(message, "function_call", None)
        if legacy is not None and getattr(legacy, "name", None):
            return FunctionCall(name=legacy.name, arguments=legacy.arguments or "")
        return None

    async def generate_image(self, req: ImageRequest) -> ImageResponse:
        params = {"n": 1, **(req.params or {})}
        extra_body = None
        if req.mode == "edit":
            if not req.src_image_url:
                raise ModelError("src_image_url required for edit mode")
            extra_body = {"image_url": req.src_image_url}

        t0 = time.perf_counter()
        try:
            result = await self.client.images.generate(
                model=req.model,
                prompt=req.prompt,
                extra_body=extra_body,
                **params
            )
        except APITimeoutError as e:
            raise ModelTimeout(f"OpenAI image timeout: {e}") from e
        except APIError as e:
            msg = f"OpenAI image API error: {e}"
            if _is_retryable(e):
                raise ModelRetryable(msg) from e
            raise ModelError(msg) from e
        except Exception as e:
            raise ModelError(f"OpenAI image provider error: {e}") from e

        data = getattr(result, "data", None) or []
        first = data[0] if data else None
        url = getattr(first, "url", None) if first is not None else None
        if not url and first is not None and getattr(first, "b64_json", None):
            url = f"data:image/png;base64,{first.b64_json}"
        if not url:
            raise ModelError("No image returned")

        meta = {"provider": "openai", "model": req.model, "mode": req.mode, "latency": time.perf_counter() - t0}
        return ImageResponse(url=url, raw=result, meta=meta)

    async def health_check(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except Exception:
            return False

    async def cleanup(self) -> None:
        await self.client.close()
