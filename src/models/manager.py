from __future__ import annotations
from typing import Optional, Dict, Any, List, Type, Union
from pathlib import Path
from dataclasses import dataclass
from enum import Enum
import yaml
import time
import logging
from contextlib import asynccontextmanager

from pydantic import BaseModel

from .prompts import PromptManager
from .providers.base import ChatRequest, ModelResponse, ImageRequest, ImageResponse, ModelError, ImageRef
from .providers.openai_sdk import OpenAIProvider

logger = logging.getLogger(__name__)


class Provider(Enum):
    OPENAI = "openai"

class TaskKind(Enum):
    CHAT = "chat"
    IMAGE = "image"

@dataclass(frozen=True)
class TaskConfig:
    provider: str
    model: str
    params: Dict[str, Any]
    kind: TaskKind = TaskKind.CHAT
    prompt_ref: Optional[str] = None #e.g. "board/direct@v1"


class ModelManager:
    def __init__(self, config_path: Union[Path, str], prompts_dir: Optional[Path] = None):
        self.config_path = Path(config_path)
        self.config = self._load_config()
        self._providers = {}
        self._stats = {} #performance tracking

        if prompts_dir:
            self.prompts = PromptManager(prompts_dir)
        else:
            src_root = Path(__file__).parents[1]
            self.prompts = PromptManager(src_root / "prompts")

    def _load_config(self) -> Dict:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config not found: {self.config_path}")
        with open(self.config_path) as f:
            config = yaml.safe_load(f) or {}

        if 'providers' not in config:
            raise ValueError("Config missing 'providers'")
        if 'tasks' not in config:
            raise ValueError("Config missing 'tasks'")

        for task_name, task_cfg in config['tasks'].items():
            if 'provider' not in task_cfg:
                raise ValueError(f"Task '{task_name}' missing provider")
            if 'model' not in task_cfg:
                raise ValueError(f"Task '{task_name}' missing model")
            if task_cfg['provider'] not in config['providers']:
                raise ValueError(f"Task '{task_name}' references unknown provider '{task_cfg['provider']}'")
            kind = task_cfg.get('kind', TaskKind.CHAT.value)
            if kind not in {k.value for k in TaskKind}:
                raise ValueError(f"Task '{task_name}' has unknown kind '{kind}'")

        return config

    def section(self, name: str) -> Dict[str, Any]:
        """Return an optional top-level config section (image_jobs, storage, themes...)"""
        return dict(self.config.get(name) or {})

    def task_config(self, task: str) -> TaskConfig:
        if task not in self.config["tasks"]:
            raise ValueError(f"Unknown task: {task}")
        cfg = self.config["tasks"][task]
        return TaskConfig(
            provider=cfg["provider"],
            model=cfg["model"],
            params=dict(cfg.get("params") or {}),
            kind=TaskKind(cfg.get("kind", TaskKind.CHAT.value)),
            prompt_ref=cfg.get("prompt_ref"),
        )

    def _get_provider(self, provider_name: str):
        if provider_name in self._providers:
            return self._providers[provider_name]
        if provider_name not in self.config['providers']:
            raise ValueError(f"Unknown provider: {provider_name}")

        provider_cfg = self.config["providers"][provider_name]
        provider_type = provider_cfg["type"]
        settings = provider_cfg.get("settings", {}) or {}

        if provider_type == Provider.OPENAI.value:
            provider = OpenAIProvider(**settings)
        else:
            raise ValueError(f"Unknown provider type: {provider_type}")
        self._providers[provider_name] = provider
        logger.info(f"initialized provider: {provider_name}")
        return provider

    async def call(self, task: str, prompt_ref: Optional[str] = None, variables: Optional[Dict[str, Any]] = None, schema: Optional[Type[BaseModel]] = None, images: Optional[List[ImageRef]] = None, messages_override: Optional[List[Dict[str, Any]]] = None, tools: Optional[List[Dict[str, Any]]] = None, **params_override) -> ModelResponse:
        start_time = time.perf_counter()
        task_cfg = self.task_config(task)
        if task_cfg.kind is not TaskKind.CHAT:
            raise ValueError(f"Task '{task}' is not a chat task")

        prompt_params: Dict[str, Any] = {}
        if messages_override is not None:
            # role steps carry their own system prompt, no template involved
            rendered = messages_override
        else:
            ref = prompt_ref or task_cfg.prompt_ref
            if not ref:
                raise ValueError(f"Task '{task}' needs a prompt_ref or messages_override")
            rendered = self.prompts.render(ref, variables or {})
            prompt_params = self.prompts.params_for(ref)

        # task defaults, then prompt version params, then per-call overrides
        params = {**task_cfg.params, **prompt_params, **params_override}

        request = ChatRequest(
            model=task_cfg.model,
            messages=rendered,
            images=images,
            params=params,
            schema=schema,
            tools=tools,
        )

        provider = self._get_provider(task_cfg.provider)
        try:
            response = await provider.chat(request)
        except ModelError:
            self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=False)
            raise
        self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=True)
        return response

    async def generate_image(self, task: str, prompt: str, mode: str = "generate", src_image_url: Optional[str] = None, **params_override) -> ImageResponse:
        start_time = time.perf_counter()
        task_cfg = self.task_config(task)
        if task_cfg.kind is not TaskKind.IMAGE:
            raise ValueError(f"Task '{task}' is not an image task")

        request = ImageRequest(
            model=task_cfg.model,
            prompt=prompt,
            mode=mode,
            src_image_url=src_image_url,
            params={**task_cfg.params, **params_override},
        )
        provider = self._get_provider(task_cfg.provider)
        try:
            response = await provider.generate_image(request)
        except ModelError:
            self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=False)
            raise
        self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=True)
        return response

    def _track_stats(self, task: str, latency_ms: float, success: bool):
        if task not in self._stats:
            self._stats[task] = {
                'total_calls': 0,
                'successful_calls': 0,
                'total_latency_ms': 0
            }

        stats = self._stats[task]
        stats['total_calls'] += 1
        if success:
            stats['successful_calls'] += 1
            stats['total_latency_ms'] += latency_ms

    def get_stats(self, task: Optional[str] = None) -> Dict:
        if task:
            return self._stats.get(task, {})
        return self._stats

    async def health_check(self) -> Dict[str, bool]:
        results = {}
        for name in self.config["providers"]:
            try:
                results[name] = await self._get_provider(name).health_check()
            except Exception as e:
                logger.warning(f"Health check failed for {name}: {e}")
                results[name] = False
        return results

    async def cleanup(self):
        for name, provider in self._providers.items():
            try:
                await provider.cleanup()
                logger.info(f"Cleaned up provider: {name}")
            except Exception as e:
                logger.error(f"Cleanup failed for {name}: {e}")

        self._providers.clear()

    @asynccontextmanager
    async def session(self):
        try:
            yield self
        finally:
            await self.cleanup()
