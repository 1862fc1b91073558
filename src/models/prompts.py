from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List
import yaml
import jinja2
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptConfig:
    """One versioned prompt: compiled templates plus call params that travel with it."""
    name: str
    version: str
    system: jinja2.Template = field(repr=False)
    user: jinja2.Template = field(repr=False)
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f"{self.name}@{self.version}"


class PromptManager:
    """
    Loads prompts laid out as <prompts_dir>/<name>/<version>/{system.j2,user.j2,config.yaml}
    and addressed as "name@version", e.g. "board/direct@v1".
    """

    def __init__(self, prompts_dir: Path):
        self.prompts_dir = Path(prompts_dir)
        if not self.prompts_dir.exists():
            raise FileNotFoundError(f"Prompts dir not found: {self.prompts_dir}")

        self.jinja_env = jinja2.Environment(
            undefined=jinja2.StrictUndefined, #'is defined' still works
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._cache: Dict[str, PromptConfig] = {}

    def load_prompt(self, prompt_ref: str) -> PromptConfig:
        if prompt_ref in self._cache:
            return self._cache[prompt_ref]

        if '@' not in prompt_ref:
            raise ValueError(f"Invalid prompt reference: {prompt_ref}")

        name, version = prompt_ref.rsplit('@', 1)
        prompt_path = self.prompts_dir / name / version
        if not prompt_path.exists():
            raise FileNotFoundError(f"Prompt not found: {prompt_path}")

        config = self._read_config(prompt_path)
        params = dict(config.get('params') or {})
        if config.get('stop_sequences'):
            params.setdefault('stop', list(config['stop_sequences']))

        prompt_config = PromptConfig(
            name=name,
            version=version,
            system=self._compile(prompt_path, "system.j2"),
            user=self._compile(prompt_path, "user.j2"),
            params=params,
        )

        self._cache[prompt_ref] = prompt_config
        logger.info(f"Loaded prompt: {prompt_ref}")
        return prompt_config

    def render(self, prompt_ref: str, variables: Dict[str, Any]) -> List[Dict[str, str]]:
        config = self.load_prompt(prompt_ref)
        logger.debug(f"Rendering {config.ref} with variables {sorted(variables)}")

        try:
            system_content = config.system.render(**variables)
            user_content = config.user.render(**variables)
        except jinja2.UndefinedError as e:
            raise ValueError(f"Missing required variable in prompt {prompt_ref}: {e}") from e

        return [
            {"role": "system", "content": system_content},
            {"role": "user", "content": user_content},
        ]

    def params_for(self, prompt_ref: str) -> Dict[str, Any]:
        return dict(self.load_prompt(prompt_ref).params)

    def _read_config(self, prompt_path: Path) -> dict:
        config_path = prompt_path / "config.yaml"
        if not config_path.exists():
            return {}
        with open(config_path) as f:
            return yaml.safe_load(f) or {}

    def _compile(self, prompt_path: Path, template_name: str) -> jinja2.Template:
        template_path = prompt_path / template_name
        if not template_path.exists():
            raise FileNotFoundError(f"Template file not found: {template_path}")
        try:
            return self.jinja_env.from_string(template_path.read_text())
        except jinja2.TemplateSyntaxError as e:
            raise ValueError(f"Invalid template {template_path}: {e}") from e

    def clear_cache(self, prompt_ref: Optional[str] = None):
        if prompt_ref:
            self._cache.pop(prompt_ref, None)
        else:
            self._cache.clear()
        logger.info("Cleared prompt cache")
