"""
Theme -> role prompt lookup.

The registry is built once from themes.yaml and only read afterwards, so a
resolve() never touches the filesystem.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union
import logging

import yaml

from .types import ALL_ROLES, ImagePath, Role, RolePromptSet

logger = logging.getLogger(__name__)


class RolePromptRegistry:
    def __init__(self, themes: Mapping[str, RolePromptSet], default_theme: str):
        if default_theme not in themes:
            raise ValueError(f"Default theme '{default_theme}' is not defined")
        self._themes = dict(themes)
        default = self._themes[default_theme]
        # distinct object so callers can tell a fallback from an explicit request
        self._fallback = RolePromptSet(
            prompts=default.prompts,
            branch=default.branch,
            theme_id=default.theme_id,
            image_path=default.image_path,
            is_default=True,
        )

    @classmethod
    def from_yaml(cls, path: Union[Path, str]) -> "RolePromptRegistry":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Themes file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RolePromptRegistry":
        themes_cfg = data.get("themes") or {}
        if not themes_cfg:
            raise ValueError("Themes config has no 'themes'")

        themes = {theme_id: _build_prompt_set(theme_id, cfg) for theme_id, cfg in themes_cfg.items()}
        default_theme = data.get("default") or next(iter(themes))
        return cls(themes, default_theme)

    @property
    def theme_ids(self):
        return sorted(self._themes)

    def resolve(self, theme_id: Optional[str]) -> RolePromptSet:
        if theme_id and theme_id in self._themes:
            return self._themes[theme_id]
        logger.info(f"Unknown theme '{theme_id}', using default '{self._fallback.theme_id}'")
        return self._fallback


def _build_prompt_set(theme_id: str, cfg: Dict[str, Any]) -> RolePromptSet:
    prompts_cfg = cfg.get("prompts") or {}
    unknown = set(prompts_cfg) - {r.value for r in ALL_ROLES}
    if unknown:
        raise ValueError(f"Theme '{theme_id}' has unknown roles: {sorted(unknown)}")

    prompts = {role: (prompts_cfg.get(role.value) or "").strip() for role in ALL_ROLES}
    return RolePromptSet(
        prompts=MappingProxyType(prompts),
        branch=bool(cfg.get("branch", False)),
        theme_id=theme_id,
        image_path=ImagePath(cfg.get("image_path", ImagePath.SINGLE_SHOT.value)),
    )


def prompt_set_from_mapping(prompts: Mapping[str, str], branch: bool, theme_id: str = "custom", image_path: ImagePath = ImagePath.SINGLE_SHOT) -> RolePromptSet:
    """Prompt set supplied by the caller instead of a registered theme."""
    return _build_prompt_set(theme_id, {
        "prompts": dict(prompts),
        "branch": branch,
        "image_path": image_path.value,
    })
