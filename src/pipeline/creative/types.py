from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Union

from src.models.providers.base import ImageRef


class Role(str, Enum):
    ROLE1 = "role1"
    ROLE2 = "role2"
    ROLE3 = "role3"
    ROLE4 = "role4"
    ROLE5 = "role5"


ALL_ROLES = (Role.ROLE1, Role.ROLE2, Role.ROLE3, Role.ROLE4, Role.ROLE5)
BRANCH_ROLES = (Role.ROLE2, Role.ROLE3, Role.ROLE4)
SYNTHESIS_INPUT_ORDER = (Role.ROLE1, Role.ROLE2, Role.ROLE3, Role.ROLE4)


class ImagePath(str, Enum):
    SINGLE_SHOT = "single_shot"
    JOB = "job"


class PipelineStage(str, Enum):
    ANALYZE = "analyze"
    BRANCH_FANOUT = "branch_fanout"
    SYNTHESIZE = "synthesize"
    IMAGE_REQUEST = "image_request"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class RolePromptSet:
    prompts: Mapping[Role, str]
    branch: bool
    theme_id: str
    image_path: ImagePath = ImagePath.SINGLE_SHOT
    is_default: bool = False

    def prompt_for(self, role: Role) -> str:
        return self.prompts.get(role, "")


# Input types
@dataclass(frozen=True)
class PipelineRequest:
    board_image: ImageRef
    theme_id: Optional[str] = None
    style_image: Optional[ImageRef] = None
    use_style_by_role: Mapping[Role, bool] = field(default_factory=dict)

    def references_for(self, role: Role) -> List[ImageRef]:
        """Style image, if this role is flagged to receive it."""
        if self.style_image is not None and self.use_style_by_role.get(role, False):
            return [self.style_image]
        return []


@dataclass(frozen=True)
class RoleOutput:
    role: Role
    text: str


@dataclass
class PipelineState:
    """Owned by one orchestrator run; outputs are only ever appended."""
    stage: PipelineStage = PipelineStage.ANALYZE
    outputs: Dict[Role, RoleOutput] = field(default_factory=dict)

    def record(self, output: RoleOutput) -> None:
        if output.role in self.outputs:
            raise ValueError(f"{output.role.value} already recorded")
        self.outputs[output.role] = output

    def text(self, role: Role) -> Optional[str]:
        output = self.outputs.get(role)
        return output.text if output else None

    def synthesis_input(self) -> str:
        return "\n".join(
            self.outputs[role].text for role in SYNTHESIS_INPUT_ORDER if role in self.outputs
        )


# Output types
@dataclass(frozen=True)
class PipelineResult:
    outputs: Dict[str, str]
    image_url: str
    image_urls: List[str]
    theme_id: str
    image_path: ImagePath
    job_id: Optional[str] = None


@dataclass(frozen=True)
class GenerateImage:
    prompt: str


@dataclass(frozen=True)
class EditImage:
    prompt: str
    image_url: str


Action = Union[GenerateImage, EditImage]
