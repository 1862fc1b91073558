"""
Five-role creative pipeline.

ANALYZE -> (BRANCH_FANOUT)? -> SYNTHESIZE -> IMAGE_REQUEST -> DONE, with FAILED
reachable from every stage. role2-role4 run concurrently when the prompt set
has `branch` on; role5 always sees role1..role4 in that order, whatever order
the fan-out finished in.
"""

from typing import Optional
import asyncio
import logging

from src.utils.image_converter import is_image_reference
from ..errors import ConfigurationError, StepFailedError, UpstreamError, ValidationError
from ..image_jobs.client import ImageJobClient
from ..image_jobs.types import ImageJobRequest, JobMode
from .executor import AgentStepExecutor
from .imaging import ImageRequester
from .registry import RolePromptRegistry
from .types import (
    BRANCH_ROLES, ImagePath, PipelineRequest, PipelineResult, PipelineStage, PipelineState,
    Role, RoleOutput, RolePromptSet,
)

logger = logging.getLogger(__name__)

ANALYZE_INSTRUCTION = "Analyze this draft."


class PipelineOrchestrator:
    def __init__(self, executor: AgentStepExecutor, image_requester: ImageRequester, registry: RolePromptRegistry, job_client: Optional[ImageJobClient] = None):
        self.executor = executor
        self.image_requester = image_requester
        self.registry = registry
        self.job_client = job_client

    async def run(self, request: PipelineRequest, prompt_set: Optional[RolePromptSet] = None) -> PipelineResult:
        """
        Run the whole pipeline for one board snapshot.

        prompt_set overrides the theme lookup (callers may send their own prompts).
        The state is local to this call and dropped when it returns.
        """
        self._validate(request)
        prompts = prompt_set or self.registry.resolve(request.theme_id)
        state = PipelineState()
        logger.info(f"Pipeline start: theme={prompts.theme_id} default={prompts.is_default} branch={prompts.branch}")

        try:
            await self._analyze(request, prompts, state)
            if prompts.branch:
                state.stage = PipelineStage.BRANCH_FANOUT
                await self._fan_out(request, prompts, state)
            state.stage = PipelineStage.SYNTHESIZE
            await self._synthesize(request, prompts, state)
            state.stage = PipelineStage.IMAGE_REQUEST
            image_urls, job_id = await self._request_image(prompts, state.text(Role.ROLE5))
        except Exception:
            logger.error(f"Pipeline failed during {state.stage.value}")
            state.stage = PipelineStage.FAILED
            raise

        state.stage = PipelineStage.DONE
        return PipelineResult(
            outputs={role.value: output.text for role, output in state.outputs.items()},
            image_url=image_urls[0],
            image_urls=image_urls,
            theme_id=prompts.theme_id,
            image_path=prompts.image_path,
            job_id=job_id,
        )

    def _validate(self, request: PipelineRequest) -> None:
        for name, image in (("board image", request.board_image), ("style image", request.style_image)):
            if isinstance(image, str) and not is_image_reference(image):
                raise ValidationError(f"{name} must be an http(s) URL or a data URI")

    async def _analyze(self, request: PipelineRequest, prompts: RolePromptSet, state: PipelineState) -> None:
        state.stage = PipelineStage.ANALYZE
        text = await self.executor.run(
            prompts.prompt_for(Role.ROLE1),
            ANALYZE_INSTRUCTION,
            [request.board_image],
            role=Role.ROLE1,
        )
        state.record(RoleOutput(Role.ROLE1, text))

    async def _fan_out(self, request: PipelineRequest, prompts: RolePromptSet, state: PipelineState) -> None:
        seed = state.text(Role.ROLE1) or ""
        results = await asyncio.gather(
            *(
                self.executor.run(prompts.prompt_for(role), seed, request.references_for(role), role=role)
                for role in BRANCH_ROLES
            ),
            return_exceptions=True,
        )

        # all three have settled; any failure sinks the stage
        for role, result in zip(BRANCH_ROLES, results):
            if isinstance(result, BaseException):
                if isinstance(result, StepFailedError):
                    raise result
                raise StepFailedError(role.value, result) from result

        for role, result in zip(BRANCH_ROLES, results):
            state.record(RoleOutput(role, result))

    async def _synthesize(self, request: PipelineRequest, prompts: RolePromptSet, state: PipelineState) -> None:
        text = await self.executor.run(
            prompts.prompt_for(Role.ROLE5),
            state.synthesis_input(),
            request.references_for(Role.ROLE5),
            role=Role.ROLE5,
        )
        if not text.strip():
            # a well-formed but empty completion leaves nothing to draw
            raise StepFailedError(Role.ROLE5.value, UpstreamError("Synthesis returned an empty image prompt"))
        state.record(RoleOutput(Role.ROLE5, text))

    async def _request_image(self, prompts: RolePromptSet, prompt: str):
        if prompts.image_path is ImagePath.JOB:
            if self.job_client is None:
                raise ConfigurationError(f"Theme '{prompts.theme_id}' renders through image jobs, but no job client is configured")
            job = await self.job_client.run_job(ImageJobRequest(mode=JobMode.TEXT2IMG, prompt=prompt))
            return job.images, job.id

        image_url = await self.image_requester.generate(prompt)
        return [image_url], None
