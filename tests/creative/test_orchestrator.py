"""
Tests for the five-role PipelineOrchestrator.

Covers:
- branch=false skips role2-role4 and feeds role1 straight into role5
- branch=true fan-out reassembles in role order regardless of completion order
- style image routing per role
- all-or-nothing failure of the fan-out stage
- image path selection (single shot vs signed job)
"""

import asyncio
import pytest
from dataclasses import dataclass, field
from typing import Any, List, Optional
from unittest.mock import AsyncMock, Mock

from src.pipeline.creative.orchestrator import PipelineOrchestrator, ANALYZE_INSTRUCTION
from src.pipeline.creative.registry import RolePromptRegistry, prompt_set_from_mapping
from src.pipeline.creative.types import ImagePath, PipelineRequest, Role
from src.pipeline.errors import ConfigurationError, ImageTimeoutError, StepFailedError, UpstreamError, ValidationError
from src.pipeline.image_jobs.types import ImageJob, JobMode, JobStatus


@dataclass
class StepCall:
    role: Optional[Role]
    system_prompt: str
    text: str
    reference_images: List[Any] = field(default_factory=list)


class FakeExecutor:
    """Stands in for AgentStepExecutor; delays let tests control completion order."""

    def __init__(self, outputs, delays=None, failures=None):
        self.outputs = outputs
        self.delays = delays or {}
        self.failures = failures or {}
        self.calls: List[StepCall] = []
        self.completed: List[Role] = []

    async def run(self, system_prompt, text, reference_images=(), role=None):
        self.calls.append(StepCall(role, system_prompt, text, list(reference_images)))
        if role in self.delays:
            await asyncio.sleep(self.delays[role])
        if role in self.failures:
            raise self.failures[role]
        self.completed.append(role)
        return self.outputs[role]

    def call_for(self, role: Role) -> StepCall:
        return next(call for call in self.calls if call.role is role)


THEMES = {
    "default": "nomoral",
    "themes": {
        "nomoral": {
            "branch": False,
            "prompts": {"role1": "interpret", "role5": "design"},
        },
        "PowerGirls": {
            "branch": True,
            "prompts": {"role1": "interpret", "role2": "character", "role3": "figure", "role4": "story", "role5": "design"},
        },
        "WearableSculpture": {
            "branch": False,
            "image_path": "job",
            "prompts": {"role1": "interpret", "role5": "sculpt"},
        },
    },
}

BRANCH_OUTPUTS = {
    Role.ROLE1: "analysis",
    Role.ROLE2: "character",
    Role.ROLE3: "figure",
    Role.ROLE4: "story",
    Role.ROLE5: "final prompt",
}


@pytest.fixture
def registry():
    return RolePromptRegistry.from_dict(THEMES)


@pytest.fixture
def image_requester():
    requester = Mock()
    requester.generate = AsyncMock(return_value="https://img.example/final.png")
    return requester


@pytest.fixture
def job_client():
    client = Mock()
    client.run_job = AsyncMock(return_value=ImageJob(
        id="job-1", status=JobStatus.SUCCEEDED, images=["https://cdn.example/a.png", "https://cdn.example/b.png"]
    ))
    return client


class TestLinearPipeline:
    @pytest.mark.asyncio
    async def test_fox_end_to_end(self, registry, image_requester):
        """
        Test: branch=false theme from board to image
        How: role1 says "A calm fox", role5 says the figurine prompt
        Ensures: role5 prompt reaches image generation verbatim and its url comes back unchanged
        """
        executor = FakeExecutor({Role.ROLE1: "A calm fox", Role.ROLE5: "A fox figurine, matte ceramic"})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        result = await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="nomoral"))

        image_requester.generate.assert_awaited_once_with("A fox figurine, matte ceramic")
        assert result.image_url == "https://img.example/final.png"
        assert result.image_urls == ["https://img.example/final.png"]
        assert result.outputs == {"role1": "A calm fox", "role5": "A fox figurine, matte ceramic"}
        assert result.image_path is ImagePath.SINGLE_SHOT
        assert result.job_id is None

    @pytest.mark.asyncio
    async def test_role5_input_is_role1_output(self, registry, image_requester):
        """
        Test: Synthesis input without branch
        How: Run the default theme and inspect role5's call
        Ensures: role5 text equals role1 output verbatim, roles 2-4 never run
        """
        executor = FakeExecutor({Role.ROLE1: "line one\nline two", Role.ROLE5: "prompt"})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        result = await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="nomoral"))

        assert executor.call_for(Role.ROLE5).text == "line one\nline two"
        assert [call.role for call in executor.calls] == [Role.ROLE1, Role.ROLE5]
        assert "role2" not in result.outputs
        assert "role3" not in result.outputs
        assert "role4" not in result.outputs

    @pytest.mark.asyncio
    async def test_analyze_step_sees_only_the_board(self, registry, image_requester):
        executor = FakeExecutor({Role.ROLE1: "a", Role.ROLE5: "b"})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        await orchestrator.run(PipelineRequest(
            board_image="https://example.com/board.png",
            theme_id="nomoral",
            style_image="https://example.com/style.png",
            use_style_by_role={Role.ROLE1: True},
        ))

        analyze = executor.call_for(Role.ROLE1)
        assert analyze.system_prompt == "interpret"
        assert analyze.text == ANALYZE_INSTRUCTION
        assert analyze.reference_images == ["https://example.com/board.png"]

    @pytest.mark.asyncio
    async def test_unknown_theme_uses_default(self, registry, image_requester):
        executor = FakeExecutor({Role.ROLE1: "a", Role.ROLE5: "b"})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        result = await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="nope"))

        assert result.theme_id == "nomoral"
        assert executor.call_for(Role.ROLE5).system_prompt == "design"

    @pytest.mark.asyncio
    async def test_explicit_prompt_set_overrides_theme(self, registry, image_requester):
        executor = FakeExecutor(BRANCH_OUTPUTS)
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)
        prompts = prompt_set_from_mapping({"role1": "p1", "role2": "p2", "role3": "p3", "role4": "p4", "role5": "p5"}, branch=True)

        result = await orchestrator.run(
            PipelineRequest(board_image="https://example.com/board.png", theme_id="nomoral"),
            prompt_set=prompts,
        )

        assert result.theme_id == "custom"
        assert executor.call_for(Role.ROLE3).system_prompt == "p3"
        assert len(executor.calls) == 5


class TestBranchPipeline:
    @pytest.mark.asyncio
    async def test_synthesis_order_ignores_completion_order(self, registry, image_requester):
        """
        Test: Fan-out reassembly order
        How: Delay role2 longest and role4 not at all so role4 resolves first
        Ensures: role5 input is role1..role4 in fixed order anyway
        """
        executor = FakeExecutor(BRANCH_OUTPUTS, delays={Role.ROLE2: 0.02, Role.ROLE3: 0.01})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        result = await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="PowerGirls"))

        assert executor.completed.index(Role.ROLE4) < executor.completed.index(Role.ROLE2)
        assert executor.call_for(Role.ROLE5).text == "analysis\ncharacter\nfigure\nstory"
        assert list(result.outputs) == ["role1", "role2", "role3", "role4", "role5"]

    @pytest.mark.asyncio
    async def test_branch_roles_receive_role1_text(self, registry, image_requester):
        executor = FakeExecutor(BRANCH_OUTPUTS)
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="PowerGirls"))

        for role in (Role.ROLE2, Role.ROLE3, Role.ROLE4):
            assert executor.call_for(role).text == "analysis"

    @pytest.mark.asyncio
    async def test_style_image_routed_per_role(self, registry, image_requester):
        """
        Test: Style reference flags
        How: Flag role3 and role5 only
        Ensures: Only those steps get the style image attached
        """
        executor = FakeExecutor(BRANCH_OUTPUTS)
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        await orchestrator.run(PipelineRequest(
            board_image="https://example.com/board.png",
            theme_id="PowerGirls",
            style_image="https://example.com/style.png",
            use_style_by_role={Role.ROLE3: True, Role.ROLE5: True, Role.ROLE4: False},
        ))

        assert executor.call_for(Role.ROLE2).reference_images == []
        assert executor.call_for(Role.ROLE3).reference_images == ["https://example.com/style.png"]
        assert executor.call_for(Role.ROLE4).reference_images == []
        assert executor.call_for(Role.ROLE5).reference_images == ["https://example.com/style.png"]

    @pytest.mark.asyncio
    async def test_one_branch_failure_fails_the_pipeline(self, registry, image_requester):
        """
        Test: All-or-nothing fan-out
        How: role3 fails while role2 and role4 succeed (role2 finishes last)
        Ensures: StepFailedError names role3, all three settled, role5 and image never run
        """
        failure = StepFailedError("role3", RuntimeError("provider 500"))
        executor = FakeExecutor(BRANCH_OUTPUTS, delays={Role.ROLE2: 0.01}, failures={Role.ROLE3: failure})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="PowerGirls"))

        assert exc_info.value.role == "role3"
        assert set(executor.completed) == {Role.ROLE1, Role.ROLE2, Role.ROLE4}
        assert all(call.role is not Role.ROLE5 for call in executor.calls)
        image_requester.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_branch_error_is_attributed(self, registry, image_requester):
        executor = FakeExecutor(BRANCH_OUTPUTS, failures={Role.ROLE4: RuntimeError("bug")})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="PowerGirls"))

        assert exc_info.value.role == "role4"


class TestFailures:
    @pytest.mark.asyncio
    async def test_analyze_failure_stops_everything(self, registry, image_requester):
        executor = FakeExecutor({}, failures={Role.ROLE1: StepFailedError("role1", RuntimeError("down"))})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        with pytest.raises(StepFailedError) as exc_info:
            await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="PowerGirls"))

        assert exc_info.value.role == "role1"
        assert len(executor.calls) == 1
        image_requester.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_image_timeout_propagates(self, registry, image_requester):
        image_requester.generate.side_effect = ImageTimeoutError(60)
        executor = FakeExecutor({Role.ROLE1: "a", Role.ROLE5: "b"})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        with pytest.raises(ImageTimeoutError):
            await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png"))

    @pytest.mark.asyncio
    async def test_empty_synthesis_is_a_step_failure(self, registry, image_requester, job_client):
        """
        Test: role5 answers with an empty completion
        How: Executor returns "" for role5 on both image paths
        Ensures: StepFailedError(role5) with status 500, nothing is sent for rendering
        """
        for theme_id in ("nomoral", "WearableSculpture"):
            executor = FakeExecutor({Role.ROLE1: "analysis", Role.ROLE5: "  "})
            orchestrator = PipelineOrchestrator(executor, image_requester, registry, job_client=job_client)

            with pytest.raises(StepFailedError) as exc_info:
                await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id=theme_id))

            assert exc_info.value.role == "role5"
            assert exc_info.value.status_code == 500
            assert isinstance(exc_info.value.cause, UpstreamError)

        image_requester.generate.assert_not_awaited()
        job_client.run_job.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("request_kwargs", [
        {"board_image": "/etc/hosts"},
        {"board_image": "file:///tmp/board.png"},
        {"board_image": "https://example.com/board.png", "style_image": "style.png", "use_style_by_role": {Role.ROLE5: True}},
    ])
    async def test_non_url_images_rejected_before_any_step(self, registry, image_requester, request_kwargs):
        executor = FakeExecutor(BRANCH_OUTPUTS)
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        with pytest.raises(ValidationError):
            await orchestrator.run(PipelineRequest(**request_kwargs))

        assert executor.calls == []


class TestJobImagePath:
    @pytest.mark.asyncio
    async def test_job_theme_submits_text2img_job(self, registry, image_requester, job_client):
        """
        Test: Theme configured for the signed job renderer
        How: Run WearableSculpture with a mocked job client
        Ensures: role5 text becomes a text2img job and every job image is returned
        """
        executor = FakeExecutor({Role.ROLE1: "a", Role.ROLE5: "a bronze bangle"})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry, job_client=job_client)

        result = await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="WearableSculpture"))

        job_request = job_client.run_job.call_args[0][0]
        assert job_request.mode is JobMode.TEXT2IMG
        assert job_request.prompt == "a bronze bangle"
        assert result.image_url == "https://cdn.example/a.png"
        assert result.image_urls == ["https://cdn.example/a.png", "https://cdn.example/b.png"]
        assert result.job_id == "job-1"
        assert result.image_path is ImagePath.JOB
        image_requester.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_job_theme_without_client(self, registry, image_requester):
        executor = FakeExecutor({Role.ROLE1: "a", Role.ROLE5: "b"})
        orchestrator = PipelineOrchestrator(executor, image_requester, registry)

        with pytest.raises(ConfigurationError):
            await orchestrator.run(PipelineRequest(board_image="https://example.com/board.png", theme_id="WearableSculpture"))
