import pytest
from unittest.mock import AsyncMock, Mock

from src.models.manager import ModelManager
from src.models.providers.base import ModelError, ModelResponse
from src.pipeline.creative.executor import AgentStepExecutor
from src.pipeline.creative.types import Role
from src.pipeline.errors import StepFailedError


@pytest.fixture
def manager():
    manager = Mock(spec=ModelManager)
    manager.call = AsyncMock(return_value=ModelResponse(content="step output", raw=None, meta={}))
    return manager


class TestAgentStepExecutor:
    @pytest.mark.asyncio
    async def test_single_call_with_messages(self, manager):
        """
        Test: One executor run
        How: Run with a system prompt, text and one reference image
        Ensures: Exactly one role_step call carrying both messages and the image
        """
        executor = AgentStepExecutor(manager)

        text = await executor.run("You interpret boards.", "Analyze this draft.", ["https://b.png"], role=Role.ROLE1)

        assert text == "step output"
        manager.call.assert_awaited_once()
        kwargs = manager.call.call_args.kwargs
        assert kwargs["task"] == "role_step"
        assert kwargs["messages_override"] == [
            {"role": "system", "content": "You interpret boards."},
            {"role": "user", "content": "Analyze this draft."},
        ]
        assert kwargs["images"] == ["https://b.png"]

    @pytest.mark.asyncio
    async def test_empty_system_prompt_still_sent(self, manager):
        executor = AgentStepExecutor(manager)

        await executor.run("", "text")

        messages = manager.call.call_args.kwargs["messages_override"]
        assert messages[0] == {"role": "system", "content": ""}
        assert manager.call.call_args.kwargs["images"] is None

    @pytest.mark.asyncio
    async def test_empty_completion_is_empty_string(self, manager):
        manager.call.return_value = ModelResponse(content="", raw=None, meta={})

        assert await AgentStepExecutor(manager).run("s", "t") == ""

    @pytest.mark.asyncio
    async def test_provider_error_carries_role(self, manager):
        """
        Test: Provider failure during a step
        How: Make the manager raise ModelError
        Ensures: StepFailedError naming the role, original error chained
        """
        cause = ModelError("502 from gateway")
        manager.call.side_effect = cause

        with pytest.raises(StepFailedError) as exc_info:
            await AgentStepExecutor(manager).run("s", "t", role=Role.ROLE3)

        assert exc_info.value.role == "role3"
        assert exc_info.value.details == {"role": "role3"}
        assert exc_info.value.__cause__ is cause
