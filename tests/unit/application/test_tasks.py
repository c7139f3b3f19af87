"""Tests for the task handler registry."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from genhub.application.tasks import TaskRegistry, build_default_tasks
from genhub.domain.enums import Capability, TaskName
from genhub.domain.exceptions import AllProvidersExhaustedError, ConfigurationError, UnknownTaskTypeError


@pytest.fixture
def core(build_core, registry, clients):
    return build_core(registry, clients)


@pytest.fixture
def tasks(core) -> TaskRegistry:
    return build_default_tasks(core.orchestrator)


class TestTaskRegistry:
    def test_default_tasks_cover_every_task_name(self, tasks):
        tasks.validate()
        assert tasks.names() == sorted(t.value for t in TaskName)

    def test_register_duplicate(self):
        registry = TaskRegistry()
        registry.register(TaskName.GENERATE_TEXT, AsyncMock())
        with pytest.raises(ConfigurationError, match="already registered"):
            registry.register("generate-text", AsyncMock())

    def test_validate_reports_missing(self):
        registry = TaskRegistry()
        registry.register(TaskName.GENERATE_TEXT, AsyncMock())
        with pytest.raises(ConfigurationError) as exc_info:
            registry.validate()
        assert "generate-video" in exc_info.value.message
        assert "generate-text" not in exc_info.value.message

    def test_contains(self, tasks):
        assert "generate-video" in tasks
        assert "unknown-task" not in tasks

    @pytest.mark.asyncio
    async def test_unknown_task(self, tasks):
        with pytest.raises(UnknownTaskTypeError) as exc_info:
            await tasks.dispatch("unknown-task", {})
        assert exc_info.value.message == "Unknown AI task type: unknown-task"

    @pytest.mark.asyncio
    async def test_dispatch_calls_handler(self):
        handler = AsyncMock(return_value={"ok": True})
        registry = TaskRegistry()
        registry.register("custom", handler)

        assert await registry.dispatch("custom", {"a": 1}) == {"ok": True}
        handler.assert_awaited_once_with({"a": 1})


class TestDefaultTasks:
    @pytest.mark.asyncio
    async def test_generate_text(self, tasks, clients):
        result = await tasks.dispatch("generate-text", {"prompt": "hello", "max_tokens": 50})

        assert result["provider"] == "gemini"
        assert result["text"] == "gemini: hello"
        capability, request = clients["gemini"].calls[0]
        assert capability is Capability.TEXT
        assert request.max_tokens == 50

    @pytest.mark.asyncio
    async def test_generate_video(self, tasks):
        result = await tasks.dispatch("generate-video", {"prompt": "a cat", "duration_seconds": 5})
        assert result == {
            "video_url": "https://googleVeo.test/video.mp4",
            "model": "test/model-googleVeo",
            "provider": "googleVeo",
        }

    @pytest.mark.asyncio
    async def test_generate_voice_routes_to_speech(self, tasks, clients):
        result = await tasks.dispatch("generate-voice", {"text": "hello", "voice_id": "narrator"})
        assert result["provider"] == "minimax"
        assert clients["minimax"].calls[0][1].voice_id == "narrator"

    @pytest.mark.asyncio
    async def test_generate_image(self, tasks):
        result = await tasks.dispatch("generate-image", {"prompt": "a cat"})
        assert result["image_url"] == "https://imagen.test/image.png"

    @pytest.mark.asyncio
    async def test_invalid_payload(self, tasks, clients):
        with pytest.raises(ValidationError):
            await tasks.dispatch("generate-image", {"prompt": ""})
        assert clients["imagen"].calls == []

    @pytest.mark.asyncio
    async def test_exhaustion_propagates(self, tasks, clients):
        clients["minimax"].fail = True
        clients["elevenlabs"].fail = True
        with pytest.raises(AllProvidersExhaustedError):
            await tasks.dispatch("generate-voice", {"text": "hello"})
