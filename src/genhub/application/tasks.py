"""Task registry — maps queued task names onto async handlers.

The handler map is closed and checked at worker start-up: every name in
``TaskName`` must have a handler.  Dispatching an unknown name raises
``UnknownTaskTypeError`` without touching any handler.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable

import structlog

from genhub.application.dtos import (
    ImageGenerationRequest,
    SpeechGenerationRequest,
    TextGenerationRequest,
    VideoGenerationRequest,
    result_to_dict,
)
from genhub.domain.enums import Capability, TaskName
from genhub.domain.exceptions import ConfigurationError, UnknownTaskTypeError
from genhub.shared.providers.orchestrator import GenerationOrchestrator

logger = structlog.get_logger(__name__)

TaskHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class TaskRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, TaskHandler] = {}

    def register(self, task_name: str | TaskName, handler: TaskHandler) -> None:
        name = task_name.value if isinstance(task_name, TaskName) else task_name
        if name in self._handlers:
            raise ConfigurationError(f"Handler already registered for task {name!r}")
        self._handlers[name] = handler
        logger.debug("task_handler_registered", task_name=name)

    def get(self, task_name: str) -> TaskHandler:
        try:
            return self._handlers[task_name]
        except KeyError:
            raise UnknownTaskTypeError(task_name) from None

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, task_name: object) -> bool:
        return task_name in self._handlers

    def validate(self, required: Iterable[str | TaskName] = tuple(TaskName)) -> None:
        """Fail fast when a required task type has no handler."""
        missing = sorted(
            name
            for name in (r.value if isinstance(r, TaskName) else r for r in required)
            if name not in self._handlers
        )
        if missing:
            raise ConfigurationError(f"No handler registered for task types: {', '.join(missing)}")

    async def dispatch(self, task_name: str, payload: dict[str, Any]) -> Any:
        handler = self.get(task_name)
        return await handler(payload)


def build_default_tasks(orchestrator: GenerationOrchestrator) -> TaskRegistry:
    """Register the four generation tasks, each running through the orchestrator."""

    async def generate_video(payload: dict[str, Any]) -> dict[str, Any]:
        request = VideoGenerationRequest.model_validate(payload).to_domain()
        return result_to_dict(await orchestrator.execute(Capability.VIDEO, request))

    async def generate_voice(payload: dict[str, Any]) -> dict[str, Any]:
        request = SpeechGenerationRequest.model_validate(payload).to_domain()
        return result_to_dict(await orchestrator.execute(Capability.SPEECH, request))

    async def generate_image(payload: dict[str, Any]) -> dict[str, Any]:
        request = ImageGenerationRequest.model_validate(payload).to_domain()
        return result_to_dict(await orchestrator.execute(Capability.IMAGE, request))

    async def generate_text(payload: dict[str, Any]) -> dict[str, Any]:
        request = TextGenerationRequest.model_validate(payload).to_domain()
        return result_to_dict(await orchestrator.execute(Capability.TEXT, request))

    registry = TaskRegistry()
    registry.register(TaskName.GENERATE_VIDEO, generate_video)
    registry.register(TaskName.GENERATE_VOICE, generate_voice)
    registry.register(TaskName.GENERATE_IMAGE, generate_image)
    registry.register(TaskName.GENERATE_TEXT, generate_text)
    return registry
