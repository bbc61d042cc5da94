"""共享的测试替身：脚本化的 Provider 客户端与不真正等待的执行器。"""

from typing import List

import pytest

from companion_core.domain.models import CompletionRequest, CompletionResult, GeneratedImage
from companion_core.resilience.executor import BoundedExecutor
from companion_core.resilience.retry import RetryPolicy


class ScriptedClient:
    """按顺序返回预设结果；元素是异常时抛出，是字符串时作为回复文本。"""

    name = "scripted"

    def __init__(self, script):
        self._script = list(script)
        self.requests: List[CompletionRequest] = []

    async def complete(self, req: CompletionRequest) -> CompletionResult:
        self.requests.append(req)
        item = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(item, BaseException):
            raise item
        return CompletionResult(text=item, provider=self.name, model=req.model)


class ScriptedImageClient:
    name = "scripted-image"

    def __init__(self, outcome):
        self._outcome = outcome
        self.prompts: List[str] = []

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1"):
        self.prompts.append(prompt)
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def executor(sleeps) -> BoundedExecutor:
    return BoundedExecutor(policy=RetryPolicy(max_attempts=3, base_delay_ms=100), deadline_ms=2000, sleep=sleeps)


@pytest.fixture
def png() -> GeneratedImage:
    return GeneratedImage(mime_type="image/png", data=b"\x89PNG")


@pytest.fixture
def scripted():
    return ScriptedClient


@pytest.fixture
def scripted_image():
    return ScriptedImageClient
