"""Pytest configuration and shared fixtures."""
import json
import os
from datetime import date, datetime
from typing import Any

import pytest

from nutriscope.actions import ActionExecutor, ActionProposal, ExecutionResult
from nutriscope.cache import RecordingCacheInvalidator
from nutriscope.capture import CaptureDevice, ImageAnalysis, ImageAnalyzer, Transcriber
from nutriscope.conversation import create_conversation_store
from nutriscope.conversation.in_memory import InMemoryConversationStore
from nutriscope.domain import InMemoryDomainStores
from nutriscope.errors import ImageAnalysisError, PersistenceError, TranscriptionError
from nutriscope.llm import ChatMessage, LLMProvider, LLMResponse
from nutriscope.orchestrator import TurnOrchestrator
from nutriscope.presenter import TypingPresenter
from nutriscope.session import ChatSession

TODAY = date(2025, 3, 14)


class FakeLLM(LLMProvider):
    """LLM provider returning canned replies in order.

    Each reply is a string, a dict (serialized to JSON) or an exception to raise.
    """

    def __init__(self, *replies: Any):
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        **kwargs: Any
    ) -> LLMResponse:
        self.calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
            **kwargs,
        })
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return LLMResponse(content=reply, model=self.model)

    async def close(self) -> None:
        self.closed = True

    @property
    def model(self) -> str:
        return "fake-model"


class SpyExecutor(ActionExecutor):
    """Executor that records every action it receives."""

    def __init__(self, stores):
        super().__init__(stores)
        self.executed: list[ActionProposal] = []

    async def execute(self, action: ActionProposal, user_id: str, effective_date: date) -> ExecutionResult:
        self.executed.append(action)
        return await super().execute(action, user_id, effective_date)


class UnreachableStores(InMemoryDomainStores):
    """Domain stores whose writes fail as if the backend were down."""

    async def create_meal(self, entry):
        raise ConnectionError("domain backend unreachable")

    async def create_recipe(self, entry):
        raise ConnectionError("domain backend unreachable")


class FakeCaptureDevice(CaptureDevice):
    """Capture device counting acquisitions and releases."""

    def __init__(
        self,
        audio: bytes = b"\x00" * 4096,
        fail_acquire: bool = False,
        fail_start: bool = False,
        fail_stop: bool = False
    ):
        self.audio = audio
        self.fail_acquire = fail_acquire
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.acquired = 0
        self.released = 0
        self.started = 0

    async def acquire(self) -> None:
        if self.fail_acquire:
            raise PermissionError("Permission denied")
        self.acquired += 1

    async def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("recorder failed to start")
        self.started += 1

    async def stop(self) -> bytes:
        if self.fail_stop:
            raise RuntimeError("recorder crashed")
        return self.audio

    async def release(self) -> None:
        self.released += 1


class FakeTranscriber(Transcriber):
    def __init__(self, text: str = "I drank 500ml of water", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[bytes, str | None]] = []

    async def transcribe(self, audio: bytes, user_id: str | None = None) -> str:
        self.calls.append((audio, user_id))
        if self.error is not None:
            raise self.error
        return self.text


class FakeImageAnalyzer(ImageAnalyzer):
    def __init__(self, analysis: ImageAnalysis | None = None, fail: bool = False):
        self.analysis = analysis or ImageAnalysis(description="Grilled salmon with rice")
        self.fail = fail
        self.calls: list[str] = []

    async def analyze(self, image_url: str) -> ImageAnalysis:
        self.calls.append(image_url)
        if self.fail:
            raise ImageAnalysisError("vision model unavailable")
        return self.analysis


class FlakyConversationStore(InMemoryConversationStore):
    """Memory store whose first ``failures`` upserts fail."""

    def __init__(self, failures: int = 0, retryable: bool = True):
        super().__init__()
        self.failures = failures
        self.retryable = retryable
        self.upsert_calls: list[tuple[str, int, str | None]] = []

    async def upsert(self, user_id, messages, conversation_id=None):
        self.upsert_calls.append((user_id, len(messages), conversation_id))
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("database is locked", retryable=self.retryable)
        return await super().upsert(user_id, messages, conversation_id)


def make_reply(message: str, action: dict[str, Any] | None = None) -> dict[str, Any]:
    reply: dict[str, Any] = {"message": message}
    if action is not None:
        reply["action"] = action
    return reply


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
        "anthropic": os.getenv("ANTHROPIC_API_KEY")
    }


@pytest.fixture
def domain_stores():
    return InMemoryDomainStores()


@pytest.fixture
def conversation_store():
    return FlakyConversationStore()


@pytest.fixture
def invalidator():
    return RecordingCacheInvalidator()


@pytest.fixture
def make_session(domain_stores, conversation_store, invalidator):
    """Build a ChatSession around fakes; returns (session, llm, executor)."""

    def _make(*replies: Any, stores=None, **kwargs: Any):
        llm = FakeLLM(*replies)
        executor = SpyExecutor(stores or domain_stores)
        kwargs.setdefault("presenter", TypingPresenter(speed=0))
        kwargs.setdefault("quiet_period", 0.01)
        kwargs.setdefault("retry_delay", 0)
        session = ChatSession(
            orchestrator=TurnOrchestrator(llm, system_prompt="You are a test assistant.\n{context}"),
            executor=executor,
            store=kwargs.pop("store", conversation_store),
            user_id="user-1",
            domain_stores=stores or domain_stores,
            invalidator=invalidator,
            clock=lambda: datetime(2025, 3, 14, 8, 30),
            today=lambda: TODAY,
            **kwargs,
        )
        return session, llm, executor

    return _make


@pytest.fixture
def memory_store():
    return create_conversation_store("memory")


@pytest.fixture
async def sqlite_store(tmp_path):
    store = create_conversation_store("sqlite", path=tmp_path / "chat.db")
    await store.connect()
    yield store
    await store.disconnect()
