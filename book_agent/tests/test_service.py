import asyncio

import pytest

from book_agent.agents.orchestrator import StreamingOrchestrator
from book_agent.api import service
from book_agent.domain.models import BackendOutput, EventStatus
from book_agent.infrastructure.storage.memory_store import MemoryKeyValueStore
from book_agent.infrastructure.storage.session_store import SessionStore
from book_agent.providers.base import CATCH_ALL_PRIORITY
from book_agent.providers.registry import BackendRegistry


class EchoClient:
    name = "echo"

    def __init__(self, model_id):
        self.model_id = model_id
        self.prompts = []

    async def stream(self, prompt, system_prompt=None, history=None):
        self.prompts.append(prompt)
        yield BackendOutput.of_delta(f"[{self.model_id}]")

    async def complete(self, prompt, system_prompt=None):
        return "t"


class EchoProvider:
    name = "echo"
    priority = CATCH_ALL_PRIORITY

    def __init__(self):
        self.clients = {}

    def supports(self, model_id):
        return True

    def create(self, model_id):
        client = EchoClient(model_id)
        self.clients[model_id] = client
        return client


@pytest.fixture
def orchestrator():
    provider = EchoProvider()
    orch = StreamingOrchestrator(BackendRegistry([provider]), SessionStore(MemoryKeyValueStore()), timeout=5.0)
    orch.provider = provider
    return orch


def collect(agen):
    async def run():
        return [e async for e in agen]

    return asyncio.run(run())


def test_query_request_blank_fields_become_none():
    req = service.QueryRequest(question="q", book_name=" ", thread_id="", model_id=None, mode="")
    assert req.book_name is None
    assert req.thread_id is None
    assert req.mode is None


def test_ask_applies_defaults(monkeypatch, orchestrator):
    monkeypatch.setattr(service.settings, "default_model", "qwen-max")
    events = collect(service.ask(service.QueryRequest(question="Some passage"), orchestrator))

    assert events[0].status is EventStatus.START
    assert events[0].content.startswith("Interpreting")
    assert events[1].content == "[qwen-max]"
    threads = service.list_threads(orchestrator)
    assert len(threads) == 1
    assert threads[0]["model_id"] == "qwen-max"
    # 自动生成的 thread id 是 uuid
    assert len(threads[0]["id"]) == 36
    prompt = orchestrator.provider.clients["qwen-max"].prompts[0]
    assert prompt.startswith("Please interpret the following passage:")


def test_ask_truncates_long_question(orchestrator):
    long_question = "x" * (service.MAX_QUESTION_LENGTH + 10)
    req = service.QueryRequest(question=long_question, thread_id="t1", model_id="m", mode="chat")
    collect(service.ask(req, orchestrator))

    stored = service.get_thread_messages("t1", orchestrator)[0]["content"]
    assert stored.endswith(service.TRUNCATED_SUFFIX)
    assert len(stored) == service.MAX_QUESTION_LENGTH + len(service.TRUNCATED_SUFFIX)


def test_thread_listing_and_deletion(orchestrator):
    for tid in ["a", "b"]:
        collect(service.ask(service.QueryRequest(question="q", thread_id=tid, model_id="m", mode="chat"), orchestrator))

    assert [t["id"] for t in service.list_threads(orchestrator)] == ["b", "a"]
    service.delete_thread("a", orchestrator)
    assert [t["id"] for t in service.list_threads(orchestrator)] == ["b"]
    assert [m["role"] for m in service.get_thread_messages("a", orchestrator)] == ["user", "assistant"]


def test_list_models_from_settings(monkeypatch):
    from book_agent.config.settings import ModelInfo

    monkeypatch.setattr(service.settings, "models", [ModelInfo(id="qwen-max", name="Qwen Max", description="d")])
    monkeypatch.setattr(service.settings, "default_model", "qwen-max")
    assert service.list_models() == {
        "models": [{"id": "qwen-max", "name": "Qwen Max", "description": "d"}],
        "defaultModel": "qwen-max",
    }
