"""
Integration tests for the chat gateway orchestrator.

Tests:
- Pre-stream checks (messages, credentials, custom providers, readiness)
- System prompt assembly (repository context, modes, skills)
- Terminal event guarantees
- Free-tier fallback end to end
- Cancellation
- Backend registry
"""

import asyncio
import json

import httpx
import pytest

from chat_gateway.core.cancellation import CancellationToken
from chat_gateway.core.config import GatewayConfig, BackendSettings
from chat_gateway.core.errors import (
    BackendNotFoundError,
    GatewayConfigurationError,
    GatewayUnavailableError,
    UnresolvableModelError,
)
from chat_gateway.core.gateway import ChatGateway
from chat_gateway.core.interface import BackendAdapter, GatewayCapability
from chat_gateway.core.prompts import (
    MAX_REPO_FILES,
    MAX_REPO_FILE_CHARS,
    MODE_PROMPTS,
    SKILL_MODE_PROMPT,
    format_code_block,
)
from chat_gateway.core.registry import BackendRegistry, get_registry
from chat_gateway.models.backend import BackendName
from chat_gateway.models.events import TextEvent, ErrorEvent, DoneEvent
from chat_gateway.models.request import ChatRequest

SSE_BODY = (
    'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n'
    'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n'
    "data: [DONE]\n\n"
)


def make_config(**keys):
    return GatewayConfig(
        backends={BackendName(name): BackendSettings(api_key=key) for name, key in keys.items()},
        system_prompt="Base prompt.",
    )


def make_gateway(handler, registry=None, **keys):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatGateway(config=make_config(**keys), registry=registry or get_registry(), client=client)


def chat(model="gpt-4o", **extra):
    return ChatRequest(messages=[{"role": "user", "content": "Hello"}], model=model, **extra)


async def collect(gateway, request, token=None):
    return [event async for event in gateway.stream_chat(request, token)]


def unreachable(request):
    raise AssertionError(f"Unexpected request to {request.url}")


class TestPrepare:
    """Test checks that run before any stream is opened."""

    def test_empty_messages_rejected(self):
        gateway = make_gateway(unreachable, openai="sk")
        with pytest.raises(UnresolvableModelError) as excinfo:
            gateway.prepare(ChatRequest(messages=[], model="gpt-4o"))
        assert excinfo.value.message == "Messages are required"

    def test_missing_credential(self):
        """gpt-4o without an OpenAI key fails with guidance."""
        gateway = make_gateway(unreachable)
        with pytest.raises(GatewayConfigurationError) as excinfo:
            gateway.prepare(chat("gpt-4o"))
        assert excinfo.value.message == "OPENAI API key is not configured. Set OPENAI_API_KEY."
        assert excinfo.value.backend == "openai"

    def test_missing_credential_hint_lists_alternatives(self):
        gateway = make_gateway(unreachable)
        with pytest.raises(GatewayConfigurationError) as excinfo:
            gateway.prepare(chat("big-pickle"))
        assert "Set OPENCODE_API_KEY (or OPENCODE_ZEN_API_KEY / OPENCODEZEN_API_KEY)." in excinfo.value.message

    def test_whitespace_credential_is_missing(self):
        gateway = make_gateway(unreachable, openai="   ")
        with pytest.raises(GatewayConfigurationError):
            gateway.prepare(chat("gpt-4o"))

    def test_ollama_needs_no_credential(self):
        gateway = make_gateway(unreachable)
        prepared = gateway.prepare(chat("llama3"))
        assert prepared.resolved.backend is BackendName.OLLAMA

    def test_custom_provider_needs_no_gateway_credential(self):
        gateway = make_gateway(unreachable)
        prepared = gateway.prepare(chat(
            "local",
            provider="custom",
            custom_config={"baseUrl": "http://localhost:8000/v1"},
        ))
        assert prepared.resolved.backend is BackendName.CUSTOM
        assert prepared.adapter.base_url == "http://localhost:8000/v1"

    def test_incomplete_custom_provider(self):
        gateway = make_gateway(unreachable)
        with pytest.raises(UnresolvableModelError):
            gateway.prepare(chat("local", provider="custom", custom_config={"apiKey": "k"}))

    def test_system_context_appended(self):
        gateway = make_gateway(unreachable, openai="sk")
        prepared = gateway.prepare(chat("gpt-4o", system_context="Repo: example/app"))
        assert prepared.prompt.system_prompt == "Base prompt.\n\n## Additional Context\nRepo: example/app"

    def test_repo_context_in_system_prompt(self):
        """Repository name, structure and key files become prompt sections."""
        gateway = make_gateway(unreachable, openai="sk")
        files = [{"path": f"src/f{i}.py", "content": "x" * 4000} for i in range(12)]
        request = ChatRequest.model_validate({
            "messages": [{"role": "user", "content": "Hello"}],
            "model": "gpt-4o",
            "repoContext": {
                "repoFullName": "example/app",
                "structure": "src/\n  main.py",
                "files": files,
            },
        })
        prompt = gateway.prepare(request).prompt.system_prompt

        assert prompt.startswith("Base prompt.\n\n## Current Repository Context\nRepository: example/app\n\n")
        assert "### Repository Structure:\n```\nsrc/\n  main.py\n```\n\n" in prompt
        assert "#### src/f9.py\n```\n" + "x" * MAX_REPO_FILE_CHARS + "\n```\n" in prompt
        assert "src/f10.py" not in prompt
        assert prompt.count("#### ") == MAX_REPO_FILES

    def test_mode_prompts(self):
        gateway = make_gateway(unreachable, openai="sk")
        assert gateway.prepare(chat(mode="plan")).prompt.system_prompt == "Base prompt." + MODE_PROMPTS["plan"]
        assert gateway.prepare(chat(mode="build")).prompt.system_prompt == "Base prompt." + MODE_PROMPTS["build"]
        assert gateway.prepare(chat(mode="review")).prompt.system_prompt == "Base prompt."

    def test_skill_mode(self):
        gateway = make_gateway(unreachable, openai="sk")
        prompt = gateway.prepare(chat(mode="build", skill_mode=True, system_context="Ctx")).prompt.system_prompt
        assert prompt == (
            "Base prompt." + MODE_PROMPTS["build"] + SKILL_MODE_PROMPT + "\n\n## Additional Context\nCtx"
        )

    def test_code_block_fence_outgrows_content(self):
        assert format_code_block("a ``` b") == "````\na ``` b\n````"
        assert format_code_block("plain") == "```\nplain\n```"

    def test_not_connected(self):
        gateway = ChatGateway(config=make_config(openai="sk"))
        with pytest.raises(GatewayUnavailableError):
            gateway.prepare(chat("gpt-4o"))

    def test_attachments_normalized(self):
        gateway = make_gateway(unreachable, openai="sk")
        attachments = [{"kind": "text", "name": f"{i}.txt", "content": "x"} for i in range(7)]
        prepared = gateway.prepare(chat("gpt-4o", attachments=attachments))
        assert len(prepared.prompt.attachments) == 5


class TestStreaming:
    """Test the event stream contract."""

    @pytest.mark.asyncio
    async def test_success_ends_with_done(self):
        gateway = make_gateway(lambda request: httpx.Response(200, text=SSE_BODY), openai="sk")
        events = await collect(gateway, chat("gpt-4o"))
        assert events == [TextEvent(content="Hel"), TextEvent(content="lo"), DoneEvent()]
        await gateway.disconnect()

    @pytest.mark.asyncio
    async def test_failure_ends_with_single_error(self):
        gateway = make_gateway(lambda request: httpx.Response(500, text="boom"), openai="sk")
        events = await collect(gateway, chat("gpt-4o"))
        assert events == [ErrorEvent(error="boom")]

    @pytest.mark.asyncio
    async def test_mid_stream_error_has_no_done(self):
        body = 'data: {"choices":[{"delta":{"content":"a"}}]}\n\ndata: {"error":{"message":"overloaded"}}\n\n'
        gateway = make_gateway(lambda request: httpx.Response(200, text=body), openai="sk")
        events = await collect(gateway, chat("gpt-4o"))
        assert events == [TextEvent(content="a"), ErrorEvent(error="overloaded")]

    @pytest.mark.asyncio
    async def test_exactly_one_terminal_event(self):
        gateway = make_gateway(lambda request: httpx.Response(200, text=SSE_BODY), openai="sk")
        events = await collect(gateway, chat("gpt-4o"))
        assert sum(1 for e in events if e.is_terminal) == 1
        assert events[-1].is_terminal

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self):
        """Bugs inside an adapter surface as error events."""

        class BrokenAdapter(BackendAdapter):
            @property
            def backend(self):
                return BackendName.OPENAI

            @property
            def capabilities(self):
                return {GatewayCapability.STREAMING}

            def build_payload(self, model_id, prompt):
                return {}

            async def send_and_stream(self, model_id, prompt, token):
                yield TextEvent(content="x")
                raise ValueError("unexpected shape")

        registry = BackendRegistry()
        registry.register_adapter(BackendName.OPENAI, BrokenAdapter)
        gateway = make_gateway(unreachable, registry=registry, openai="sk")
        events = await collect(gateway, chat("gpt-4o"))
        assert events == [TextEvent(content="x"), ErrorEvent(error="unexpected shape")]


class TestFreeTierFallback:
    """Test OpenRouter free-tier fallback through the gateway."""

    @pytest.mark.asyncio
    async def test_rate_limited_model_falls_back(self):
        models = []

        def handler(request):
            model = json.loads(request.content)["model"]
            models.append(model)
            if len(models) == 1:
                return httpx.Response(429, text='{"error":{"message":"Rate limit exceeded","code":429}}')
            return httpx.Response(200, text=SSE_BODY)

        gateway = make_gateway(handler, openrouter="or")
        events = await collect(gateway, chat("qwen-coder-free"))

        assert models[0] == "qwen/qwen3-coder:free"
        assert len(models) == 2
        assert models[1] != models[0]
        assert events == [TextEvent(content="Hel"), TextEvent(content="lo"), DoneEvent()]

    @pytest.mark.asyncio
    async def test_paid_model_does_not_fall_back(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, text="Too Many Requests")

        gateway = make_gateway(handler, openrouter="or")
        events = await collect(gateway, chat("openrouter:openai/gpt-4o"))
        assert len(calls) == 1
        assert len(events) == 1
        assert "temporarily rate-limited" in events[0].error


class TestCancellation:
    """Test caller cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_during_stream_emits_nothing_more(self):
        """Cancelling while a read is pending ends the stream silently."""
        stalled = asyncio.Event()

        async def body():
            yield b'data: {"choices":[{"delta":{"content":"first"}}]}\n\n'
            await stalled.wait()
            yield b'data: {"choices":[{"delta":{"content":"never"}}]}\n\n'

        gateway = make_gateway(lambda request: httpx.Response(200, content=body()), openai="sk")
        token = CancellationToken()
        events = []

        async def consume():
            async for event in gateway.stream_chat(chat("gpt-4o"), token):
                events.append(event)
                if isinstance(event, TextEvent):
                    asyncio.get_running_loop().call_later(0.05, token.cancel)

        await asyncio.wait_for(consume(), timeout=5)
        assert events == [TextEvent(content="first")]

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        gateway = make_gateway(unreachable, openai="sk")
        token = CancellationToken()
        token.cancel()
        assert await collect(gateway, chat("gpt-4o"), token) == []


class TestRegistry:
    """Test the backend registry."""

    def test_builtin_backends(self):
        registry = get_registry()
        for backend in BackendName:
            assert registry.is_registered(backend)

    def test_unknown_backend(self):
        registry = BackendRegistry()
        with pytest.raises(BackendNotFoundError) as excinfo:
            registry.create_adapter(BackendName.OPENAI, GatewayConfig(), None)
        assert excinfo.value.message == "Unknown backend: openai"

    def test_capability_lookup(self):
        registry = get_registry()
        assert registry.find_backends_with_capability(GatewayCapability.FREE_TIER_FALLBACK) == [
            BackendName.OPENROUTER
        ]
        assert set(registry.find_backends_with_capability(GatewayCapability.RATE_LIMIT_HEADERS)) == {
            BackendName.OPENAI,
            BackendName.GROQ,
        }

    def test_list_backends(self):
        info = {entry["name"]: entry for entry in get_registry().list_backends()}
        assert info["groq"]["adapter"] == "GroqAdapter"
        assert "vision" not in info["groq"]["capabilities"]
        assert "streaming" in info["ollama"]["capabilities"]
