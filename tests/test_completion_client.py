"""
Unit tests for completion clients and the bounded, cancellable request.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from helpers.completion_stub import StubCompletionClient
from statement_ingest.completion_client import (
    CallableCompletionClient,
    CancellationToken,
    GeminiCompletionClient,
    run_completion,
)
from statement_ingest.config import GenerativeConfig
from statement_ingest.errors import (
    ExtractionCancelled,
    GenerativeNetworkFailure,
    GenerativeSchemaInvalid,
)


def _envelope(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


# ======================================================================
# run_completion
# ======================================================================

class TestRunCompletion:
    def test_returns_text(self) -> None:
        stub = StubCompletionClient(["[]"])
        assert asyncio.run(run_completion(stub, "p", timeout_seconds=1.0)) == "[]"
        assert stub.calls == ["p"]

    def test_timeout_is_network_failure(self) -> None:
        stub = StubCompletionClient(["[]"], delay=1.0)
        with pytest.raises(GenerativeNetworkFailure, match="timed out"):
            asyncio.run(run_completion(stub, "p", timeout_seconds=0.05))
        assert stub.completed == 0

    def test_cancelled_before_send(self) -> None:
        stub = StubCompletionClient(["[]"])

        async def scenario() -> str:
            token = CancellationToken()
            token.cancel()
            return await run_completion(stub, "p", timeout_seconds=1.0, cancel=token)

        with pytest.raises(ExtractionCancelled):
            asyncio.run(scenario())
        assert stub.calls == []

    def test_cancelled_while_outstanding(self) -> None:
        stub = StubCompletionClient(["[]"], delay=1.0)

        async def scenario() -> str:
            token = CancellationToken()
            asyncio.get_running_loop().call_later(0.05, token.cancel)
            return await run_completion(stub, "p", timeout_seconds=5.0, cancel=token)

        with pytest.raises(ExtractionCancelled):
            asyncio.run(scenario())
        assert stub.completed == 0

    def test_token_built_outside_event_loop(self) -> None:
        stub = StubCompletionClient(["[]"], delay=1.0)
        token = CancellationToken()

        async def scenario() -> str:
            asyncio.get_running_loop().call_later(0.05, token.cancel)
            return await run_completion(stub, "p", timeout_seconds=5.0, cancel=token)

        with pytest.raises(ExtractionCancelled):
            asyncio.run(scenario())
        assert token.cancelled
        assert stub.completed == 0

    def test_unused_token_lets_request_finish(self) -> None:
        stub = StubCompletionClient(["[]"])
        token = CancellationToken()
        result = asyncio.run(run_completion(stub, "p", timeout_seconds=1.0, cancel=token))
        assert result == "[]"
        assert not token.cancelled

    def test_unexpected_error_wrapped(self) -> None:
        stub = StubCompletionClient([RuntimeError("boom")])
        with pytest.raises(GenerativeNetworkFailure, match="RuntimeError"):
            asyncio.run(run_completion(stub, "p", timeout_seconds=1.0))

    def test_schema_error_propagates(self) -> None:
        stub = StubCompletionClient([GenerativeSchemaInvalid("bad envelope")])
        with pytest.raises(GenerativeSchemaInvalid):
            asyncio.run(run_completion(stub, "p", timeout_seconds=1.0))


# ======================================================================
# CallableCompletionClient
# ======================================================================

class TestCallableClient:
    def test_sync_function(self) -> None:
        client = CallableCompletionClient(lambda prompt: prompt.upper())
        assert asyncio.run(client.complete("abc")) == "ABC"

    def test_async_function(self) -> None:
        async def fn(prompt: str) -> str:
            return prompt[::-1]

        client = CallableCompletionClient(fn)
        assert asyncio.run(client.complete("abc")) == "cba"

    def test_non_string_result(self) -> None:
        client = CallableCompletionClient(lambda prompt: {"not": "text"})
        with pytest.raises(GenerativeSchemaInvalid):
            asyncio.run(client.complete("abc"))


# ======================================================================
# GeminiCompletionClient (mock transport, no network)
# ======================================================================

class TestGeminiClient:
    def test_successful_call(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_envelope('[{"amount": 1}]'))

        client = GeminiCompletionClient(
            GenerativeConfig(), api_key="test-key", transport=httpx.MockTransport(handler)
        )
        text = asyncio.run(client.complete("extract this"))

        assert text == '[{"amount": 1}]'
        assert "gemini-2.5-flash:generateContent" in seen["url"]
        assert "key=test-key" in seen["url"]
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "extract this"
        assert seen["body"]["generationConfig"]["temperature"] == 0.1

    def test_http_error_status(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="busy"))
        client = GeminiCompletionClient(api_key="k", transport=transport)
        with pytest.raises(GenerativeNetworkFailure, match="503"):
            asyncio.run(client.complete("p"))

    def test_missing_candidates(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"error": {}}))
        client = GeminiCompletionClient(api_key="k", transport=transport)
        with pytest.raises(GenerativeSchemaInvalid):
            asyncio.run(client.complete("p"))

    def test_envelope_not_json(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        client = GeminiCompletionClient(api_key="k", transport=transport)
        with pytest.raises(GenerativeSchemaInvalid):
            asyncio.run(client.complete("p"))

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=_envelope("[]")))
        client = GeminiCompletionClient(transport=transport)
        with pytest.raises(GenerativeNetworkFailure, match="GEMINI_API_KEY"):
            asyncio.run(client.complete("p"))

    def test_api_key_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.url.params.get("key")
            return httpx.Response(200, json=_envelope("[]"))

        client = GeminiCompletionClient(transport=httpx.MockTransport(handler))
        assert asyncio.run(client.complete("p")) == "[]"
        assert seen["key"] == "env-key"
