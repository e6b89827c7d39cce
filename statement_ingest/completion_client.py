"""
Generative text-completion collaborator.

The pipeline treats the service as an untrusted ``complete(prompt) -> text``
function.  This module provides:

* ``CompletionClient``: the contract every client implements.
* ``GeminiCompletionClient``: non-streaming ``generateContent`` over httpx.
* ``CallableCompletionClient``: adapts a plain (sync or async) function.
* ``CancellationToken`` and ``run_completion``: a single bounded,
  cancellable request.  A response that arrives after cancellation is
  discarded.
"""

from __future__ import annotations

import abc
import asyncio
import inspect
import os
import time
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from statement_ingest.config import GenerativeConfig
from statement_ingest.errors import (
    ExtractionCancelled,
    GenerativeError,
    GenerativeNetworkFailure,
    GenerativeSchemaInvalid,
)
from statement_ingest.logging_setup import get_logger

logger = get_logger("completion_client")

EXTRACTION_SYSTEM_PROMPT = (
    "You are a precise data extraction engine. "
    "Output ONLY raw JSON. Do not use Markdown."
)


class CancellationToken:
    """Set by the caller to abandon an outstanding generative request."""

    def __init__(self) -> None:
        self._cancelled = False
        # created inside the loop that waits on it
        self._event: Optional[asyncio.Event] = None

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def wait(self) -> None:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()


class CompletionClient(abc.ABC):
    """Contract that every completion client must implement.

    Implementations raise ``GenerativeNetworkFailure`` for transport problems
    and ``GenerativeSchemaInvalid`` when the service envelope is malformed.
    """

    name: str = "base"

    @abc.abstractmethod
    async def complete(self, prompt: str) -> str:
        """Send *prompt* and return the raw completion text."""


class GeminiCompletionClient(CompletionClient):
    name = "gemini"

    def __init__(
        self,
        config: Optional[GenerativeConfig] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or GenerativeConfig()
        self._api_key = api_key
        self._transport = transport

    def _resolve_api_key(self) -> str:
        key = self._api_key or os.environ.get(self._config.api_key_env, "")
        if not key:
            raise GenerativeNetworkFailure(
                f"{self._config.api_key_env} environment variable is required "
                f"for generative extraction"
            )
        return key

    async def complete(self, prompt: str) -> str:
        url = self._config.endpoint.format(model=self._config.model)
        payload = {
            "systemInstruction": {"parts": [{"text": EXTRACTION_SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self._config.temperature},
        }
        t0 = time.monotonic()

        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    url,
                    params={"key": self._resolve_api_key()},
                    json=payload,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise GenerativeNetworkFailure(
                f"Completion service returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerativeNetworkFailure(
                f"Completion request failed: {exc.__class__.__name__}: {exc}"
            ) from exc
        except ValueError as exc:
            raise GenerativeSchemaInvalid("Completion envelope is not JSON") from exc

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise GenerativeSchemaInvalid(
                "Completion envelope has no candidate text"
            ) from exc

        logger.info(
            "Completion received from %s in %.0f ms (%d chars)",
            self._config.model,
            (time.monotonic() - t0) * 1000,
            len(text),
        )
        return text


CompleteFn = Callable[[str], Union[str, Awaitable[str]]]


class CallableCompletionClient(CompletionClient):
    """Wrap a plain ``complete(prompt)`` function (sync or async)."""

    name = "callable"

    def __init__(self, fn: CompleteFn) -> None:
        self._fn = fn

    async def complete(self, prompt: str) -> str:
        result: Any = self._fn(prompt)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, str):
            raise GenerativeSchemaInvalid(
                f"Completion function returned {type(result).__name__}, not str"
            )
        return result


async def run_completion(
    client: CompletionClient,
    prompt: str,
    timeout_seconds: float,
    cancel: Optional[CancellationToken] = None,
) -> str:
    """Run exactly one completion request, bounded by *timeout_seconds*.

    Raises
    ------
    ExtractionCancelled
        *cancel* fired before the response arrived (the response is discarded).
    GenerativeNetworkFailure
        Timeout, transport failure, or any unexpected error from the client.
    GenerativeSchemaInvalid
        Propagated from the client.
    """
    if cancel is not None and cancel.cancelled:
        raise ExtractionCancelled("Cancelled before the request was sent")

    request = asyncio.ensure_future(client.complete(prompt))
    waiters = {request}
    cancel_waiter: Optional[asyncio.Future] = None
    if cancel is not None:
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=timeout_seconds,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        request.cancel()
        raise
    finally:
        if cancel_waiter is not None and not cancel_waiter.done():
            cancel_waiter.cancel()

    if cancel is not None and cancel.cancelled:
        request.cancel()
        logger.info("Generative request cancelled by caller; response discarded")
        raise ExtractionCancelled("Cancelled while the request was outstanding")

    if request not in done:
        request.cancel()
        raise GenerativeNetworkFailure(
            f"Completion timed out after {timeout_seconds:.1f}s"
        )

    try:
        return request.result()
    except GenerativeError:
        raise
    except asyncio.CancelledError as exc:
        raise GenerativeNetworkFailure("Completion request was aborted") from exc
    except Exception as exc:  # noqa: BLE001 - the client is untrusted
        raise GenerativeNetworkFailure(
            f"Completion request failed: {exc.__class__.__name__}: {exc}"
        ) from exc
