"""Gateway to the hosted OCR and language models (Replicate)."""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Tuple
import httpx
from pydantic import BaseModel, Field
from app.config.settings import Settings
from app.core.exceptions import ConfigurationError, ProviderError
from app.utils.image_codec import guess_image_type

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


class LanguageModelOptions(BaseModel):
    """Generation options forwarded to the language model. Unset options are not sent."""

    reasoning_effort: Optional[Literal["minimal", "low", "medium", "high"]] = None
    verbosity: Optional[Literal["low", "medium", "high"]] = None
    max_completion_tokens: Optional[int] = Field(None, gt=0)
    temperature: Optional[float] = Field(None, ge=0, le=1)

    def to_input(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class InferenceGateway(ABC):
    """OCR and language-model capabilities of an inference provider."""

    @abstractmethod
    async def run_ocr(self, image_bytes: bytes, task_type: str, resolution_size: str) -> str:
        """Extract text from an image."""

    @abstractmethod
    async def run_language_model(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LanguageModelOptions] = None,
    ) -> str:
        """Run the language model and return the whole completion."""

    @abstractmethod
    def stream_language_model(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LanguageModelOptions] = None,
    ) -> AsyncIterator[str]:
        """Run the language model and yield completion chunks as they arrive."""


def join_output(output: Any) -> str:
    """
    Flatten prediction output into text.

    Output is either a single string or a list of string chunks; chunks are
    concatenated in order with no separator.

    Raises:
        ProviderError: If the output has any other shape
    """
    if isinstance(output, str):
        return output
    if isinstance(output, list) and all(isinstance(chunk, str) for chunk in output):
        return "".join(output)
    logger.error(f"Unexpected prediction output shape: {type(output).__name__}")
    raise ProviderError("Invalid response format from Replicate API")


def _provider_error_detail(response: httpx.Response) -> str:
    """Pull the provider's message out of an error response."""
    try:
        error_data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(error_data, dict):
        for key in ("detail", "error", "title"):
            value = error_data.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return f"HTTP {response.status_code}"


class ReplicateGateway(InferenceGateway):
    """
    InferenceGateway backed by Replicate's HTTP API.

    Images are uploaded to Replicate file storage first; predictions are
    created once (never retried) and polled until they reach a terminal status.
    The API token is checked before any network call.
    """

    def __init__(
        self,
        api_token: Optional[str],
        *,
        api_base: str = "https://api.replicate.com/v1",
        ocr_model_version: str,
        language_model: str,
        timeout: float = 300.0,
        poll_interval: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_token = api_token.strip() if api_token else None
        self.api_base = api_base.rstrip("/")
        self.ocr_model_version = ocr_model_version
        self.language_model = language_model
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReplicateGateway":
        return cls(
            settings.replicate_api_token,
            api_base=settings.replicate_api_base,
            ocr_model_version=settings.ocr_model_version,
            language_model=settings.language_model,
            timeout=settings.inference_timeout_seconds,
            poll_interval=settings.inference_poll_interval_seconds,
        )

    def _auth_headers(self) -> Dict[str, str]:
        if not self.api_token:
            logger.error("REPLICATE_API_TOKEN environment variable is not set")
            raise ConfigurationError("REPLICATE_API_TOKEN is not configured")
        return {"Authorization": f"Bearer {self.api_token}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.api_base, timeout=self.timeout, transport=self._transport)

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        """Send one request and return its JSON body, mapping failures to ProviderError."""
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            error_detail = _provider_error_detail(e.response)
            logger.error(f"Replicate API HTTP error: {error_detail}")
            raise ProviderError(f"Replicate API error: {error_detail}")
        except httpx.HTTPError as e:
            logger.error(f"Replicate API HTTP error: {str(e)}")
            raise ProviderError(f"Failed to connect to Replicate API: {str(e)}")
        except ValueError:
            logger.error(f"Non-JSON response from Replicate for {method} {url}")
            raise ProviderError("Invalid response format from Replicate API")

    def _prediction_target(self, model: str) -> Tuple[str, Dict[str, Any]]:
        """Endpoint and payload fields for a model name (``owner/name``) or version id."""
        if "/" in model and ":" not in model:
            return f"/models/{model}/predictions", {}
        return "/predictions", {"version": model}

    async def _upload_file(self, client: httpx.AsyncClient, image_bytes: bytes) -> str:
        filename, mime_type = guess_image_type(image_bytes)
        logger.info(f"Uploading {len(image_bytes)} bytes to Replicate file storage as {filename}")
        uploaded = await self._request(
            client,
            "POST",
            "/files",
            headers=self._auth_headers(),
            files={"content": (filename, image_bytes, mime_type)},
        )
        try:
            return uploaded["urls"]["get"]
        except (KeyError, TypeError):
            logger.error(f"Invalid file upload response from Replicate: {uploaded}")
            raise ProviderError("Invalid response format from Replicate API")

    async def _create_prediction(
        self,
        client: httpx.AsyncClient,
        model: str,
        model_input: Dict[str, Any],
        stream: bool = False,
    ) -> Dict[str, Any]:
        path, payload = self._prediction_target(model)
        payload["input"] = model_input
        headers = self._auth_headers()
        if stream:
            payload["stream"] = True
        else:
            headers["Prefer"] = "wait"

        logger.info(f"Creating Replicate prediction for model: {model}")
        return await self._request(client, "POST", path, headers=headers, json=payload)

    async def _wait_for_prediction(self, client: httpx.AsyncClient, prediction: Dict[str, Any]) -> Any:
        """Poll a prediction until it is terminal and return its output."""
        deadline = time.monotonic() + self.timeout
        while prediction.get("status") not in TERMINAL_STATUSES:
            poll_url = (prediction.get("urls") or {}).get("get")
            if not poll_url:
                logger.error(f"Prediction without a poll URL: {prediction}")
                raise ProviderError("Invalid response format from Replicate API")
            if time.monotonic() >= deadline:
                logger.error(f"Prediction {prediction.get('id')} did not finish within {self.timeout}s")
                raise ProviderError("Replicate prediction timed out")

            await asyncio.sleep(self.poll_interval)
            logger.debug(f"Polling prediction {prediction.get('id')} (status: {prediction.get('status')})")
            prediction = await self._request(client, "GET", poll_url, headers=self._auth_headers())

        status = prediction["status"]
        if status == "failed":
            error_detail = prediction.get("error") or "Prediction failed"
            logger.error(f"Replicate prediction failed: {error_detail}")
            raise ProviderError(str(error_detail))
        if status == "canceled":
            raise ProviderError("Replicate prediction was canceled")
        return prediction.get("output")

    async def run_ocr(self, image_bytes: bytes, task_type: str, resolution_size: str) -> str:
        """
        Upload an image and run the OCR model on it.

        Args:
            image_bytes: Raw image bytes
            task_type: OCR task preset
            resolution_size: OCR resolution preset

        Returns:
            str: Extracted text

        Raises:
            ConfigurationError: If no API token is configured
            ProviderError: If the upload or prediction fails
        """
        self._auth_headers()

        async with self._client() as client:
            image_url = await self._upload_file(client, image_bytes)
            logger.info(f"✓ Image uploaded, running OCR (task: {task_type}, resolution: {resolution_size})")
            prediction = await self._create_prediction(
                client,
                self.ocr_model_version,
                {
                    "image": image_url,
                    "task_type": task_type,
                    "resolution_size": resolution_size,
                },
            )
            output = await self._wait_for_prediction(client, prediction)

        text = join_output(output)
        logger.info(f"OCR response received: {len(text)} characters")
        return text

    async def run_language_model(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LanguageModelOptions] = None,
    ) -> str:
        """Run the language model to completion and return its text."""
        self._auth_headers()
        model_input = {"prompt": user_prompt, "system_prompt": system_prompt}
        model_input.update((options or LanguageModelOptions()).to_input())

        async with self._client() as client:
            prediction = await self._create_prediction(client, self.language_model, model_input)
            output = await self._wait_for_prediction(client, prediction)

        text = join_output(output)
        logger.info(f"Language model response received: {len(text)} characters")
        logger.debug(f"Response preview: {text[:200]}...")
        return text

    async def stream_language_model(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LanguageModelOptions] = None,
    ) -> AsyncIterator[str]:
        """Run the language model with server-sent streaming, yielding each output chunk."""
        self._auth_headers()
        model_input = {"prompt": user_prompt, "system_prompt": system_prompt}
        model_input.update((options or LanguageModelOptions()).to_input())

        async with self._client() as client:
            prediction = await self._create_prediction(client, self.language_model, model_input, stream=True)
            stream_url = (prediction.get("urls") or {}).get("stream")
            if not stream_url:
                logger.error(f"Prediction without a stream URL: {prediction}")
                raise ProviderError("Replicate prediction does not support streaming")

            headers = self._auth_headers()
            headers.update({"Accept": "text/event-stream", "Cache-Control": "no-store"})
            try:
                async with client.stream("GET", stream_url, headers=headers) as response:
                    if response.is_error:
                        await response.aread()
                        error_detail = _provider_error_detail(response)
                        logger.error(f"Replicate stream HTTP error: {error_detail}")
                        raise ProviderError(f"Replicate API error: {error_detail}")

                    async for event, data in iter_sse_events(response.aiter_lines()):
                        if event == "output":
                            yield data
                        elif event == "error":
                            logger.error(f"Replicate stream error event: {data}")
                            raise ProviderError(_stream_error_detail(data))
                        elif event == "done":
                            failure = _stream_done_failure(data)
                            if failure:
                                logger.error(f"Replicate stream finished unsuccessfully: {data}")
                                raise ProviderError(f"Replicate API error: prediction {failure}")
                            return
            except httpx.HTTPError as e:
                logger.error(f"Replicate stream HTTP error: {str(e)}")
                raise ProviderError(f"Failed to connect to Replicate API: {str(e)}")


def _stream_done_failure(data: str) -> Optional[str]:
    """Return the failure reason carried by a ``done`` event, or None for a normal finish."""
    try:
        payload = json.loads(data) if data else {}
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    reason = payload.get("reason") or payload.get("status")
    if reason in ("canceled", "failed", "error"):
        return str(reason)
    return None


def _stream_error_detail(data: str) -> str:
    try:
        payload = json.loads(data)
    except ValueError:
        return data or "Prediction failed"
    if isinstance(payload, dict):
        return str(payload.get("detail") or payload.get("error") or "Prediction failed")
    return data


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[Tuple[str, str]]:
    """
    Parse a server-sent event stream into ``(event, data)`` pairs.

    Events without an ``event:`` field are reported as ``message``; multi-line
    data is joined with newlines.
    """
    event = "message"
    data_lines: List[str] = []
    async for line in lines:
        if line == "":
            if data_lines:
                yield event, "\n".join(data_lines)
            event = "message"
            data_lines = []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data_lines.append(value)

    if data_lines:
        yield event, "\n".join(data_lines)
