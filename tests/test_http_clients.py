"""Tests for vendor image clients."""

import asyncio
import base64
import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from photo_studio.adapters.comfyui_client import HttpxComfyUIClient, build_workflow
from photo_studio.adapters.gemini_image_client import GeminiImageClient
from photo_studio.adapters.openai_image_client import OpenAIImageClient
from photo_studio.adapters.stability_image_client import HttpxStabilityClient
from photo_studio.services.assets import SourceImage
from photo_studio.services.providers import (
    AuthError,
    InvalidResponseError,
    ProviderError,
    RateLimitedError,
)
from tests.conftest import PNG_BYTES

SOURCE = SourceImage(name="me.png", data=PNG_BYTES, mime_type="image/png")


class _FakeImages:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.last_payload: dict[str, object] | None = None

    async def generate(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        if self.error is not None:
            raise self.error
        image = SimpleNamespace(
            b64_json=base64.b64encode(PNG_BYTES).decode(), revised_prompt="revised"
        )
        return SimpleNamespace(data=[image])


class _FakeOpenAI:
    def __init__(self, error: Exception | None = None) -> None:
        self.images = _FakeImages(error)


def _openai_error(error_type: type[openai.APIStatusError], status: int, code=None):  # type: ignore[no-untyped-def]
    request = httpx.Request("POST", "https://api.openai.com/v1/images/generations")
    response = httpx.Response(status, request=request)
    error = error_type("failed", response=response, body=None)
    error.code = code
    return error


def test_openai_client_decodes_image() -> None:
    fake = _FakeOpenAI()
    client = OpenAIImageClient(client=fake)  # type: ignore[arg-type]

    image = asyncio.run(client.generate("a knight", SOURCE))

    assert image.data == PNG_BYTES
    assert image.metadata["revisedPrompt"] == "revised"
    assert fake.images.last_payload is not None
    assert fake.images.last_payload["response_format"] == "b64_json"
    assert "a knight" in str(fake.images.last_payload["prompt"])


@pytest.mark.parametrize(
    ("error", "expected", "kind"),
    [
        (_openai_error(openai.AuthenticationError, 401), AuthError, "auth"),
        (_openai_error(openai.RateLimitError, 429), RateLimitedError, "rate_limited"),
        (
            _openai_error(openai.RateLimitError, 429, "insufficient_quota"),
            ProviderError,
            "provider_error",
        ),
        (_openai_error(openai.InternalServerError, 500), ProviderError, "provider_error"),
    ],
)
def test_openai_client_maps_errors(
    error: Exception, expected: type[ProviderError], kind: str
) -> None:
    client = OpenAIImageClient(client=_FakeOpenAI(error))  # type: ignore[arg-type]

    with pytest.raises(expected) as caught:
        asyncio.run(client.generate("prompt", None))

    assert caught.value.kind == kind


def _gemini(response=None, error: Exception | None = None):  # type: ignore[no-untyped-def]
    calls: list[dict[str, object]] = []

    async def generate_content(**kwargs):  # type: ignore[no-untyped-def]
        calls.append(kwargs)
        if error is not None:
            raise error
        return response

    fake = SimpleNamespace(
        aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    )
    return GeminiImageClient(client=fake, model="gemini-test"), calls  # type: ignore[arg-type]


def _gemini_response(*parts: SimpleNamespace) -> SimpleNamespace:
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=list(parts)), finish_reason="STOP"
    )
    return SimpleNamespace(candidates=[candidate])


def test_gemini_client_returns_inline_image() -> None:
    response = _gemini_response(
        SimpleNamespace(inline_data=None, text="Here you go"),
        SimpleNamespace(inline_data=SimpleNamespace(data=PNG_BYTES, mime_type="image/png")),
    )
    client, calls = _gemini(response)

    image = asyncio.run(client.generate("a knight", SOURCE))

    assert image.data == PNG_BYTES
    assert image.metadata["finishReason"] == "STOP"
    assert calls[0]["model"] == "gemini-test"
    contents = calls[0]["contents"]
    assert isinstance(contents, list)
    assert "a knight" in contents[0]
    assert len(contents) == 2


def test_gemini_client_rejects_text_only_answer() -> None:
    client, _ = _gemini(_gemini_response(SimpleNamespace(inline_data=None, text="no")))

    with pytest.raises(InvalidResponseError):
        asyncio.run(client.generate("a knight", SOURCE))


@pytest.mark.parametrize(
    ("code", "expected"),
    [(401, AuthError), (429, RateLimitedError), (500, ProviderError)],
)
def test_gemini_client_maps_api_errors(code: int, expected: type[ProviderError]) -> None:
    error = genai_errors.APIError(code, {"error": {"message": "nope", "status": "X"}})
    client, _ = _gemini(error=error)

    with pytest.raises(expected):
        asyncio.run(client.generate("a knight", SOURCE))


def _stability(handler) -> HttpxStabilityClient:  # type: ignore[no-untyped-def]
    return HttpxStabilityClient(
        api_key="sk-test",
        base_url="https://stability.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def test_stability_client_posts_prompt() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == (
            "/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image"
        )
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["text_prompts"][0]["text"] == "a knight"
        artifact = {"base64": base64.b64encode(PNG_BYTES).decode(), "seed": 42}
        return httpx.Response(200, json={"artifacts": [artifact]})

    image = asyncio.run(_stability(handler).generate("a knight", None))

    assert image.data == PNG_BYTES
    assert image.metadata["seed"] == 42


@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (401, {}, AuthError),
        (429, {}, RateLimitedError),
        (500, {"message": "boom"}, ProviderError),
        (200, {"artifacts": []}, InvalidResponseError),
    ],
)
def test_stability_client_maps_responses(
    status: int, body: dict[str, object], expected: type[ProviderError]
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)

    with pytest.raises(expected):
        asyncio.run(_stability(handler).generate("a knight", None))


def test_build_workflow_switches_to_img2img() -> None:
    text = build_workflow("a knight", checkpoint="sdxl.safetensors", seed=7)
    img2img = build_workflow(
        "a knight", checkpoint="sdxl.safetensors", seed=7, input_image="up.png"
    )

    assert "10" not in text
    assert text["5"]["inputs"]["latent_image"] == ["4", 0]  # type: ignore[index]
    assert text["5"]["inputs"]["denoise"] == 1.0  # type: ignore[index]
    assert img2img["10"]["inputs"] == {"image": "up.png"}
    assert img2img["5"]["inputs"]["latent_image"] == ["13", 0]  # type: ignore[index]
    assert img2img["5"]["inputs"]["denoise"] == 0.75  # type: ignore[index]


def test_comfyui_client_runs_workflow() -> None:
    history_calls = 0
    queued: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal history_calls
        path = request.url.path
        if path == "/upload/image":
            return httpx.Response(200, json={"name": "up.png"})
        if path == "/prompt":
            queued.append(json.loads(request.content))
            return httpx.Response(200, json={"prompt_id": "p1"})
        if path == "/history/p1":
            history_calls += 1
            if history_calls == 1:
                return httpx.Response(200, json={})
            outputs = {"7": {"images": [{"filename": "out.png", "type": "output"}]}}
            return httpx.Response(
                200,
                json={"p1": {"status": {"completed": True}, "outputs": outputs}},
            )
        if path == "/view":
            assert request.url.params["filename"] == "out.png"
            return httpx.Response(200, content=PNG_BYTES)
        return httpx.Response(404)

    client = HttpxComfyUIClient(
        base_url="http://comfy.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        poll_interval_seconds=0,
    )

    image = asyncio.run(client.generate("a knight", SOURCE))

    assert image.data == PNG_BYTES
    assert image.mime_type == "image/png"
    assert image.metadata["promptId"] == "p1"
    assert history_calls == 2
    workflow = queued[0]["prompt"]
    assert workflow["10"]["inputs"]["image"] == "up.png"  # type: ignore[index]


def test_comfyui_client_reports_execution_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/prompt":
            return httpx.Response(200, json={"prompt_id": "p1"})
        return httpx.Response(200, json={"p1": {"status": {"status_str": "error"}}})

    client = HttpxComfyUIClient(
        base_url="http://comfy.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        poll_interval_seconds=0,
    )

    with pytest.raises(ProviderError, match="execution failed"):
        asyncio.run(client.generate("a knight", None))


def test_comfyui_client_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = HttpxComfyUIClient(
        base_url="http://comfy.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(ProviderError, match="not reachable"):
        asyncio.run(client.generate("a knight", None))


def test_comfyui_client_rejected_workflow() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "bad"})

    client = HttpxComfyUIClient(
        base_url="http://comfy.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(ProviderError, match="invalid workflow"):
        asyncio.run(client.generate("a knight", None))
