"""ComfyUI client for a locally running Stable Diffusion backend."""

import asyncio
import logging
import random
from dataclasses import dataclass
from uuid import uuid4

import httpx

from photo_studio.services.assets import SourceImage, detect_mime_type
from photo_studio.services.providers import (
    GeneratedImage,
    ImageClient,
    InvalidResponseError,
    ProviderError,
)

_logger = logging.getLogger(__name__)

_SAVE_NODE = "7"
_NEGATIVE_PROMPT = "low quality, blurry, distorted, watermark, text, signature"


def build_workflow(  # noqa: PLR0913
    prompt: str,
    *,
    checkpoint: str,
    seed: int,
    input_image: str | None = None,
    steps: int = 25,
    cfg: float = 8.0,
    denoise: float = 0.75,
) -> dict[str, dict[str, object]]:
    """Build an SDXL workflow graph; img2img when an input image is given."""
    workflow: dict[str, dict[str, object]] = {
        "1": {
            "class_type": "CheckpointLoaderSimple",
            "inputs": {"ckpt_name": checkpoint},
        },
        "2": {
            "class_type": "CLIPTextEncode",
            "inputs": {"text": prompt, "clip": ["1", 1]},
        },
        "3": {
            "class_type": "CLIPTextEncode",
            "inputs": {"text": _NEGATIVE_PROMPT, "clip": ["1", 1]},
        },
        "4": {
            "class_type": "EmptyLatentImage",
            "inputs": {"width": 1024, "height": 1024, "batch_size": 1},
        },
        "5": {
            "class_type": "KSampler",
            "inputs": {
                "seed": seed,
                "steps": steps,
                "cfg": cfg,
                "sampler_name": "euler",
                "scheduler": "normal",
                "denoise": denoise if input_image else 1.0,
                "model": ["1", 0],
                "positive": ["2", 0],
                "negative": ["3", 0],
                "latent_image": ["13", 0] if input_image else ["4", 0],
            },
        },
        "6": {
            "class_type": "VAEDecode",
            "inputs": {"samples": ["5", 0], "vae": ["1", 2]},
        },
        _SAVE_NODE: {
            "class_type": "SaveImage",
            "inputs": {"filename_prefix": "photo_studio", "images": ["6", 0]},
        },
    }
    if input_image:
        workflow["10"] = {"class_type": "LoadImage", "inputs": {"image": input_image}}
        workflow["13"] = {
            "class_type": "VAEEncode",
            "inputs": {"pixels": ["10", 0], "vae": ["1", 2]},
        }
    return workflow


@dataclass
class HttpxComfyUIClient(ImageClient):
    """Queues a workflow, polls its history, and downloads the output image.

    The call has no attempt cap of its own: the provider adapter's timeout
    bounds how long polling may run.
    """

    base_url: str
    http_client: httpx.AsyncClient
    model: str = "sd_xl_base_1.0.safetensors"
    poll_interval_seconds: float = 1.0

    @classmethod
    def create(cls, base_url: str) -> "HttpxComfyUIClient":
        """Create a ComfyUI client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def generate(self, prompt: str, source: SourceImage | None) -> GeneratedImage:
        """Run one workflow to completion."""
        try:
            input_image = await self._upload(source) if source is not None else None
            seed = random.randint(0, 999_999)
            workflow = build_workflow(
                prompt, checkpoint=self.model, seed=seed, input_image=input_image
            )
            prompt_id = await self._queue(workflow)
            outputs = await self._wait_for_outputs(prompt_id)
            images = outputs.get(_SAVE_NODE, {}).get("images") or []
            if not images:
                raise InvalidResponseError("no image found in workflow output")
            data = await self._download(images[0])
        except httpx.ConnectError as exc:
            raise ProviderError(f"not reachable at {self.base_url}") from exc
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == httpx.codes.BAD_REQUEST:
                raise ProviderError("invalid workflow or missing model") from exc
            raise ProviderError(f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"request failed: {exc}") from exc
        return GeneratedImage(
            data=data,
            mime_type=detect_mime_type(data),
            metadata={
                "promptId": prompt_id,
                "seed": seed,
                "checkpoint": self.model,
                "resolution": "1024x1024",
            },
        )

    async def _upload(self, source: SourceImage) -> str:
        response = await self.http_client.post(
            f"{self.base_url}/upload/image",
            files={"image": (source.name, source.data, source.mime_type)},
            data={"overwrite": "true"},
            timeout=30,
        )
        response.raise_for_status()
        return str(response.json().get("name") or source.name)

    async def _queue(self, workflow: dict[str, dict[str, object]]) -> str:
        response = await self.http_client.post(
            f"{self.base_url}/prompt",
            json={"prompt": workflow, "client_id": f"photo-studio-{uuid4().hex}"},
            timeout=10,
        )
        response.raise_for_status()
        prompt_id = response.json().get("prompt_id")
        if not prompt_id:
            raise InvalidResponseError("queue response has no prompt_id")
        return str(prompt_id)

    async def _wait_for_outputs(self, prompt_id: str) -> dict[str, dict]:
        url = f"{self.base_url}/history/{prompt_id}"
        while True:
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                response = await self.http_client.get(url, timeout=5)
                response.raise_for_status()
            except httpx.TransportError as exc:
                _logger.debug("ComfyUI poll failed for %s: %s", prompt_id, exc)
                continue
            entry = response.json().get(prompt_id)
            if not entry:
                continue
            status = entry.get("status") or {}
            if status.get("status_str") == "error":
                raise ProviderError("workflow execution failed")
            if status.get("completed"):
                return entry.get("outputs") or {}

    async def _download(self, image_info: dict[str, object]) -> bytes:
        response = await self.http_client.get(
            f"{self.base_url}/view",
            params={
                "filename": image_info.get("filename"),
                "subfolder": image_info.get("subfolder") or "",
                "type": image_info.get("type") or "output",
            },
            timeout=30,
        )
        response.raise_for_status()
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
