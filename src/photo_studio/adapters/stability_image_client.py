"""Stability AI text-to-image client."""

import base64
from dataclasses import dataclass

import httpx

from photo_studio.services.assets import SourceImage
from photo_studio.services.providers import (
    AuthError,
    GeneratedImage,
    ImageClient,
    InvalidResponseError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
)


@dataclass
class HttpxStabilityClient(ImageClient):
    """HTTPX-backed Stability AI client (SDXL text-to-image)."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    model: str = "stable-diffusion-xl-1024-v1-0"
    request_timeout_seconds: float = 120.0

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxStabilityClient":
        """Create a Stability client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def generate(self, prompt: str, source: SourceImage | None) -> GeneratedImage:
        """Generate one 1024x1024 image from the prompt."""
        url = f"{self.base_url}/v1/generation/{self.model}/text-to-image"
        payload = {
            "text_prompts": [{"text": prompt, "weight": 1}],
            "cfg_scale": 7,
            "height": 1024,
            "width": 1024,
            "samples": 1,
            "steps": 30,
        }
        try:
            response = await self.http_client.post(
                url,
                json=payload,
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                timeout=self.request_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError("request timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"request failed: {exc}") from exc

        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise AuthError("invalid API key")
        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            raise RateLimitedError("rate limit reached")
        if response.is_error:
            raise ProviderError(f"HTTP {response.status_code}: {response.text[:200]}")

        artifacts = response.json().get("artifacts") or []
        if not artifacts or not artifacts[0].get("base64"):
            raise InvalidResponseError("no image generated")
        artifact = artifacts[0]
        return GeneratedImage(
            data=base64.b64decode(artifact["base64"]),
            mime_type="image/png",
            metadata={
                "seed": artifact.get("seed"),
                "finishReason": artifact.get("finishReason"),
                "size": "1024x1024",
            },
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
