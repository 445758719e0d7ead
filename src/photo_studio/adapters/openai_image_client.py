"""OpenAI Images API client."""

import base64
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

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
class OpenAIImageClient(ImageClient):
    """Text-to-image client backed by the OpenAI Images API."""

    client: AsyncOpenAI
    model: str = "dall-e-3"
    size: str = "1024x1024"
    quality: str = "standard"

    @classmethod
    def create(cls, api_key: str, model: str = "dall-e-3") -> "OpenAIImageClient":
        """Create an OpenAI image client."""
        return cls(client=AsyncOpenAI(api_key=api_key), model=model)

    async def generate(self, prompt: str, source: SourceImage | None) -> GeneratedImage:
        """Generate one image; the source photo is not sent."""
        optimized_prompt = (
            "Transform the style and appearance of the subject to match this "
            f"description: {prompt}. Maintain facial features and expressions. "
            "High quality, detailed, professional artwork."
        )
        try:
            response = await self.client.images.generate(
                model=self.model,
                prompt=optimized_prompt,
                n=1,
                size=self.size,
                quality=self.quality,
                response_format="b64_json",
            )
        except openai.AuthenticationError as exc:
            raise AuthError("invalid API key") from exc
        except openai.RateLimitError as exc:
            if getattr(exc, "code", None) == "insufficient_quota":
                raise ProviderError("quota exhausted, check the billing plan") from exc
            raise RateLimitedError("rate limit reached") from exc
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError("request timed out") from exc
        except openai.APIError as exc:
            raise ProviderError(str(exc)) from exc

        image = response.data[0] if response.data else None
        if image is None or not image.b64_json:
            raise InvalidResponseError("response contained no image")
        return GeneratedImage(
            data=base64.b64decode(image.b64_json),
            mime_type="image/png",
            metadata={
                "size": self.size,
                "quality": self.quality,
                "revisedPrompt": image.revised_prompt,
            },
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
