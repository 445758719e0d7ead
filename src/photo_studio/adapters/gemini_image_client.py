"""Google Gemini image generation client."""

from dataclasses import dataclass

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from photo_studio.services.assets import SourceImage
from photo_studio.services.providers import (
    AuthError,
    GeneratedImage,
    ImageClient,
    InvalidResponseError,
    ProviderError,
    RateLimitedError,
)

_IMAGE_PROMPT = (
    "Based on this reference image, generate a new image that transforms the "
    "subject according to this description: {prompt}.\n\n"
    "Maintain the person's facial features, expressions, and basic appearance, "
    "but completely transform their style, clothing, and environment as "
    "described. Create a high-quality, detailed, photorealistic result.\n\n"
    "Generate the image now."
)


@dataclass
class GeminiImageClient(ImageClient):
    """Image-conditioned client using Gemini's native image output."""

    client: genai.Client
    model: str = "gemini-2.5-flash-image-preview"

    @classmethod
    def create(cls, api_key: str, model: str) -> "GeminiImageClient":
        """Create a Gemini client."""
        return cls(client=genai.Client(api_key=api_key), model=model)

    async def generate(self, prompt: str, source: SourceImage | None) -> GeneratedImage:
        """Send the prompt with the inline source photo and return the image part."""
        contents: list[object] = [_IMAGE_PROMPT.format(prompt=prompt)]
        if source is not None:
            contents.append(
                types.Part.from_bytes(data=source.data, mime_type=source.mime_type)
            )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model, contents=contents
            )
        except genai_errors.APIError as exc:
            if exc.code in {401, 403}:
                raise AuthError("invalid API key") from exc
            if exc.code == 429:
                raise RateLimitedError("rate limit reached") from exc
            raise ProviderError(exc.message or str(exc)) from exc

        for candidate in response.candidates or []:
            parts = candidate.content.parts if candidate.content else None
            for part in parts or []:
                inline = part.inline_data
                if inline and inline.data and (inline.mime_type or "").startswith(
                    "image/"
                ):
                    finish_reason = candidate.finish_reason
                    return GeneratedImage(
                        data=inline.data,
                        mime_type=inline.mime_type or "image/png",
                        metadata={
                            "finishReason": str(finish_reason) if finish_reason else None
                        },
                    )
        raise InvalidResponseError("model returned text instead of an image")
