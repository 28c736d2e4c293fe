"""
Vision Identification Service

Sends a whole shelf/stack photo to Claude and turns the answer into
BookCandidate objects.
"""

import base64
from pathlib import Path
from typing import Optional, Union

import anthropic
from loguru import logger

from booktender.exceptions import IdentificationError, MissingCredentialError
from booktender.identification.candidates import BookCandidate, parse_vision_response
from booktender.storage.credentials import CredentialStore


SYSTEM_PROMPT = """You are a book identification expert. Analyze this photo of books and identify every book visible.

For each book you can identify, provide:
- title: The book's title
- author: The author's name
- spine_text: The exact text you can read on the spine (if visible)
- confidence: "high" (you're very sure), "medium" (likely correct but uncertain), or "low" (best guess based on partial information)
- position: approximate position in the image (e.g., "top-left", "middle-center", "bottom-right") to help the user cross-reference
- isbn: only if an ISBN is printed and legible

If you can see a cover instead of a spine, note that.
If a book is partially obscured, still attempt identification and mark confidence accordingly.
If you cannot identify a book at all, include it as {"title": "Unknown", "confidence": "low", "spine_text": "<whatever text you can read>"} so the user can manually identify it.

Respond ONLY with a JSON array of book objects. No preamble, no markdown fences."""

USER_PROMPT = "Identify all books in this photo."

MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def media_type_for(path: Union[str, Path]) -> str:
    """Media type sent to the vision model, from the file extension."""
    return MEDIA_TYPES.get(Path(path).suffix.lower(), "image/jpeg")


class VisionIdentifier:
    """
    Client for the vision identification service.

    The API key is read from the credential store on every call so that a
    key added mid-session is picked up, and a missing key fails only the
    identification stage.

    Usage:
        identifier = VisionIdentifier(EnvCredentialStore())
        candidates = await identifier.identify(image_bytes, "image/jpeg")
    """

    CREDENTIAL_NAME = "anthropic"

    def __init__(
        self,
        credentials: CredentialStore,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 4096,
        timeout: Optional[float] = 120.0,
        client=None,
    ):
        """
        Initialize vision identifier.

        Args:
            credentials: Store holding the "anthropic" API key
            model: Model identifier
            max_tokens: Maximum output tokens
            timeout: Per-request timeout in seconds
            client: Pre-built AsyncAnthropic-compatible client
        """
        self.credentials = credentials
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client
        self._client_key: Optional[str] = None

    def _get_client(self):
        api_key = self.credentials.get(self.CREDENTIAL_NAME)
        if not api_key:
            raise MissingCredentialError("Anthropic")

        if self._client is None or (
            self._client_key is not None and self._client_key != api_key
        ):
            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=self.timeout,
                max_retries=0,
            )
            self._client_key = api_key
        return self._client

    async def identify(self, image_bytes: bytes, media_type: str = "image/jpeg") -> list[BookCandidate]:
        """
        Identify every book visible in an image.

        Args:
            image_bytes: Raw image file contents
            media_type: Image media type

        Returns:
            Candidates in the order the model listed them

        Raises:
            MissingCredentialError: No API key configured
            IdentificationError: Request failed or answer was unusable
        """
        client = self._get_client()

        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": base64.b64encode(image_bytes).decode("ascii"),
                                },
                            },
                            {"type": "text", "text": USER_PROMPT},
                        ],
                    }
                ],
            )
        except anthropic.APIError as e:
            logger.error(f"Vision request failed: {e}")
            raise IdentificationError(f"Vision request failed: {e}") from e

        text = next(
            (block.text for block in response.content if getattr(block, "type", None) == "text"),
            None,
        )
        if text is None:
            raise IdentificationError("No text response from vision model")

        candidates = parse_vision_response(text)
        logger.info(f"Vision model identified {len(candidates)} book(s)")
        return candidates

    async def identify_file(self, path: Union[str, Path]) -> list[BookCandidate]:
        """Identify books in an image file."""
        path = Path(path)
        return await self.identify(path.read_bytes(), media_type_for(path))

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
