"""
Unit tests for the vision identification client.
"""

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import anthropic
import httpx
import pytest

from booktender.exceptions import IdentificationError, MissingCredentialError
from booktender.identification.candidates import Confidence
from booktender.identification.vision import (
    SYSTEM_PROMPT,
    VisionIdentifier,
    media_type_for,
)
from booktender.storage.credentials import InMemoryCredentialStore


def text_response(text: str):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture
def mock_client():
    """AsyncAnthropic-shaped mock."""
    client = Mock()
    client.messages.create = AsyncMock(return_value=text_response(
        '[{"title": "Dune", "author": "Frank Herbert", "confidence": "high"}]'
    ))
    client.close = AsyncMock()
    return client


class TestMediaType:
    """Tests for media type detection."""

    @pytest.mark.parametrize("name,expected", [
        ("shelf.jpg", "image/jpeg"),
        ("shelf.JPEG", "image/jpeg"),
        ("shelf.png", "image/png"),
        ("shelf.webp", "image/webp"),
        ("shelf.gif", "image/gif"),
        ("shelf.heic", "image/jpeg"),
        ("shelf", "image/jpeg"),
    ])
    def test_media_type_for(self, name, expected):
        assert media_type_for(name) == expected


class TestVisionIdentifier:
    """Tests for VisionIdentifier with a mocked SDK client."""

    async def test_identify(self, credentials, mock_client):
        identifier = VisionIdentifier(credentials, client=mock_client)

        candidates = await identifier.identify(b"fake-image", "image/png")

        assert len(candidates) == 1
        assert candidates[0].title == "Dune"
        assert candidates[0].confidence == Confidence.HIGH

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-20250514"
        assert kwargs["max_tokens"] == 4096
        assert kwargs["system"] == SYSTEM_PROMPT

        image = kwargs["messages"][0]["content"][0]
        assert image["type"] == "image"
        assert image["source"]["media_type"] == "image/png"
        assert base64.b64decode(image["source"]["data"]) == b"fake-image"

    async def test_missing_credential(self, mock_client):
        identifier = VisionIdentifier(InMemoryCredentialStore(), client=mock_client)

        with pytest.raises(MissingCredentialError) as exc_info:
            await identifier.identify(b"fake-image")

        assert exc_info.value.message == "Anthropic API key not configured"
        mock_client.messages.create.assert_not_called()

    async def test_api_error_is_translated(self, credentials, mock_client):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client.messages.create.side_effect = anthropic.APIConnectionError(request=request)
        identifier = VisionIdentifier(credentials, client=mock_client)

        with pytest.raises(IdentificationError):
            await identifier.identify(b"fake-image")

    async def test_no_text_block(self, credentials, mock_client):
        mock_client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="tool_use")]
        )
        identifier = VisionIdentifier(credentials, client=mock_client)

        with pytest.raises(IdentificationError):
            await identifier.identify(b"fake-image")

    async def test_malformed_answer(self, credentials, mock_client):
        mock_client.messages.create.return_value = text_response("I see three books.")
        identifier = VisionIdentifier(credentials, client=mock_client)

        with pytest.raises(IdentificationError):
            await identifier.identify(b"fake-image")

    async def test_identify_file(self, credentials, mock_client, tmp_path):
        path = tmp_path / "shelf.webp"
        path.write_bytes(b"webp-bytes")
        identifier = VisionIdentifier(credentials, client=mock_client)

        await identifier.identify_file(path)

        image = mock_client.messages.create.call_args.kwargs["messages"][0]["content"][0]
        assert image["source"]["media_type"] == "image/webp"

    async def test_close(self, credentials, mock_client):
        identifier = VisionIdentifier(credentials, client=mock_client)

        await identifier.close()

        mock_client.close.assert_awaited_once()
