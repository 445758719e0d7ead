"""Tests for configuration helpers."""

import pytest

from photo_studio.config import parse_provider_names


@pytest.mark.parametrize("raw", [None, "", "  ", "*", ", ,"])
def test_parse_provider_names_allows_everything(raw: str | None) -> None:
    assert parse_provider_names(raw) is None


def test_parse_provider_names_normalizes_list() -> None:
    assert parse_provider_names(" Gemini, openai ,,") == {"gemini", "openai"}
