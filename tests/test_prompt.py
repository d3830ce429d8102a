"""Tests for ctltree.prompt."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import click
import pytest
from conftest import FakeResolver

from ctltree.client import ControllerError
from ctltree.prompt import ConsolePrompt, CredentialPromptError


def _run(prompt: ConsolePrompt, answers: list[str], confirm: bool = False, **kwargs):
    with patch("ctltree.prompt.click.prompt", side_effect=answers) as mock_prompt:
        with patch("ctltree.prompt.click.confirm", return_value=confirm) as mock_confirm:
            result = asyncio.run(prompt.prompt(**kwargs))
    return result, mock_prompt, mock_confirm


class TestConsolePrompt:
    def test_known_identity_asks_only_for_password(self, endpoints):
        resolver = FakeResolver(endpoints=endpoints)
        prompt = ConsolePrompt(resolver=resolver)

        result, mock_prompt, _ = _run(prompt, ["secret"], confirm=True, url="https://c1", username="admin")

        assert mock_prompt.call_count == 1
        assert mock_prompt.call_args.kwargs["hide_input"] is True
        assert result.url == "https://c1"
        assert result.username == "admin"
        assert result.password == "secret"
        assert result.remember_password is True
        assert result.endpoints == endpoints
        assert resolver.calls == [("https://c1", "admin", "secret", False)]

    def test_asks_for_everything_without_defaults(self, endpoints):
        prompt = ConsolePrompt(resolver=FakeResolver(endpoints=endpoints))
        result, mock_prompt, _ = _run(prompt, ["https://c9", "ops", "secret"])
        assert mock_prompt.call_count == 3
        assert (result.url, result.username) == ("https://c9", "ops")
        assert result.remember_password is False

    def test_fixed_remember_flag_skips_confirm(self, endpoints):
        prompt = ConsolePrompt(resolver=FakeResolver(endpoints=endpoints), remember=True)
        result, _, mock_confirm = _run(prompt, ["secret"], url="https://c1", username="admin")
        mock_confirm.assert_not_called()
        assert result.remember_password is True

    def test_passes_certificate_flag(self, endpoints):
        resolver = FakeResolver(endpoints=endpoints)
        prompt = ConsolePrompt(resolver=resolver, skip_certificate_validation=True)
        _run(prompt, ["secret"], url="https://c1", username="admin")
        assert resolver.calls[0][3] is True

    def test_controller_error_becomes_prompt_error(self):
        prompt = ConsolePrompt(resolver=FakeResolver(error=ControllerError("Unauthorized", code="401")))
        with pytest.raises(CredentialPromptError, match="Unauthorized"):
            _run(prompt, ["wrong"], url="https://c1", username="admin")

    def test_empty_endpoint_list_is_an_error(self):
        prompt = ConsolePrompt(resolver=FakeResolver(endpoints=[]))
        with pytest.raises(CredentialPromptError, match="no endpoints"):
            _run(prompt, ["secret"], url="https://c1", username="admin")

    def test_missing_result_is_an_error(self):
        prompt = ConsolePrompt(resolver=FakeResolver(endpoints=None))
        with pytest.raises(CredentialPromptError, match="required"):
            _run(prompt, ["secret"], url="https://c1", username="admin")

    def test_abort_is_an_error(self):
        prompt = ConsolePrompt(resolver=FakeResolver(endpoints=[]))
        with pytest.raises(CredentialPromptError, match="cancelled"):
            _run(prompt, [click.Abort()], url="https://c1", username="admin")
