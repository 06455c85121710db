"""Tests for the interactive password changer."""
from __future__ import annotations

import io
import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Mapping
from email.message import Message

import pytest

from neo4jctl.providers.password import (
    DEFAULT_PASSWORD,
    MissingNewPassword,
    PasswordChangeError,
    PasswordChanger,
)


class ScriptedPrompter:
    """Answer prompts from a fixed script and collect everything said."""

    def __init__(self, *answers: str) -> None:
        """Queue *answers*; a blank answer selects the prompt default."""
        self.answers = list(answers)
        self.prompts: list[tuple[str, str | None, bool]] = []
        self.said: list[str] = []

    def ask(self, prompt: str, default: str | None = None, *, secret: bool = False) -> str:
        """Return the next scripted answer."""
        self.prompts.append((prompt, default, secret))
        answer = self.answers.pop(0)
        return answer or (default or "")

    def say(self, message: str) -> None:
        """Record *message*."""
        self.said.append(message)


class FakeResponse(io.BytesIO):
    """Context-managed byte stream standing in for an HTTP response."""


def _changer(
    monkeypatch: pytest.MonkeyPatch,
    prompter: ScriptedPrompter,
    body: Mapping[str, object],
) -> tuple[PasswordChanger, list[tuple[str, str, str]]]:
    calls: list[tuple[str, str, str]] = []

    def fake_post(
        self: PasswordChanger,
        address: str,
        old_password: str,
        new_password: str,
    ) -> Mapping[str, object]:
        calls.append((address, old_password, new_password))
        return body

    monkeypatch.setattr(PasswordChanger, "_post_change", fake_post)
    return PasswordChanger(prompter=prompter), calls


def test_defaults_apply_to_blank_answers(monkeypatch: pytest.MonkeyPatch) -> None:
    """Blank address and current password fall back to their defaults."""
    prompter = ScriptedPrompter("", "", "s3cret")
    changer, calls = _changer(monkeypatch, prompter, {})

    result = changer.run()

    assert calls == [("http://localhost:7474", DEFAULT_PASSWORD, "s3cret")]
    assert result.success is True
    assert result.new_password == "s3cret"
    assert prompter.said == [
        "This will change the password for a Neo4j server",
        "Password changed successfully! Please update your app to use:",
        "username: neo4j",
        "password: s3cret",
    ]


def test_password_prompts_are_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only the password prompts hide the operator's input."""
    prompter = ScriptedPrompter("http://db:7474", "old", "new")
    changer, _ = _changer(monkeypatch, prompter, {})

    changer.run()

    assert [secret for _, _, secret in prompter.prompts] == [False, True, True]


def test_blank_new_password_aborts(monkeypatch: pytest.MonkeyPatch) -> None:
    """A blank new password stops before any request is made."""
    prompter = ScriptedPrompter("", "", "")
    changer, calls = _changer(monkeypatch, prompter, {})

    with pytest.raises(MissingNewPassword, match="A new password is required"):
        changer.run()
    assert calls == []


def test_server_error_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    """The first error message in the response body is shown to the operator."""
    prompter = ScriptedPrompter("", "wrong", "new")
    body = {"errors": [{"code": "Neo.ClientError.Security.Unauthorized", "message": "Invalid"}]}
    changer, _ = _changer(monkeypatch, prompter, body)

    result = changer.run()

    assert result.success is False
    assert result.message == "Invalid"
    assert prompter.said[-1] == "An error was returned: Invalid"


def test_endpoint_quotes_username() -> None:
    """The username is escaped into the endpoint path."""
    changer = PasswordChanger(prompter=ScriptedPrompter(), username="a b")

    assert changer.endpoint("http://db:7474/") == "http://db:7474/user/a%20b/password"


def test_post_sends_form_body(monkeypatch: pytest.MonkeyPatch) -> None:
    """The request is a form POST carrying both passwords."""
    seen: list[urllib.request.Request] = []

    def fake_open(request: urllib.request.Request, *, timeout: float) -> FakeResponse:
        seen.append(request)
        return FakeResponse(b"")

    monkeypatch.setattr("neo4jctl.net.open_url", fake_open)
    changer = PasswordChanger(prompter=ScriptedPrompter())

    result = changer.change("http://db:7474", "neo4j", "fresh")

    assert result.success is True
    (request,) = seen
    assert request.get_method() == "POST"
    assert request.full_url == "http://db:7474/user/neo4j/password"
    assert urllib.parse.parse_qs(request.data.decode("utf-8")) == {
        "password": ["neo4j"],
        "new_password": ["fresh"],
    }


def test_http_error_body_is_decoded(monkeypatch: pytest.MonkeyPatch) -> None:
    """Rejected changes carry their error document in a 4xx response."""
    payload = json.dumps({"errors": [{"message": "Invalid username or password."}]}).encode()

    def fake_open(request: urllib.request.Request, *, timeout: float) -> FakeResponse:
        raise urllib.error.HTTPError(
            request.full_url, 401, "Unauthorized", Message(), io.BytesIO(payload)
        )

    monkeypatch.setattr("neo4jctl.net.open_url", fake_open)
    prompter = ScriptedPrompter()
    changer = PasswordChanger(prompter=prompter)

    result = changer.change("http://db:7474", "bad", "fresh")

    assert result.success is False
    assert prompter.said == ["An error was returned: Invalid username or password."]


def test_unreachable_server_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """Transport failures raise PasswordChangeError."""

    def fake_open(request: urllib.request.Request, *, timeout: float) -> FakeResponse:
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr("neo4jctl.net.open_url", fake_open)
    changer = PasswordChanger(prompter=ScriptedPrompter())

    with pytest.raises(PasswordChangeError, match="Unable to reach"):
        changer.change("http://db:7474", "neo4j", "fresh")


def test_non_json_response_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """A body that is not JSON cannot be interpreted."""
    monkeypatch.setattr(
        "neo4jctl.net.open_url",
        lambda request, *, timeout: FakeResponse(b"<html>oops</html>"),
    )
    changer = PasswordChanger(prompter=ScriptedPrompter())

    with pytest.raises(PasswordChangeError, match="non-JSON"):
        changer.change("http://db:7474", "neo4j", "fresh")


def test_address_without_scheme_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """A bare host name is refused before any request is built."""
    opened: list[urllib.request.Request] = []
    monkeypatch.setattr(
        "neo4jctl.net.open_url",
        lambda request, *, timeout: opened.append(request),
    )
    prompter = ScriptedPrompter("db.example", "neo4j", "fresh")
    changer = PasswordChanger(prompter=prompter)

    with pytest.raises(PasswordChangeError, match="http:// or https://"):
        changer.run()
    assert opened == []
