"""Interactive password rotation against a running Neo4j HTTP endpoint."""
from __future__ import annotations

import json
import urllib.error
import urllib.parse
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from rich.console import Console
from rich.prompt import Prompt

from .. import net
from ..config import DEFAULT_SERVER_ADDRESS

DEFAULT_PASSWORD = "neo4j"


class PasswordChangeError(RuntimeError):
    """Raised when the password-change request cannot be completed."""


class MissingNewPassword(PasswordChangeError):
    """Raised when the operator leaves the new password blank."""


class Prompter(Protocol):
    """Input/output port used by :class:`PasswordChanger`."""

    def ask(self, prompt: str, default: str | None = None, *, secret: bool = False) -> str:
        """Return the operator's answer, or *default* when the answer is blank."""
        ...

    def say(self, message: str) -> None:
        """Show *message* to the operator."""
        ...


class ConsolePrompter:
    """:class:`Prompter` backed by ``rich`` prompts on a console."""

    def __init__(self, console: Console | None = None) -> None:
        """Bind the prompter to *console* (a fresh one when omitted)."""
        self.console = console or Console()

    def ask(self, prompt: str, default: str | None = None, *, secret: bool = False) -> str:
        """Prompt on the console; blank answers fall back to *default*."""
        answer = Prompt.ask(
            prompt,
            console=self.console,
            default=default or "",
            show_default=bool(default) and not secret,
            password=secret,
        )
        answer = answer.strip()
        return answer or (default or "")

    def say(self, message: str) -> None:
        """Print *message* on the console."""
        self.console.print(message)


@dataclass(frozen=True, slots=True)
class PasswordChangeResult:
    """Outcome of a password-change request."""

    success: bool
    message: str
    address: str
    username: str
    new_password: str | None = None


@dataclass(slots=True)
class PasswordChanger:
    """Collect credentials and POST them to ``/user/<username>/password``."""

    prompter: Prompter
    default_address: str = DEFAULT_SERVER_ADDRESS
    username: str = "neo4j"
    timeout: float = 30.0

    def run(self) -> PasswordChangeResult:
        """Prompt for address and passwords, then submit the change."""
        self.prompter.say("This will change the password for a Neo4j server")

        address = self.prompter.ask(
            "Enter the server address (protocol, host and port)",
            self.default_address,
        )
        old_password = self.prompter.ask(
            "Input current password. Leave blank for a fresh installation",
            DEFAULT_PASSWORD,
            secret=True,
        )
        new_password = self.prompter.ask("Input new password.", secret=True)
        if not new_password:
            raise MissingNewPassword("A new password is required")

        return self.change(address, old_password, new_password)

    def change(self, address: str, old_password: str, new_password: str) -> PasswordChangeResult:
        """Submit the change and report the server's verdict."""
        address = address.strip().rstrip("/")
        if not address.startswith(("http://", "https://")):
            raise PasswordChangeError(
                f"Server address must include http:// or https://. Got {address!r}."
            )
        body = self._post_change(address, old_password, new_password)

        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            message = _error_message(errors[0])
            self.prompter.say(f"An error was returned: {message}")
            return PasswordChangeResult(
                success=False,
                message=message,
                address=address,
                username=self.username,
            )

        self.prompter.say("Password changed successfully! Please update your app to use:")
        self.prompter.say(f"username: {self.username}")
        self.prompter.say(f"password: {new_password}")
        return PasswordChangeResult(
            success=True,
            message="Password changed.",
            address=address,
            username=self.username,
            new_password=new_password,
        )

    def endpoint(self, address: str) -> str:
        """Return the password-change URL for *address*."""
        user = urllib.parse.quote(self.username, safe="")
        return f"{address.rstrip('/')}/user/{user}/password"

    def _post_change(
        self,
        address: str,
        old_password: str,
        new_password: str,
    ) -> Mapping[str, object]:
        """POST the form and return the decoded JSON body (isolated for testing)."""
        url = self.endpoint(address)
        data = urllib.parse.urlencode(
            {"password": old_password, "new_password": new_password}
        ).encode("utf-8")
        request = net.build_request(
            url,
            method="POST",
            data=data,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )
        try:
            with net.open_url(request, timeout=self.timeout) as response:
                payload = response.read()
        except urllib.error.HTTPError as exc:
            # Neo4j answers rejected changes with a 4xx status and a JSON body.
            payload = exc.read()
        except (urllib.error.URLError, OSError) as exc:
            raise PasswordChangeError(f"Unable to reach {url}: {exc}") from exc
        return _decode_body(payload, url)


def _decode_body(payload: bytes, url: str) -> Mapping[str, object]:
    text = payload.decode("utf-8", errors="replace").strip()
    if not text:
        return {}
    try:
        body = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PasswordChangeError(f"{url} returned a non-JSON response.") from exc
    if not isinstance(body, Mapping):
        raise PasswordChangeError(f"{url} returned an unexpected JSON document.")
    return body


def _error_message(error: object) -> str:
    if isinstance(error, Mapping):
        message = error.get("message")
        if message is not None:
            return str(message)
    return str(error)


__all__ = [
    "ConsolePrompter",
    "DEFAULT_PASSWORD",
    "MissingNewPassword",
    "PasswordChangeError",
    "PasswordChangeResult",
    "PasswordChanger",
    "Prompter",
]
