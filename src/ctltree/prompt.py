"""Obtain controller credentials from a person."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

import click

from ctltree.client import ControllerError, EndpointsResponse, resolve_endpoints
from ctltree.models import Endpoint

logger = logging.getLogger(__name__)

Resolver = Callable[..., Awaitable[EndpointsResponse | None]]


class CredentialPromptError(Exception):
    """Raised when the credential flow is cancelled or the credentials fail."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass
class PromptResult:
    """Credentials that were accepted by the controller, plus its endpoints."""

    url: str
    username: str
    password: str = field(repr=False)
    remember_password: bool
    endpoints: list[Endpoint]


class CredentialPrompt(Protocol):
    async def prompt(
        self, url: str | None = None, username: str | None = None
    ) -> PromptResult: ...


class ConsolePrompt:
    """Ask on the terminal, then resolve endpoints to validate the answer.

    ``url`` and ``username`` are asked for only when not supplied.  The
    remember flag is asked for unless fixed at construction.
    """

    def __init__(
        self,
        resolver: Resolver = resolve_endpoints,
        skip_certificate_validation: bool = False,
        remember: bool | None = None,
    ) -> None:
        self._resolver = resolver
        self._skip_certificate_validation = skip_certificate_validation
        self._remember = remember

    async def prompt(self, url: str | None = None, username: str | None = None) -> PromptResult:
        try:
            if not url:
                url = click.prompt("Controller URL", type=str)
            if not username:
                username = click.prompt("Username", type=str)
            password = click.prompt(f"Password for {username}", hide_input=True, type=str)
            remember = self._remember
            if remember is None:
                remember = click.confirm("Remember password?", default=False)
        except click.Abort as exc:
            raise CredentialPromptError("Credential entry was cancelled.") from exc

        try:
            response = await self._resolver(
                url, username, password, self._skip_certificate_validation
            )
        except ControllerError as exc:
            raise CredentialPromptError(exc.message or "Failed to reach the controller.") from exc

        if response is None:
            raise CredentialPromptError("URL, username and password are all required.")
        if not response.endpoints:
            raise CredentialPromptError(f"Controller {url} reported no endpoints.")

        logger.info("Credentials for %s (%s) accepted", url, username)
        return PromptResult(
            url=url,
            username=username,
            password=password,
            remember_password=remember,
            endpoints=list(response.endpoints),
        )
