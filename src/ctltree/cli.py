"""CLI entry point for ctltree."""

from __future__ import annotations

import asyncio
import functools
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape

from ctltree import __version__
from ctltree.client import DEFAULT_TIMEOUT, ControllerError, resolve_endpoints
from ctltree.formatters import render_endpoints, render_tree
from ctltree.logging_setup import configure_logging
from ctltree.models import ControllerNode
from ctltree.prompt import ConsolePrompt, CredentialPromptError
from ctltree.store import CONFIG_ENVVAR, JsonControllerStore, PersistenceError
from ctltree.tree import ControllerTree

console = Console()
err_console = Console(stderr=True)


@dataclass
class _Settings:
    config: Path | None
    insecure: bool
    timeout: float


def _abort(msg: str) -> NoReturn:
    console.print(f"[bold red]Error:[/] {escape(msg)}")
    sys.exit(1)


def _report_controller_error(node: ControllerNode, exc: ControllerError) -> None:
    code = f" ({exc.code})" if exc.code else ""
    err_console.print(f"[bold red]{escape(node.label)}:[/] {escape(exc.message)}{escape(code)}")


def _make_prompt(settings: _Settings, remember: bool | None = None) -> ConsolePrompt:
    return ConsolePrompt(
        resolver=functools.partial(resolve_endpoints, timeout=settings.timeout),
        skip_certificate_validation=settings.insecure,
        remember=remember,
    )


def _make_tree(settings: _Settings, prompt: ConsolePrompt | None = None, **kwargs) -> ControllerTree:
    try:
        return ControllerTree(
            JsonControllerStore(settings.config),
            prompt or _make_prompt(settings),
            resolver=functools.partial(resolve_endpoints, timeout=settings.timeout),
            skip_certificate_validation=settings.insecure,
            **kwargs,
        )
    except PersistenceError as exc:
        _abort(str(exc))


def _controller_data(node: ControllerNode) -> dict:
    return {
        "url": node.url,
        "username": node.username,
        "remember_password": node.remember_password,
        "state": node.state.value,
        "endpoints": [
            {"role": ep.role, "endpoint": ep.address, "description": ep.description}
            for ep in node.endpoints
        ],
    }


@click.group()
@click.option(
    "--config",
    "config",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar=CONFIG_ENVVAR,
    default=None,
    help="Controller list file (default: ~/.config/ctltree/controllers.json).",
)
@click.option(
    "--insecure",
    is_flag=True,
    default=False,
    help="Skip TLS certificate validation when contacting controllers.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Request timeout in seconds.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
@click.version_option(__version__, "--version", "-V")
@click.pass_context
def main(
    ctx: click.Context,
    config: Path | None,
    insecure: bool,
    timeout: float,
    verbose: bool,
) -> None:
    """Register remote controllers and browse the endpoints they publish.

    \b
    Examples:
      ctltree add https://10.0.0.1:30080 admin --remember
      ctltree show --expand
      ctltree expand https://10.0.0.1:30080 admin
      ctltree remove https://10.0.0.1:30080 admin
    """
    configure_logging(verbose)
    ctx.obj = _Settings(config=config, insecure=insecure, timeout=timeout)


@main.command("show")
@click.option("--expand", "expand_all", is_flag=True, default=False, help="Resolve every controller's endpoints.")
@click.option(
    "--output",
    type=click.Choice(["tree", "json"]),
    default="tree",
    help="Output format (default: tree).",
)
@click.pass_obj
def show_cmd(settings: _Settings, expand_all: bool, output: str) -> None:
    """Show registered controllers.

    Controllers without a remembered password are asked for one when
    --expand is given.
    """
    tree = _make_tree(settings, on_error=_report_controller_error)

    if expand_all:

        async def expand_controllers() -> None:
            for node in tree.root.controllers:
                try:
                    await tree.expand(node)
                except CredentialPromptError as exc:
                    err_console.print(f"[bold red]{escape(node.label)}:[/] {escape(exc.message)}")

        try:
            asyncio.run(expand_controllers())
        except PersistenceError as exc:
            _abort(str(exc))

    if output == "json":
        data = [_controller_data(node) for node in tree.root.controllers]
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(render_tree(tree.get_children()))


@main.command("add")
@click.argument("url")
@click.argument("username")
@click.option(
    "--remember/--no-remember",
    default=None,
    help="Store the password in the controller list (asked if omitted).",
)
@click.pass_obj
def add_cmd(settings: _Settings, url: str, username: str, remember: bool | None) -> None:
    """Register the controller at URL, validating the credentials first.

    \b
    Examples:
      ctltree add https://10.0.0.1:30080 admin
      ctltree --insecure add https://10.0.0.1:30080 admin --no-remember
    """
    prompt = _make_prompt(settings, remember=remember)
    tree = _make_tree(settings, prompt=prompt)

    async def register() -> ControllerNode:
        result = await prompt.prompt(url=url, username=username)
        return await tree.add_controller(
            result.url,
            result.username,
            result.password,
            result.remember_password,
            result.endpoints,
        )

    try:
        node = asyncio.run(register())
    except CredentialPromptError as exc:
        _abort(exc.message)
        return
    except PersistenceError as exc:
        _abort(str(exc))
        return

    console.print(f"[bold green]Registered[/] {escape(node.label)}")
    if node.endpoints:
        console.print(f"Default endpoint: {escape(node.endpoints[0].address)}")


@main.command("expand")
@click.argument("url")
@click.argument("username")
@click.option(
    "--output",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format (default: table).",
)
@click.pass_obj
def expand_cmd(settings: _Settings, url: str, username: str, output: str) -> None:
    """Resolve and list the endpoints of one registered controller."""
    tree = _make_tree(settings)
    node = tree.find_controller(url, username)
    if node is None:
        _abort(f"No controller registered for {url} ({username}). Use 'ctltree add' first.")
        return

    try:
        asyncio.run(tree.expand(node))
    except ControllerError as exc:
        code = f" ({exc.code})" if exc.code else ""
        _abort(f"{exc.message}{code}")
        return
    except CredentialPromptError as exc:
        _abort(exc.message)
        return
    except PersistenceError as exc:
        _abort(str(exc))
        return

    if output == "json":
        click.echo(json.dumps(_controller_data(node), indent=2))
    elif not node.endpoints:
        console.print(f"[yellow]No endpoints reported by {escape(node.label)}[/]")
    else:
        console.print(render_endpoints(node))


@main.command("remove")
@click.argument("url")
@click.argument("username")
@click.pass_obj
def remove_cmd(settings: _Settings, url: str, username: str) -> None:
    """Forget a registered controller."""
    tree = _make_tree(settings)
    try:
        removed = tree.remove_controller(url, username)
    except PersistenceError as exc:
        _abort(str(exc))
        return

    if removed:
        console.print(f"[bold green]Removed[/] {escape(url)} ({escape(username)})")
    else:
        console.print(f"[yellow]No controller registered for {escape(url)} ({escape(username)})[/]")
