"""Own the controller tree: add, expand, remove and persist controllers."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable, Iterable
from typing import Protocol

from ctltree.client import ControllerError, resolve_endpoints
from ctltree.models import (
    AddControllerNode,
    ControllerNode,
    Endpoint,
    ExpansionState,
    RootNode,
    TreeNode,
)
from ctltree.prompt import CredentialPrompt, CredentialPromptError, Resolver
from ctltree.store import ControllerStore

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[TreeNode | None], None]
ErrorCallback = Callable[[ControllerNode, ControllerError], None]


class TreeObserver(Protocol):
    def on_changed(self, node: TreeNode | None) -> None: ...


class ControllerTree:
    """The single entry point for reading and mutating the controller tree.

    Observers are told about every change after it has been applied.  A
    ``None`` node means "re-read the whole tree".  Observers run
    synchronously and must not call back into the tree.

    Expansions of the same controller are queued: a second :meth:`expand`
    waits for the first one and then recomputes from scratch.
    """

    def __init__(
        self,
        store: ControllerStore,
        prompt: CredentialPrompt,
        *,
        resolver: Resolver = resolve_endpoints,
        skip_certificate_validation: bool = False,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.root = RootNode()
        self._store = store
        self._prompt = prompt
        self._resolver = resolver
        self._skip_certificate_validation = skip_certificate_validation
        self._on_error = on_error
        self._observers: list[ChangeCallback] = []
        self._notifying = False
        self._locks: weakref.WeakKeyDictionary[ControllerNode, asyncio.Lock] = (
            weakref.WeakKeyDictionary()
        )
        self.load_saved_controllers()

    # -- observers ---------------------------------------------------------

    def subscribe(self, observer: TreeObserver | ChangeCallback) -> Callable[[], None]:
        """Register *observer*; returns a function that unregisters it."""
        on_changed = getattr(observer, "on_changed", None)
        callback: ChangeCallback = on_changed if callable(on_changed) else observer  # type: ignore[assignment]
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self, node: TreeNode | None = None) -> None:
        self._notifying = True
        try:
            for callback in list(self._observers):
                callback(node)
        finally:
            self._notifying = False

    def _check_not_notifying(self) -> None:
        if self._notifying:
            raise RuntimeError("Tree observers must not modify the tree")

    def refresh(self, node: TreeNode | None = None) -> None:
        self._notify(node)

    # -- queries -----------------------------------------------------------

    def get_children(self, node: TreeNode | None = None) -> list[TreeNode]:
        """Children to display under *node* (the root when omitted).

        An empty root yields a single :class:`AddControllerNode` placeholder.
        """
        if node is not None:
            return list(node.children)
        if self.root.has_children:
            return list(self.root.children)
        return [AddControllerNode()]

    def find_controller(self, url: str, username: str) -> ControllerNode | None:
        for controller in self.root.controllers:
            if controller.url == url and controller.username == username:
                return controller
        return None

    # -- persistence -------------------------------------------------------

    def load_saved_controllers(self) -> None:
        """Rebuild the controllers from the store.  Endpoints are not stored.

        Records repeating an earlier ``(url, username)`` are skipped; the
        first one wins.
        """
        self._check_not_notifying()
        records = self._store.load()
        self.root.clear_children()
        seen: set[tuple[str, str]] = set()
        for record in records:
            key = (record.url, record.username)
            if key in seen:
                logger.warning("Skipping duplicate saved controller %s (%s)", record.url, record.username)
                continue
            seen.add(key)
            self.root.add_child(
                ControllerNode(
                    url=record.url,
                    username=record.username,
                    password=record.password,
                    remember_password=record.password is not None,
                    owner=self.root,
                )
            )
        self._notify()

    def save_controllers(self) -> None:
        self._store.save([c.to_record() for c in self.root.controllers])

    # -- mutations ---------------------------------------------------------

    def _lock_for(self, node: ControllerNode) -> asyncio.Lock:
        lock = self._locks.get(node)
        if lock is None:
            lock = self._locks[node] = asyncio.Lock()
        return lock

    async def add_controller(
        self,
        url: str,
        username: str,
        password: str | None,
        remember_password: bool,
        endpoints: Iterable[Endpoint] | None = None,
    ) -> ControllerNode:
        """Register a controller, or update the one already keyed by *url*/*username*.

        An existing node keeps its identity; its password and remember flag
        are overwritten and its endpoints are dropped before any new ones are
        added.  The full controller list is then written to the store.
        """
        self._check_not_notifying()
        endpoints = list(endpoints or [])

        node = self.find_controller(url, username)
        while node is not None:
            async with self._lock_for(node):
                if node in self.root.controllers:
                    node.password = password
                    node.remember_password = remember_password
                    node.clear_children()
                    node.state = ExpansionState.COLLAPSED
                    self._populate(node, endpoints)
                    logger.info("Updated controller %s", node.label)
                    break
            # Removed while we waited for the lock; look it up again.
            node = self.find_controller(url, username)
        if node is None:
            node = ControllerNode(
                url=url,
                username=username,
                password=password,
                remember_password=remember_password,
                owner=self.root,
            )
            self.root.add_child(node)
            self._populate(node, endpoints)
            logger.info("Added controller %s", node.label)

        self._notify()
        self.save_controllers()
        return node

    def remove_controller(self, url: str, username: str) -> bool:
        """Forget a controller.  Returns ``False`` if it was not registered."""
        self._check_not_notifying()
        node = self.find_controller(url, username)
        if node is None:
            return False
        self.root.remove_child(node)
        self._locks.pop(node, None)
        logger.info("Removed controller %s", node.label)
        self._notify()
        self.save_controllers()
        return True

    @staticmethod
    def _populate(node: ControllerNode, endpoints: list[Endpoint]) -> None:
        for endpoint in endpoints:
            node.add_endpoint(endpoint)
        if endpoints:
            node.state = ExpansionState.EXPANDED

    async def expand(self, node: TreeNode) -> list[TreeNode]:
        """Populate *node*'s children and return them.

        Controllers are always re-resolved from scratch.  Raises
        :class:`CredentialPromptError` if credentials had to be asked for and
        the prompt failed.  A :class:`ControllerError` is handed to the
        ``on_error`` callback when one was given, otherwise it is raised.
        """
        self._check_not_notifying()
        match node:
            case ControllerNode():
                async with self._lock_for(node):
                    await self._expand_controller(node)
                return list(node.children)
            case RootNode():
                return list(node.controllers)
            case _:
                return list(node.children)

    async def _expand_controller(self, node: ControllerNode) -> None:
        if node.has_children:
            node.clear_children()
            self._notify(node)

        node.state = ExpansionState.EXPANDING
        if not node.password:
            await self._expand_with_prompt(node)
            return

        try:
            response = await self._resolver(
                node.url, node.username, node.password, self._skip_certificate_validation
            )
        except ControllerError as exc:
            node.state = ExpansionState.FAILED
            if self._on_error is None:
                raise
            self._on_error(node, exc)
            return

        if response is None:
            node.state = ExpansionState.COLLAPSED
            return

        self._populate(node, response.endpoints)
        node.state = ExpansionState.EXPANDED
        self._notify(node)

    async def _expand_with_prompt(self, node: ControllerNode) -> None:
        node.state = ExpansionState.AWAITING_CREDENTIALS
        try:
            result = await self._prompt.prompt(url=node.url, username=node.username)
        except CredentialPromptError:
            node.state = ExpansionState.FAILED
            logger.warning("Credential prompt failed for %s", node.label)
            raise

        node.password = result.password
        remember_changed = bool(node.remember_password) != bool(result.remember_password)
        node.remember_password = bool(result.remember_password)
        self._populate(node, result.endpoints)
        node.state = ExpansionState.EXPANDED
        self._notify(node)
        if remember_changed:
            self.save_controllers()
