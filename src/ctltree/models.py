"""Data models for ctltree."""

from __future__ import annotations

import enum
import weakref
from dataclasses import InitVar, dataclass, field
from typing import ClassVar


@dataclass(frozen=True)
class Endpoint:
    """One endpoint published by a controller."""

    role: str          # endpoint name, e.g. "sql-server-master"
    address: str       # e.g. "https://10.0.0.4:31433"
    description: str = ""


@dataclass(frozen=True)
class ControllerRecord:
    """A controller as written to durable configuration.

    ``password`` is ``None`` when the password is not remembered.
    """

    url: str
    username: str
    password: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"url": self.url, "username": self.username}
        if self.password is not None:
            data["password"] = self.password
        return data


class ExpansionState(enum.Enum):
    COLLAPSED = "collapsed"
    EXPANDING = "expanding"
    EXPANDED = "expanded"
    AWAITING_CREDENTIALS = "awaiting-credentials"
    FAILED = "failed"


@dataclass(eq=False, kw_only=True)
class TreeNode:
    """Common header shared by every node variant.

    A child is owned by exactly one parent, fixed when the child is built.
    The parent link is a weak reference; ownership flows parent to child.
    """

    owner: InitVar[TreeNode | None] = None
    id: str = field(init=False, default="")
    label: str = field(init=False, default="")
    description: str = field(init=False, default="")
    _children: list[TreeNode] = field(init=False, default_factory=list, repr=False)
    _parent_ref: weakref.ref[TreeNode] | None = field(init=False, default=None, repr=False)

    is_leaf: ClassVar[bool] = False
    node_type: ClassVar[str] = "TreeNode"

    def __post_init__(self, owner: TreeNode | None) -> None:
        self._parent_ref = weakref.ref(owner) if owner is not None else None

    @property
    def parent(self) -> TreeNode | None:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def has_children(self) -> bool:
        return len(self._children) > 0

    @property
    def children(self) -> tuple[TreeNode, ...]:
        """Snapshot of the current children, in insertion order."""
        return tuple(self._children)

    def add_child(self, child: TreeNode) -> None:
        if self.is_leaf:
            raise ValueError(f"{self.node_type} {self.label!r} cannot have children")
        if child.parent is not self:
            raise ValueError(f"{child.label!r} is owned by another node")
        self._children.append(child)

    def remove_child(self, child: TreeNode) -> None:
        self._children.remove(child)

    def clear_children(self) -> None:
        self._children.clear()


@dataclass(eq=False, kw_only=True)
class RootNode(TreeNode):
    """The single root; its children are :class:`ControllerNode` objects."""

    node_type: ClassVar[str] = "ControllerRoot"

    def __post_init__(self, owner: TreeNode | None) -> None:
        super().__post_init__(None)
        self.id = self.label = self.description = "root"

    @property
    def controllers(self) -> list[ControllerNode]:
        return [c for c in self._children if isinstance(c, ControllerNode)]


@dataclass(eq=False, kw_only=True)
class ControllerNode(TreeNode):
    """A registered controller, keyed by ``(url, username)``."""

    url: str
    username: str
    password: str | None = field(default=None, repr=False)
    remember_password: bool = False
    state: ExpansionState = field(init=False, default=ExpansionState.COLLAPSED)

    node_type: ClassVar[str] = "ControllerNode"

    def __post_init__(self, owner: TreeNode | None) -> None:
        super().__post_init__(owner)
        label = f"{self.url} ({self.username})"
        self.id = self.label = self.description = label

    @property
    def key(self) -> tuple[str, str]:
        return (self.url, self.username)

    @property
    def endpoints(self) -> list[EndpointNode]:
        return [c for c in self._children if isinstance(c, EndpointNode)]

    def add_endpoint(self, endpoint: Endpoint) -> EndpointNode:
        node = EndpointNode(
            role=endpoint.role,
            address=endpoint.address,
            endpoint_description=endpoint.description,
            owner=self,
        )
        self.add_child(node)
        return node

    def to_record(self) -> ControllerRecord:
        return ControllerRecord(
            url=self.url,
            username=self.username,
            password=self.password if self.remember_password else None,
        )


@dataclass(eq=False, kw_only=True)
class EndpointNode(TreeNode):
    """A leaf describing one endpoint of its parent controller."""

    role: str
    address: str
    endpoint_description: InitVar[str] = ""

    is_leaf: ClassVar[bool] = True
    node_type: ClassVar[str] = "EndPointNode"

    def __post_init__(self, owner: TreeNode | None, endpoint_description: str = "") -> None:
        super().__post_init__(owner)
        self.id = self.label = f"{self.role}: {self.address}"
        self.description = endpoint_description

    def to_endpoint(self) -> Endpoint:
        return Endpoint(role=self.role, address=self.address, description=self.description)


@dataclass(eq=False, kw_only=True)
class AddControllerNode(TreeNode):
    """Placeholder shown in place of an empty root.  Never persisted."""

    is_leaf: ClassVar[bool] = True
    node_type: ClassVar[str] = "AddControllerNode"

    def __post_init__(self, owner: TreeNode | None) -> None:
        super().__post_init__(owner)
        self.id = "add-controller"
        self.label = "Add controller"
        self.description = "Register a controller to browse its endpoints"
