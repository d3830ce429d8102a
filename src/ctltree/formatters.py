"""Rich-based formatters for ctltree output."""

from __future__ import annotations

from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from ctltree.models import (
    AddControllerNode,
    ControllerNode,
    EndpointNode,
    ExpansionState,
    TreeNode,
)

_MAX_DESCRIPTION_LEN = 60

_STATE_STYLES = {
    ExpansionState.COLLAPSED: ("collapsed", "dim"),
    ExpansionState.EXPANDING: ("expanding", "yellow"),
    ExpansionState.EXPANDED: ("expanded", "green"),
    ExpansionState.AWAITING_CREDENTIALS: ("needs credentials", "yellow"),
    ExpansionState.FAILED: ("failed", "red"),
}


def _truncate(value: str) -> str:
    if len(value) <= _MAX_DESCRIPTION_LEN:
        return value
    return value[:_MAX_DESCRIPTION_LEN] + "…"


def _controller_label(node: ControllerNode) -> Text:
    state, style = _STATE_STYLES[node.state]
    label = Text()
    label.append(node.url, style="bold blue")
    label.append(f" ({node.username})", style="blue")
    label.append(f"  [{state}]", style=style)
    if node.remember_password:
        label.append("  [remembered]", style="dim")
    return label


def _endpoint_label(node: EndpointNode) -> Text:
    label = Text()
    label.append(node.role, style="bold green")
    label.append(f": {node.address}")
    if node.description:
        label.append(f"  {_truncate(node.description)}", style="dim italic")
    return label


def _node_label(node: TreeNode) -> Text:
    match node:
        case ControllerNode():
            return _controller_label(node)
        case EndpointNode():
            return _endpoint_label(node)
        case AddControllerNode():
            return Text(f"{node.label}  (ctltree add URL USERNAME)", style="dim italic")
    return Text(node.label)


def render_tree(children: list[TreeNode], title: str = "Controllers") -> Tree:
    """Render display children of the root (see ``ControllerTree.get_children``).

    Args:
        children: Top-level nodes; may be a single placeholder node.
        title: Label of the Rich tree root.

    Returns:
        A :class:`rich.tree.Tree` ready to be printed.
    """
    rich_root = Tree(Text(title, style="bold white"))
    for node in children:
        branch = rich_root.add(_node_label(node))
        for child in node.children:
            branch.add(_node_label(child))
    return rich_root


def render_endpoints(controller: ControllerNode) -> Table:
    """Render a controller's endpoints as a table, first (default) endpoint on top."""
    table = Table(title=f"Endpoints: {controller.label}", show_lines=False)
    table.add_column("Role", style="cyan")
    table.add_column("Endpoint", style="green")
    table.add_column("Description", style="dim")

    for endpoint in controller.endpoints:
        table.add_row(endpoint.role, endpoint.address, _truncate(endpoint.description))

    return table
