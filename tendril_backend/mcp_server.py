#!/usr/bin/env python3
"""
Tendril Diagram MCP Server

Provides MCP tools for AI agents to interact with the diagram editor.
All changes are immediately reflected in connected canvases via WebSocket updates.
"""

import json
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

from .config import Settings

# Create MCP server
mcp = FastMCP("tendril-diagram")


class DiagramApiError(Exception):
    """Raised when the backend answers with an error status."""


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the diagram backend."""
    url = f"{Settings.from_env().api_url}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json"), params=kwargs.get("params"))
        elif method == "PATCH":
            response = client.patch(url, json=kwargs.get("json"))
        elif method == "DELETE":
            response = client.delete(url)
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            raise DiagramApiError(f"API error: {error}")

        if response.headers.get("content-type", "").startswith("application/json"):
            return response.json()
        return {"text": response.text}


def _out(result: dict) -> str:
    return json.dumps(result, indent=2)


# ============================================================================
# DIAGRAM TOOLS
# ============================================================================

@mcp.tool()
def diagram_get_current() -> str:
    """
    Get the full current editor state.

    Returns the current diagram (elements, tendrils, edges, bounding boxes),
    the navigation stack, the selection and the tendrils propagated to each
    node from its nested diagram. Use this before making changes.
    """
    return _out(api_request("GET", "/diagram"))


@mcp.tool()
def diagram_new(name: str = "New Diagram") -> str:
    """
    Start a new empty diagram tree.

    Args:
        name: Name for the root diagram
    """
    return _out(api_request("POST", "/diagram/new", params={"name": name}))


@mcp.tool()
def diagram_rename(name: str) -> str:
    """Rename the diagram currently being edited."""
    return _out(api_request("PATCH", "/diagram", json={"name": name}))


@mcp.tool()
def diagram_export() -> str:
    """Serialize the whole tree, nested diagrams inlined, as JSON text."""
    return api_request("GET", "/diagram/export")["text"]


@mcp.tool()
def diagram_import(text: str) -> str:
    """
    Replace the diagram tree with serialized JSON text.

    Args:
        text: Output of diagram_export (or a file saved by the editor)
    """
    return _out(api_request("POST", "/diagram/import", json={"text": text}))


@mcp.tool()
def diagram_save() -> str:
    """Save the diagram tree through the backend's configured storage."""
    return _out(api_request("POST", "/diagram/save"))


@mcp.tool()
def diagram_validate() -> str:
    """
    Check the diagram tree for structural problems.

    Reports dangling edges, wrong-direction edges, tendrils off their
    element's border and nested diagrams no node points to.
    """
    return _out(api_request("GET", "/diagram/validate"))


# ============================================================================
# NAVIGATION TOOLS
# ============================================================================

@mcp.tool()
def diagram_create_inner(node_id: str) -> str:
    """
    Give a node its own nested diagram (returns the existing one if present).

    Args:
        node_id: Node in the current diagram
    """
    return _out(api_request("POST", f"/nodes/{node_id}/inner-diagram"))


@mcp.tool()
def diagram_enter(node_id: str) -> str:
    """
    Drill into a node's nested diagram; later edits apply inside it.

    Args:
        node_id: Node in the current diagram that owns a nested diagram
    """
    return _out(api_request("POST", "/navigation/enter", json={"node_id": node_id}))


@mcp.tool()
def diagram_leave() -> str:
    """Go back up to the parent diagram."""
    return _out(api_request("POST", "/navigation/leave"))


# ============================================================================
# ELEMENT TOOLS
# ============================================================================

@mcp.tool()
def diagram_add_node(
    label: str,
    x: float = 0,
    y: float = 0,
    width: float = 100,
    height: float = 60,
    shape: str = "rectangle",
    fill_color: str = "#ffffff",
    border_color: str = "#000000",
    notes: str = ""
) -> str:
    """
    Create a new node in the current diagram.

    Args:
        label: Display text for the node
        x: X coordinate on canvas
        y: Y coordinate on canvas
        width: Node width in pixels
        height: Node height in pixels
        shape: Visual shape (rectangle, circle, pill, cylinder, diamond, ...)
        fill_color: Hex fill color
        border_color: Hex border color
        notes: Free-form notes

    Returns the created node with its generated ID.
    """
    return _out(api_request("POST", "/nodes", json={
        "label": label,
        "x": x,
        "y": y,
        "width": width,
        "height": height,
        "shape": shape,
        "fill_color": fill_color,
        "border_color": border_color,
        "notes": notes
    }))


@mcp.tool()
def diagram_update_element(
    element_id: str,
    label: Optional[str] = None,
    x: Optional[float] = None,
    y: Optional[float] = None,
    width: Optional[float] = None,
    height: Optional[float] = None,
    fill_color: Optional[str] = None,
    border_color: Optional[str] = None,
    notes: Optional[str] = None
) -> str:
    """
    Modify a node or SVG image.

    Resizing respaces the element's tendrils along its left (incoming) and
    right (outgoing) borders. Only provided fields are updated.
    """
    updates = {
        key: value for key, value in {
            "label": label,
            "x": x,
            "y": y,
            "width": width,
            "height": height,
            "fill_color": fill_color,
            "border_color": border_color,
            "notes": notes,
        }.items() if value is not None
    }
    return _out(api_request("PATCH", f"/elements/{element_id}", json=updates))


@mcp.tool()
def diagram_delete_element(element_id: str) -> str:
    """
    Remove an element together with every edge connected to it.

    A deleted node's nested diagrams are removed as well.
    """
    return _out(api_request("DELETE", f"/elements/{element_id}"))


@mcp.tool()
def diagram_add_bounding_box(
    label: str = "Group",
    x: float = 0,
    y: float = 0,
    width: float = 200,
    height: float = 150,
    rounded: bool = False
) -> str:
    """Draw a grouping rectangle in the current diagram."""
    return _out(api_request("POST", "/bounding-boxes", json={
        "label": label,
        "x": x,
        "y": y,
        "width": width,
        "height": height,
        "rounded": rounded
    }))


# ============================================================================
# TENDRIL TOOLS
# ============================================================================

@mcp.tool()
def diagram_add_tendril(
    element_id: str,
    tendril_type: str,
    name: str = "New Tendril",
    exposed: bool = False,
    x: Optional[float] = None,
    y: Optional[float] = None
) -> str:
    """
    Add a connection point to an element.

    Args:
        element_id: Node or SVG image receiving the tendril
        tendril_type: "incoming" or "outgoing"; edges run outgoing -> incoming
        name: Tendril name
        exposed: Show this tendril on the parent node when inside a nested diagram
        x: Relative X; with y, snapped to the nearest border. Omit both to auto-place
        y: Relative Y
    """
    data = {"type": tendril_type, "name": name, "exposed": exposed}
    if x is not None and y is not None:
        data["position"] = {"x": x, "y": y}
    return _out(api_request("POST", f"/elements/{element_id}/tendrils", json=data))


@mcp.tool()
def diagram_update_tendril(
    element_id: str,
    tendril_id: str,
    name: Optional[str] = None,
    exposed: Optional[bool] = None
) -> str:
    """Rename a tendril or toggle whether it is exposed to the parent level."""
    updates = {}
    if name is not None:
        updates["name"] = name
    if exposed is not None:
        updates["exposed"] = exposed
    return _out(api_request("PATCH", f"/elements/{element_id}/tendrils/{tendril_id}", json=updates))


@mcp.tool()
def diagram_delete_tendril(element_id: str, tendril_id: str) -> str:
    """Remove a tendril and the edges attached to it."""
    return _out(api_request("DELETE", f"/elements/{element_id}/tendrils/{tendril_id}"))


@mcp.tool()
def diagram_exposed_tendrils(node_id: str) -> str:
    """
    List the tendrils a node republishes from its nested diagram.

    Their ids have the form "<inner element id>-<tendril id>" and can be
    used as edge endpoints on the node.
    """
    return _out(api_request("GET", f"/nodes/{node_id}/exposed-tendrils"))


# ============================================================================
# EDGE TOOLS
# ============================================================================

@mcp.tool()
def diagram_add_edge(
    from_node_id: str,
    from_tendril_id: str,
    to_node_id: str,
    to_tendril_id: str,
    name: Optional[str] = None
) -> str:
    """
    Connect an outgoing tendril to an incoming tendril.

    The call succeeds with success=false when the tendrils cannot be
    connected (wrong directions, unknown ids, or both on the same element).
    """
    return _out(api_request("POST", "/edges", json={
        "from_node_id": from_node_id,
        "from_tendril_id": from_tendril_id,
        "to_node_id": to_node_id,
        "to_tendril_id": to_tendril_id,
        "name": name
    }))


@mcp.tool()
def diagram_delete_edge(edge_id: str) -> str:
    """Remove an edge."""
    return _out(api_request("DELETE", f"/edges/{edge_id}"))


# ============================================================================
# SELECTION TOOLS
# ============================================================================

@mcp.tool()
def diagram_select(category: str, item_id: Optional[str] = None, multi_select: bool = False) -> str:
    """
    Select an item so the canvas highlights it.

    Args:
        category: node, bounding_box, svg_image or edge
        item_id: Item to select; omit to clear the category
        multi_select: Toggle the item within the current selection instead of replacing it
    """
    return _out(api_request("POST", "/selection", json={
        "category": category,
        "id": item_id,
        "multi_select": multi_select
    }))


@mcp.tool()
def diagram_clear_selection() -> str:
    """Clear every selection."""
    return _out(api_request("DELETE", "/selection"))


# ============================================================================
# MAIN
# ============================================================================

def main():
    mcp.run()


if __name__ == "__main__":
    main()
