#!/usr/bin/env python3
"""Tendril diagram CLI - run the editor backend or drive it over HTTP."""

import argparse
import json
import sys
import urllib.error
import urllib.parse
import urllib.request

from .config import Settings


def _api_base() -> str:
    return Settings.from_env().api_url


def _json_out(data):
    print(json.dumps(data))
    sys.exit(0)


def _error_out(message):
    print(json.dumps({"status": "error", "error": message}))
    sys.exit(1)


def _api_request(method, endpoint, data=None, params=None):
    """Make a request to the diagram backend and return the decoded JSON body."""
    url = f"{_api_base()}{endpoint}"

    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            url = f"{url}?{urllib.parse.urlencode(filtered)}"

    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            raw = response.read().decode()
            content_type = response.headers.get("Content-Type", "")
            if content_type.startswith("application/json"):
                return json.loads(raw)
            return raw
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            error_data = json.loads(error_body)
            _error_out(f"API error: {error_data.get('detail', 'Unknown error')}")
        except json.JSONDecodeError:
            _error_out(f"API error ({e.code}): {error_body}")
    except urllib.error.URLError as e:
        _error_out(f"Connection failed: {e.reason}. Is the diagram backend running?")


def _parse_point(value):
    """Parse 'x,y' into a position dict, or None."""
    if value is None:
        return None
    try:
        x, y = (float(part) for part in value.split(","))
    except ValueError:
        _error_out(f"Expected a point as 'x,y', got {value!r}")
    return {"x": x, "y": y}


def _updates(args, names):
    return {name: getattr(args, name) for name in names if getattr(args, name) is not None}


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    from .main import run
    run(host=args.host, port=args.port)


# ── Diagram ──────────────────────────────────────────────────────────────────

def cmd_get_current(args):
    _json_out(_api_request("GET", "/diagram"))


def cmd_list_diagrams(args):
    _json_out(_api_request("GET", "/diagrams"))


def cmd_new(args):
    _json_out(_api_request("POST", "/diagram/new", params={"name": args.name}))


def cmd_rename(args):
    _json_out(_api_request("PATCH", "/diagram", data={"name": args.name}))


def cmd_export(args):
    text = _api_request("GET", "/diagram/export")
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(text)
        _json_out({"success": True, "file_path": args.output})
    print(text)
    sys.exit(0)


def cmd_import(args):
    with open(args.input, "r", encoding="utf-8") as f:
        text = f.read()
    _json_out(_api_request("POST", "/diagram/import", data={"text": text}))


def cmd_save(args):
    _json_out(_api_request("POST", "/diagram/save"))


def cmd_load(args):
    _json_out(_api_request("POST", "/diagram/load"))


def cmd_validate(args):
    _json_out(_api_request("GET", "/diagram/validate"))


# ── Navigation ───────────────────────────────────────────────────────────────

def cmd_create_inner(args):
    _json_out(_api_request("POST", f"/nodes/{args.node_id}/inner-diagram"))


def cmd_enter(args):
    _json_out(_api_request("POST", "/navigation/enter", data={"node_id": args.node_id}))


def cmd_leave(args):
    _json_out(_api_request("POST", "/navigation/leave"))


# ── Elements ─────────────────────────────────────────────────────────────────

def cmd_add_node(args):
    _json_out(_api_request("POST", "/nodes", data={
        "label": args.label,
        "x": args.x,
        "y": args.y,
        "width": args.width,
        "height": args.height,
        "shape": args.shape,
        "border_color": args.border_color,
        "fill_color": args.fill_color,
        "notes": args.notes or "",
    }))


def cmd_add_svg(args):
    with open(args.file, "r", encoding="utf-8") as f:
        svg_content = f.read()
    _json_out(_api_request("POST", "/svg-images", data={
        "svg_content": svg_content,
        "file_name": args.file,
        "label": args.label or "",
        "x": args.x,
        "y": args.y,
        "width": args.width,
        "height": args.height,
    }))


def cmd_update_element(args):
    updates = _updates(args, (
        "label", "x", "y", "width", "height", "shape",
        "border_color", "fill_color", "notes",
    ))
    _json_out(_api_request("PATCH", f"/elements/{args.element_id}", data=updates))


def cmd_delete_element(args):
    _json_out(_api_request("DELETE", f"/elements/{args.element_id}"))


def cmd_add_bbox(args):
    _json_out(_api_request("POST", "/bounding-boxes", data={
        "label": args.label,
        "x": args.x,
        "y": args.y,
        "width": args.width,
        "height": args.height,
        "rounded": args.rounded,
    }))


def cmd_delete_bbox(args):
    _json_out(_api_request("DELETE", f"/bounding-boxes/{args.box_id}"))


# ── Tendrils ─────────────────────────────────────────────────────────────────

def cmd_add_tendril(args):
    data = {
        "type": args.type,
        "name": args.name,
        "exposed": args.exposed,
        "position": _parse_point(args.position),
        "target": _parse_point(args.target),
    }
    _json_out(_api_request("POST", f"/elements/{args.element_id}/tendrils", data=data))


def cmd_update_tendril(args):
    updates = _updates(args, ("name", "type"))
    if args.position is not None:
        updates["position"] = _parse_point(args.position)
    if args.exposed is not None:
        updates["exposed"] = args.exposed.lower() in ("true", "1", "yes")
    _json_out(_api_request(
        "PATCH", f"/elements/{args.element_id}/tendrils/{args.tendril_id}", data=updates
    ))


def cmd_delete_tendril(args):
    _json_out(_api_request("DELETE", f"/elements/{args.element_id}/tendrils/{args.tendril_id}"))


def cmd_exposed_tendrils(args):
    _json_out(_api_request("GET", f"/nodes/{args.node_id}/exposed-tendrils"))


# ── Edges ────────────────────────────────────────────────────────────────────

def cmd_add_edge(args):
    _json_out(_api_request("POST", "/edges", data={
        "from_node_id": args.from_node,
        "from_tendril_id": args.from_tendril,
        "to_node_id": args.to_node,
        "to_tendril_id": args.to_tendril,
        "name": args.name,
    }))


def cmd_delete_edge(args):
    _json_out(_api_request("DELETE", f"/edges/{args.edge_id}"))


# ── Selection ────────────────────────────────────────────────────────────────

def cmd_select(args):
    _json_out(_api_request("POST", "/selection", data={
        "category": args.category,
        "id": args.id,
        "multi_select": args.multi,
    }))


def cmd_select_tendril(args):
    _json_out(_api_request("POST", "/selection/tendril", data={
        "owner_id": args.element_id,
        "tendril_id": args.tendril_id,
    }))


def cmd_clear_selection(args):
    _json_out(_api_request("DELETE", "/selection"))


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(description="Tendril diagram CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Service
    p = sub.add_parser("serve")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    # Diagram
    sub.add_parser("get-current")
    sub.add_parser("list-diagrams")

    p = sub.add_parser("new")
    p.add_argument("--name", default="New Diagram")

    p = sub.add_parser("rename")
    p.add_argument("--name", required=True)

    p = sub.add_parser("export")
    p.add_argument("--output", default=None)

    p = sub.add_parser("import")
    p.add_argument("--input", required=True)

    sub.add_parser("save")
    sub.add_parser("load")
    sub.add_parser("validate")

    # Navigation
    p = sub.add_parser("create-inner")
    p.add_argument("--node-id", required=True)

    p = sub.add_parser("enter")
    p.add_argument("--node-id", required=True)

    sub.add_parser("leave")

    # Elements
    p = sub.add_parser("add-node")
    p.add_argument("--label", default="New Node")
    p.add_argument("--x", type=float, default=0)
    p.add_argument("--y", type=float, default=0)
    p.add_argument("--width", type=float, default=100)
    p.add_argument("--height", type=float, default=60)
    p.add_argument("--shape", default="rectangle")
    p.add_argument("--border-color", default="#000000")
    p.add_argument("--fill-color", default="#ffffff")
    p.add_argument("--notes", default="")

    p = sub.add_parser("add-svg")
    p.add_argument("--file", required=True)
    p.add_argument("--label", default="")
    p.add_argument("--x", type=float, default=0)
    p.add_argument("--y", type=float, default=0)
    p.add_argument("--width", type=float, default=100)
    p.add_argument("--height", type=float, default=60)

    p = sub.add_parser("update-element")
    p.add_argument("--element-id", required=True)
    p.add_argument("--label", default=None)
    p.add_argument("--x", type=float, default=None)
    p.add_argument("--y", type=float, default=None)
    p.add_argument("--width", type=float, default=None)
    p.add_argument("--height", type=float, default=None)
    p.add_argument("--shape", default=None)
    p.add_argument("--border-color", default=None)
    p.add_argument("--fill-color", default=None)
    p.add_argument("--notes", default=None)

    p = sub.add_parser("delete-element")
    p.add_argument("--element-id", required=True)

    p = sub.add_parser("add-bbox")
    p.add_argument("--label", default="Group")
    p.add_argument("--x", type=float, default=0)
    p.add_argument("--y", type=float, default=0)
    p.add_argument("--width", type=float, default=200)
    p.add_argument("--height", type=float, default=150)
    p.add_argument("--rounded", action="store_true")

    p = sub.add_parser("delete-bbox")
    p.add_argument("--box-id", required=True)

    # Tendrils
    p = sub.add_parser("add-tendril")
    p.add_argument("--element-id", required=True)
    p.add_argument("--type", choices=["incoming", "outgoing"], required=True)
    p.add_argument("--name", default="New Tendril")
    p.add_argument("--position", default=None, help="relative point 'x,y'")
    p.add_argument("--target", default=None, help="absolute point 'x,y' to face")
    p.add_argument("--exposed", action="store_true")

    p = sub.add_parser("update-tendril")
    p.add_argument("--element-id", required=True)
    p.add_argument("--tendril-id", required=True)
    p.add_argument("--name", default=None)
    p.add_argument("--type", choices=["incoming", "outgoing"], default=None)
    p.add_argument("--position", default=None, help="relative point 'x,y'")
    p.add_argument("--exposed", default=None)

    p = sub.add_parser("delete-tendril")
    p.add_argument("--element-id", required=True)
    p.add_argument("--tendril-id", required=True)

    p = sub.add_parser("exposed-tendrils")
    p.add_argument("--node-id", required=True)

    # Edges
    p = sub.add_parser("add-edge")
    p.add_argument("--from-node", required=True)
    p.add_argument("--from-tendril", required=True)
    p.add_argument("--to-node", required=True)
    p.add_argument("--to-tendril", required=True)
    p.add_argument("--name", default=None)

    p = sub.add_parser("delete-edge")
    p.add_argument("--edge-id", required=True)

    # Selection
    p = sub.add_parser("select")
    p.add_argument("--category", choices=["node", "bounding_box", "svg_image", "edge"], required=True)
    p.add_argument("--id", default=None)
    p.add_argument("--multi", action="store_true")

    p = sub.add_parser("select-tendril")
    p.add_argument("--element-id", required=True)
    p.add_argument("--tendril-id", required=True)

    sub.add_parser("clear-selection")

    return parser


COMMANDS = {
    "serve": cmd_serve,
    "get-current": cmd_get_current,
    "list-diagrams": cmd_list_diagrams,
    "new": cmd_new,
    "rename": cmd_rename,
    "export": cmd_export,
    "import": cmd_import,
    "save": cmd_save,
    "load": cmd_load,
    "validate": cmd_validate,
    "create-inner": cmd_create_inner,
    "enter": cmd_enter,
    "leave": cmd_leave,
    "add-node": cmd_add_node,
    "add-svg": cmd_add_svg,
    "update-element": cmd_update_element,
    "delete-element": cmd_delete_element,
    "add-bbox": cmd_add_bbox,
    "delete-bbox": cmd_delete_bbox,
    "add-tendril": cmd_add_tendril,
    "update-tendril": cmd_update_tendril,
    "delete-tendril": cmd_delete_tendril,
    "exposed-tendrils": cmd_exposed_tendrils,
    "add-edge": cmd_add_edge,
    "delete-edge": cmd_delete_edge,
    "select": cmd_select,
    "select-tendril": cmd_select_tendril,
    "clear-selection": cmd_clear_selection,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
