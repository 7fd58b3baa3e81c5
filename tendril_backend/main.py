"""
Tendril Diagram Backend - FastAPI Application

This is the main entry point for the diagram editor backend.
It provides:
- REST API over the editor service (diagram tree, navigation, elements,
  tendrils, edges, selection, persistence, validation)
- WebSocket endpoint broadcasting the full state after every change
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from tendril_core import (
    CreateBoundingBoxRequest,
    CreateEdgeRequest,
    CreateNodeRequest,
    CreateSvgImageRequest,
    CreateTendrilRequest,
    DiagramDecodeError,
    DiagramInfoRequest,
    ImportDiagramRequest,
    NodeRefRequest,
    NodeShape,
    SelectionCategory,
    SelectRequest,
    SelectTendrilRequest,
    TendrilType,
    UpdateBoundingBoxRequest,
    UpdateEdgeRequest,
    UpdateElementRequest,
    UpdateTendrilRequest,
    validation_summary,
)

from .config import Settings
from .diagram_manager import DiagramManager
from .persistence import InMemoryPersistence, JsonFilePersistence, PersistencePort
from .websocket_manager import broadcaster

logger = logging.getLogger(__name__)


def create_persistence(settings: Settings) -> PersistencePort:
    """File persistence when a state file is configured, in-memory otherwise."""
    if settings.state_file is not None:
        return JsonFilePersistence(settings.state_file)
    return InMemoryPersistence()


settings = Settings.from_env()
diagram_manager = DiagramManager(persistence=create_persistence(settings))


# --- Async change notification ---
# Bridge between sync DiagramManager callbacks and async WebSocket broadcasts

_change_event = asyncio.Event()
_latest_state: Optional[dict[str, Any]] = None


def on_diagram_change(state: dict[str, Any]):
    """Callback for diagram changes - keeps the snapshot and wakes the broadcaster."""
    global _latest_state
    _latest_state = state
    _change_event.set()


async def change_broadcaster():
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await _change_event.wait()
        _change_event.clear()

        if _latest_state is not None:
            await broadcaster.publish(_latest_state)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    diagram_manager.on_change(on_diagram_change)

    broadcaster_task = asyncio.create_task(change_broadcaster())

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass


# --- FastAPI App ---

app = FastAPI(
    title="Tendril Diagram API",
    description="Backend API for the nested diagram editor",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _dump(model) -> dict:
    return model.model_dump(mode="json")


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": broadcaster.connection_count}


# --- Diagram State ---

@app.get("/api/diagram")
async def get_diagram():
    """Get the current editor state."""
    return diagram_manager.get_state()


@app.patch("/api/diagram")
async def rename_diagram(request: DiagramInfoRequest):
    """Rename the current diagram."""
    diagram = diagram_manager.rename_diagram(request.name)
    return {"success": True, "diagram": diagram.to_json_dict()}


@app.post("/api/diagram/new")
async def new_diagram(name: str = Query(default="New Diagram")):
    """Create a new empty diagram tree."""
    diagram = diagram_manager.new_diagram(name=name)
    return {"success": True, "diagram": diagram.to_json_dict()}


@app.get("/api/diagrams")
async def list_diagrams():
    """List every diagram in the registry."""
    return {"success": True, "diagrams": diagram_manager.list_diagrams()}


@app.get("/api/diagrams/{diagram_id}/name")
async def get_diagram_name(diagram_id: str):
    """Get a registered diagram's name."""
    name = diagram_manager.get_diagram_name(diagram_id)
    if name is None:
        raise HTTPException(status_code=404, detail="Diagram not found")
    return {"success": True, "name": name}


# --- Persistence ---

@app.get("/api/diagram/export", response_class=PlainTextResponse)
async def export_diagram():
    """Serialize the whole diagram tree."""
    return diagram_manager.export_text()


@app.post("/api/diagram/import")
async def import_diagram(request: ImportDiagramRequest):
    """Replace the diagram tree with a serialized one."""
    try:
        diagram = diagram_manager.import_text(request.text)
    except DiagramDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Failed to import diagram: {e}")
    return {"success": True, "diagram": diagram.to_json_dict()}


@app.post("/api/diagram/save")
async def save_diagram():
    """Save the diagram tree through the configured persistence."""
    try:
        diagram_manager.save()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save: {e}")
    return {"success": True}


@app.post("/api/diagram/load")
async def load_diagram():
    """Reload the diagram tree from the configured persistence."""
    try:
        diagram = diagram_manager.load()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if diagram is None:
        return {"success": False, "message": "Nothing saved yet"}
    return {"success": True, "diagram": diagram.to_json_dict()}


# --- Navigation ---

@app.get("/api/navigation")
async def get_navigation():
    """Get the ancestor stack of the current diagram."""
    state = diagram_manager.get_state()
    return {"success": True, "navigation": state["navigation"]}


@app.post("/api/navigation/enter")
async def enter_diagram(request: NodeRefRequest):
    """Drill into a node's nested diagram."""
    if diagram_manager.enter(request.node_id):
        return {"success": True, "diagram": diagram_manager.diagram.to_json_dict()}
    return {"success": False, "message": "Node has no nested diagram"}


@app.post("/api/navigation/leave")
async def leave_diagram():
    """Return to the parent diagram."""
    if diagram_manager.leave():
        return {"success": True, "diagram": diagram_manager.diagram.to_json_dict()}
    return {"success": False, "message": "Already at the root diagram"}


@app.post("/api/nodes/{node_id}/inner-diagram")
async def create_nested_diagram(node_id: str):
    """Create (or fetch) the nested diagram of a node."""
    diagram = diagram_manager.create_nested_diagram(node_id)
    if diagram is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return {"success": True, "diagram": diagram.to_json_dict()}


# --- Element Operations ---

@app.post("/api/nodes")
async def create_node(request: CreateNodeRequest):
    """Create a new node."""
    node = diagram_manager.add_node(**request.model_dump())
    return {"success": True, "node": _dump(node)}


@app.post("/api/svg-images")
async def create_svg_image(request: CreateSvgImageRequest):
    """Place an SVG image."""
    fields = request.model_dump()
    image = diagram_manager.add_svg_image(fields.pop("svg_content"), **fields)
    return {"success": True, "svg_image": _dump(image)}


@app.get("/api/elements/{element_id}")
async def get_element(element_id: str):
    """Get a node or SVG image."""
    element = diagram_manager.get_element(element_id)
    if element:
        return {"success": True, "element": _dump(element)}
    raise HTTPException(status_code=404, detail="Element not found")


@app.patch("/api/elements/{element_id}")
async def update_element(element_id: str, request: UpdateElementRequest):
    """Update a node or SVG image; resizing respaces its tendrils."""
    element = diagram_manager.update_element(element_id, **request.model_dump())
    if element:
        return {"success": True, "element": _dump(element)}
    raise HTTPException(status_code=404, detail="Element not found")


@app.delete("/api/elements/{element_id}")
async def delete_element(element_id: str):
    """Delete an element and its connected edges."""
    if diagram_manager.delete_element(element_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Element not found")


# --- Bounding Boxes ---

@app.post("/api/bounding-boxes")
async def create_bounding_box(request: CreateBoundingBoxRequest):
    """Create a bounding box."""
    box = diagram_manager.add_bounding_box(**request.model_dump())
    return {"success": True, "bounding_box": _dump(box)}


@app.patch("/api/bounding-boxes/{box_id}")
async def update_bounding_box(box_id: str, request: UpdateBoundingBoxRequest):
    """Update a bounding box."""
    box = diagram_manager.update_bounding_box(box_id, **request.model_dump())
    if box:
        return {"success": True, "bounding_box": _dump(box)}
    raise HTTPException(status_code=404, detail="Bounding box not found")


@app.delete("/api/bounding-boxes/{box_id}")
async def delete_bounding_box(box_id: str):
    """Delete a bounding box."""
    if diagram_manager.delete_bounding_box(box_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Bounding box not found")


@app.get("/api/bounding-boxes/{box_id}/elements")
async def get_bounding_box_elements(box_id: str):
    """List the elements lying inside a bounding box."""
    if diagram_manager.get_bounding_box(box_id) is None:
        raise HTTPException(status_code=404, detail="Bounding box not found")
    elements = diagram_manager.elements_in_bounding_box(box_id)
    return {"success": True, "elements": [e.id for e in elements]}


# --- Tendrils ---

@app.post("/api/elements/{element_id}/tendrils")
async def create_tendril(element_id: str, request: CreateTendrilRequest):
    """Add a tendril to an element."""
    fields = request.model_dump(exclude={"type", "position", "target"})
    tendril = diagram_manager.add_tendril(
        element_id,
        request.type,
        position=request.position.model_dump() if request.position else None,
        target=request.target.model_dump() if request.target else None,
        **fields
    )
    if tendril:
        return {"success": True, "tendril": _dump(tendril)}
    raise HTTPException(status_code=404, detail="Element not found")


@app.get("/api/elements/{element_id}/tendrils/{tendril_id}")
async def get_tendril(element_id: str, tendril_id: str):
    """Get a tendril, own or propagated."""
    tendril = diagram_manager.get_tendril(element_id, tendril_id)
    if tendril:
        return {"success": True, "tendril": _dump(tendril)}
    raise HTTPException(status_code=404, detail="Tendril not found")


@app.patch("/api/elements/{element_id}/tendrils/{tendril_id}")
async def update_tendril(element_id: str, tendril_id: str, request: UpdateTendrilRequest):
    """Update a tendril; positions are snapped to the border."""
    updates = request.model_dump(exclude={"position"})
    if request.position is not None:
        updates["position"] = request.position.model_dump()
    tendril = diagram_manager.update_tendril(element_id, tendril_id, **updates)
    if tendril:
        return {"success": True, "tendril": _dump(tendril)}
    raise HTTPException(status_code=404, detail="Tendril not found")


@app.delete("/api/elements/{element_id}/tendrils/{tendril_id}")
async def delete_tendril(element_id: str, tendril_id: str):
    """Delete a tendril and the edges attached to it."""
    if diagram_manager.delete_tendril(element_id, tendril_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Tendril not found")


@app.get("/api/nodes/{node_id}/exposed-tendrils")
async def get_exposed_tendrils(node_id: str):
    """Tendrils propagated to a node from its nested diagram."""
    if diagram_manager.diagram.get_node(node_id) is None:
        raise HTTPException(status_code=404, detail="Node not found")
    tendrils = diagram_manager.get_exposed_tendrils(node_id)
    return {"success": True, "tendrils": [_dump(t) for t in tendrils]}


# --- Edges ---

@app.post("/api/edges")
async def create_edge(request: CreateEdgeRequest):
    """Connect an outgoing tendril to an incoming tendril."""
    edge = diagram_manager.add_edge(
        request.from_node_id,
        request.from_tendril_id,
        request.to_node_id,
        request.to_tendril_id,
        name=request.name,
        notes=request.notes,
    )
    if edge:
        return {"success": True, "edge": _dump(edge)}
    return {"success": False, "message": "Tendrils cannot be connected"}


@app.get("/api/edges/{edge_id}")
async def get_edge(edge_id: str):
    """Get a specific edge."""
    edge = diagram_manager.get_edge(edge_id)
    if edge:
        return {"success": True, "edge": _dump(edge)}
    raise HTTPException(status_code=404, detail="Edge not found")


@app.patch("/api/edges/{edge_id}")
async def update_edge(edge_id: str, request: UpdateEdgeRequest):
    """Update an edge."""
    edge = diagram_manager.update_edge(edge_id, **request.model_dump())
    if edge:
        return {"success": True, "edge": _dump(edge)}
    raise HTTPException(status_code=404, detail="Edge not found")


@app.delete("/api/edges/{edge_id}")
async def delete_edge(edge_id: str):
    """Delete an edge."""
    if diagram_manager.delete_edge(edge_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Edge not found")


# --- Selection ---

@app.get("/api/selection")
async def get_selection():
    """Get the current selection."""
    return {"success": True, "selection": diagram_manager.selection.to_dict()}


@app.post("/api/selection")
async def select(request: SelectRequest):
    """Select, or with multi_select toggle, an item of one category."""
    try:
        category = SelectionCategory(request.category)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown category: {request.category}")
    if diagram_manager.select(category, request.id, request.multi_select):
        return {"success": True, "selection": diagram_manager.selection.to_dict()}
    return {"success": False, "message": "Item not found in category"}


@app.post("/api/selection/tendril")
async def select_tendril(request: SelectTendrilRequest):
    """Select a tendril and its owning element."""
    if diagram_manager.select_tendril(request.owner_id, request.tendril_id):
        return {"success": True, "selection": diagram_manager.selection.to_dict()}
    return {"success": False, "message": "Tendril not found"}


@app.delete("/api/selection")
async def clear_selection():
    """Clear every selection."""
    diagram_manager.clear_selection()
    return {"success": True, "selection": diagram_manager.selection.to_dict()}


# --- Enums for Frontend ---

@app.get("/api/enums/shapes")
async def get_shapes():
    """Get available node shapes."""
    return {"shapes": [s.value for s in NodeShape]}


@app.get("/api/enums/tendril-types")
async def get_tendril_types():
    """Get tendril directions."""
    return {"types": [t.value for t in TendrilType]}


# --- Validation ---

@app.get("/api/diagram/validate")
async def validate_current_diagram():
    """
    Validate the diagram tree for structural issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = diagram_manager.validate()
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive diagram_updated events.
    """
    await broadcaster.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await broadcaster.disconnect(websocket)


def run(host: Optional[str] = None, port: Optional[int] = None):
    """Run the API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    run()
