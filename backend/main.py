"""
hierviz Backend - FastAPI Application

This is the main entry point for the visualization backend.
It provides:
- REST API for converting documents and rendering them to SVG
- WebSocket endpoint for live views (simulation frames, drag, pan/zoom)
- CORS configuration for local frontend development
"""
import asyncio
import json
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from hierviz import __version__
from hierviz.config import API_HOST, API_PORT, settings_from_env
from hierviz.errors import ConversionError
from hierviz.formats import convert

from .models import (
    ConvertRequest,
    GestureMessage,
    PanMessage,
    PingMessage,
    RenderDocumentRequest,
    RenderMessage,
    ZoomMessage,
    client_message_adapter,
)
from .session import VisualizationSession
from .websocket_manager import ws_manager

logger = logging.getLogger("uvicorn.error")

settings = settings_from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    logger.info("hierviz backend %s starting", __version__)

    yield

    # Cleanup
    await ws_manager.broadcast({"type": "server_closing"})


# --- FastAPI App ---

app = FastAPI(
    title="hierviz API",
    description="Backend API for the hierarchical data visualizer",
    version=__version__,
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Conversion ---

@app.post("/api/convert")
async def convert_document(request: ConvertRequest):
    """Convert JSON/YAML/XML/CSV text into a graph or tree payload."""
    try:
        payload = convert(request.text, request.format, request.shape)
    except ConversionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "payload": payload}


# --- Rendering ---

@app.post("/api/render")
async def render_document(request: RenderDocumentRequest):
    """
    Render a payload (or source text) to SVG.

    Invalid input is not an HTTP error: the response carries
    `status: "error"` and the SVG shows the message, as the canvas would.
    Force layouts are settled before the response is sent.
    """
    session = VisualizationSession(settings, animate=False)
    try:
        failure = session.render(
            payload=request.payload,
            text=request.text,
            fmt=request.format.value,
            view=request.view.value,
            theme=request.theme.value,
            graph_layout=request.graph_layout.value,
            width=request.width,
            height=request.height,
        )
        state = session.get_state()
    finally:
        session.close()

    state["status"] = "error" if failure is not None else "ok"
    state["success"] = failure is None
    return state


# --- WebSocket ---

async def frame_streamer(websocket: WebSocket, session: VisualizationSession,
                         frame_event: asyncio.Event):
    """Background task that sends simulation frames to one client."""
    while True:
        await frame_event.wait()
        frame_event.clear()
        if not await ws_manager.send(websocket, session.frame_message()):
            return


async def handle_message(session: VisualizationSession, data: str) -> dict | None:
    """Apply one client message to the session and build the reply."""
    if data == "ping":
        return {"type": "pong"}

    try:
        message = client_message_adapter.validate_python(json.loads(data))
    except json.JSONDecodeError:
        return {"type": "error", "kind": "protocol", "message": "Message is not valid JSON"}
    except ValidationError as e:
        error = e.errors()[0]
        return {"type": "error", "kind": "protocol", "message": f"Invalid message: {error['msg']}"}

    if isinstance(message, PingMessage):
        return {"type": "pong"}

    if isinstance(message, RenderMessage):
        failure = session.render(
            payload=message.payload,
            text=message.text,
            fmt=message.format.value,
            view=message.view.value,
            theme=message.theme.value,
            graph_layout=message.graph_layout.value,
            width=message.width,
            height=message.height,
        )
        if failure is not None:
            return {"type": "error", **failure.to_dict(), "svg": session.controller.to_svg()}
        return {"type": "rendered", **session.get_state()}

    if isinstance(message, GestureMessage):
        if not session.gesture(message.type, message.node_id, message.x, message.y):
            return {"type": "error", "kind": "gesture",
                    "message": f"Node {message.node_id} does not handle {message.type}"}
        return None

    if isinstance(message, ZoomMessage):
        return {"type": "transform", "transform": session.zoom(message.factor, message.cx, message.cy)}

    if isinstance(message, PanMessage):
        return {"type": "transform", "transform": session.pan(message.dx, message.dy)}

    return None


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for live views.

    Clients send render/gesture/zoom/pan messages and receive replies plus a
    stream of `frame` messages while a force layout is moving.
    """
    await ws_manager.connect(websocket)

    session = VisualizationSession(settings)
    frame_event = asyncio.Event()
    session.on_frame(frame_event.set)
    streamer = asyncio.create_task(frame_streamer(websocket, session, frame_event))

    try:
        while True:
            data = await websocket.receive_text()
            reply = await handle_message(session, data)
            if reply is not None:
                await ws_manager.send(websocket, reply)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket handler failed")
    finally:
        streamer.cancel()
        try:
            await streamer
        except asyncio.CancelledError:
            pass
        session.close()
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)
