"""
Live-Wire Tracing: FastAPI Backend

Exposes tracing sessions to a browser canvas. The canvas owns rendering and
mouse handling; this service turns its events into session calls.

Endpoints:
    POST   /api/sessions                     Upload image -> start cost build
    GET    /api/sessions/{sid}               Readiness and boundary summary
    POST   /api/sessions/{sid}/seed          Seed click (first seed or freeze)
    POST   /api/sessions/{sid}/cursor        Cursor move -> live path
    POST   /api/sessions/{sid}/tick          Auto-freeze timer tick
    POST   /api/sessions/{sid}/reset         Reset the boundary
    GET    /api/sessions/{sid}/segments      Frozen segments
    GET    /api/sessions/{sid}/mask.png      Selection mask (closed only)
    GET    /api/sessions/{sid}/cutout.png    RGBA cut-out (closed only)
    DELETE /api/sessions/{sid}               Drop a session
"""

import threading
import uuid
from concurrent.futures import TimeoutError as FutureTimeout

import cv2
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from livewire.config import load_config
from livewire.errors import InvalidConfigurationError
from livewire.export.selection_mask import export_selection, extract_cutout
from livewire.features.background import CostMatrixBuilder
from livewire.io.load_image import decode_image
from livewire.session.live_session import LiveWireSession

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(title="Live-Wire Tracing", version="0.1.0")

# CORS: allow the local canvas dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

CONFIG = load_config()


# ---------------------------------------------------------------------------
# Session registry
# ---------------------------------------------------------------------------

class SessionHandle:
    """
    One uploaded image: its background cost build and, once that completes,
    the tracing session. Requests for one handle are serialized by its lock.
    """

    def __init__(self, image):
        self.image = image
        self.lock = threading.Lock()
        self.builder = CostMatrixBuilder(CONFIG.cost)
        self.generation = self.builder.submit(image)
        self.session = None
        self.error = None

    def wait_ready(self, timeout):
        """Create the session once the cost matrix is available."""
        if self.session is not None or self.error is not None:
            return
        builder = self.builder
        if builder is None or (timeout <= 0 and not builder.is_ready()):
            return
        try:
            matrix = builder.result(self.generation, timeout=max(timeout, 0) or None)
        except FutureTimeout:
            return
        except InvalidConfigurationError as exc:
            self.error = str(exc)
            self.close()
            return
        if matrix is not None:
            self.session = LiveWireSession(matrix, CONFIG.session, CONFIG.export)
            self.close()

    def close(self):
        """Release the build worker; it is not needed once the matrix exists."""
        if self.builder is not None:
            self.builder.shutdown(wait=False)
            self.builder = None


SESSIONS = {}
SESSIONS_LOCK = threading.Lock()


def _get_handle(session_id: str) -> SessionHandle:
    with SESSIONS_LOCK:
        handle = SESSIONS.get(session_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return handle


def _ready_session(handle: SessionHandle) -> LiveWireSession:
    """Gate interaction on a completed cost matrix."""
    handle.wait_ready(timeout=0)
    if handle.error is not None:
        raise HTTPException(status_code=400, detail=handle.error)
    if handle.session is None:
        raise HTTPException(status_code=409, detail="Cost matrix is still being built")
    return handle.session


def _path_json(path):
    return [[p.x, p.y] for p in path]


def _summary(session_id, handle):
    session = handle.session
    summary = {
        "session_id": session_id,
        "width": int(handle.image.shape[1]),
        "height": int(handle.image.shape[0]),
        "ready": session is not None,
        "error": handle.error,
    }
    if session is not None:
        summary.update({
            "closed": session.is_closed(),
            "segments": len(session.frozen_segments()),
            "first_seed": list(session.first_seed) if session.first_seed else None,
            "current_seed": list(session.current_seed) if session.current_seed else None,
        })
    return summary


def _png_response(img):
    if img.ndim == 3 and img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA)
    ok, encoded = cv2.imencode(".png", img)
    if not ok:
        raise HTTPException(status_code=500, detail="PNG encoding failed")
    return Response(content=encoded.tobytes(), media_type="image/png")


# ---------------------------------------------------------------------------
# API Endpoints
# ---------------------------------------------------------------------------

@app.post("/api/sessions")
async def create_session(image: UploadFile = File(...)):
    """
    Upload an image and start building its cost matrix in the background.

    Returns ``session_id``; interaction endpoints answer 409 until ready.
    """
    content = await image.read()
    try:
        img = decode_image(content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    session_id = uuid.uuid4().hex[:12]
    handle = SessionHandle(img)
    with SESSIONS_LOCK:
        SESSIONS[session_id] = handle

    return JSONResponse(_summary(session_id, handle))


@app.get("/api/sessions/{session_id}")
def session_status(session_id: str, wait: float = 0.0):
    """Readiness and boundary summary; ``wait`` blocks up to that many seconds."""
    handle = _get_handle(session_id)
    with handle.lock:
        handle.wait_ready(timeout=wait)
        return JSONResponse(_summary(session_id, handle))


@app.post("/api/sessions/{session_id}/seed")
def seed_click(session_id: str, x: int = Form(...), y: int = Form(...)):
    """Seed click: sets the first seed, or freezes the current preview."""
    handle = _get_handle(session_id)
    with handle.lock:
        session = _ready_session(handle)
        segment = session.on_seed_click(x, y)
        return JSONResponse({
            "frozen": segment.model_dump(mode="json") if segment else None,
            "closed": session.is_closed(),
            "current_seed": list(session.current_seed) if session.current_seed else None,
        })


@app.post("/api/sessions/{session_id}/cursor")
def cursor_move(session_id: str, x: int = Form(...), y: int = Form(...)):
    """Cursor move: returns the live path to render as an unfrozen overlay."""
    handle = _get_handle(session_id)
    with handle.lock:
        session = _ready_session(handle)
        path = session.on_cursor_move(x, y)
        return JSONResponse({
            "path": _path_json(path),
            "near_first_seed": session.is_near_first_seed((x, y)),
        })


@app.post("/api/sessions/{session_id}/tick")
def stability_tick(session_id: str):
    """Timer tick from the client; may auto-freeze a settled path."""
    handle = _get_handle(session_id)
    with handle.lock:
        session = _ready_session(handle)
        segment = session.poll_auto_freeze()
        return JSONResponse({
            "frozen": segment.model_dump(mode="json") if segment else None,
            "closed": session.is_closed(),
        })


@app.post("/api/sessions/{session_id}/reset")
def reset_session(session_id: str):
    handle = _get_handle(session_id)
    with handle.lock:
        session = _ready_session(handle)
        session.on_reset_requested()
        return JSONResponse(_summary(session_id, handle))


@app.get("/api/sessions/{session_id}/segments")
def frozen_segments(session_id: str):
    handle = _get_handle(session_id)
    with handle.lock:
        session = _ready_session(handle)
        return JSONResponse(session.boundary.model_dump(mode="json"))


def _closed_selection(handle):
    session = _ready_session(handle)
    if not session.is_closed():
        raise HTTPException(status_code=409, detail="Boundary is not closed")
    return export_selection(
        session.boundary,
        session.cost_matrix.width,
        session.cost_matrix.height,
        padding=CONFIG.export.crop_padding,
    )


@app.get("/api/sessions/{session_id}/mask.png")
def selection_mask(session_id: str):
    handle = _get_handle(session_id)
    with handle.lock:
        selection = _closed_selection(handle)
        return _png_response(selection.mask)


@app.get("/api/sessions/{session_id}/cutout.png")
def selection_cutout(session_id: str):
    handle = _get_handle(session_id)
    with handle.lock:
        selection = _closed_selection(handle)
        if selection.bbox is None:
            raise HTTPException(status_code=409, detail="Selection is empty")
        cutout = extract_cutout(handle.image, selection.mask, selection.bbox)
        return _png_response(cutout)


@app.delete("/api/sessions/{session_id}")
def delete_session(session_id: str):
    with SESSIONS_LOCK:
        handle = SESSIONS.pop(session_id, None)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    handle.close()
    return JSONResponse({"status": "ok"})


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
