"""
Batch orchestration for live-wire tracing.

Replays a recorded interaction script against a session so traces can be
reproduced without a GUI, and exports the resulting selection.
"""

import os

import numpy as np

from livewire.config import load_config
from livewire.export.selection_mask import export_selection, extract_cutout
from livewire.features.cost_matrix import build_cost_matrix
from livewire.io.load_image import load_image, load_trace_script, validate_image_input
from livewire.io.save_artifacts import DebugArtifactWriter, draw_boundary_overlay, ensure_dir, save_image, save_json
from livewire.models import EventKind, TraceDocument, generate_doc_id
from livewire.session.live_session import LiveWireSession
from livewire.tracer import get_tracer, trace


class ReplayClock:
    """Manually advanced clock so WAIT events replay instantly."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def replay_events(session, script, clock):
    """
    Feed script events into session.

    WAIT events advance the replay clock one settle interval at a time and
    poll auto-freeze after each step, like a repeating UI timer would.
    Returns the number of events processed.
    """
    tracer = get_tracer()
    interval_ms = max(1, session.config.settle_interval_ms)
    processed = 0

    for event in script.events:
        if event.kind == EventKind.CLICK:
            session.on_seed_click(event.x, event.y)
        elif event.kind == EventKind.MOVE:
            session.on_cursor_move(event.x, event.y)
            session.poll_auto_freeze()
        elif event.kind == EventKind.RESET:
            session.on_reset_requested()
        elif event.kind == EventKind.WAIT:
            remaining = event.wait_ms
            while remaining > 0:
                step = min(interval_ms, remaining)
                clock.advance(step / 1000.0)
                remaining -= step
                session.poll_auto_freeze()
        processed += 1

    tracer.event(f"Replayed {processed} events, closed={session.is_closed()}")
    return processed


@trace(label="run_trace")
def run_trace(image_path, script_path, out_dir, config=None, config_path=None, debug=False):
    """
    Replay an interaction script on an image and export the result.

    Args:
        image_path: input image file
        script_path: JSON trace script (see livewire.io.load_image.load_trace_script)
        out_dir: output directory
        config: LiveWireConfig object (optional)
        config_path: path to YAML config file (optional)
        debug: write intermediate feature maps

    Returns:
        TraceDocument describing the traced boundary
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)
    config.debug.enabled = debug or config.debug.enabled

    errors = validate_image_input(image_path)
    if errors:
        for error in errors:
            tracer.event(error, level="ERROR")
        raise ValueError(f"Input validation failed: {errors}")

    script = load_trace_script(script_path)
    ensure_dir(out_dir)

    image, meta = load_image(image_path)

    debug_writer = DebugArtifactWriter(
        out_dir,
        enabled=True,
        max_edge=config.debug.max_edge_scale,
    ) if config.debug.enabled else None

    with tracer.span("build_costs", module="pipeline"):
        cost_matrix = build_cost_matrix(image, config.cost, debug_writer)

    clock = ReplayClock()
    session = LiveWireSession(cost_matrix, config.session, config.export, clock=clock)

    with tracer.span("replay", module="pipeline"):
        processed = replay_events(session, script, clock)

    document = TraceDocument(
        doc_id=generate_doc_id(meta.source_path),
        image_meta=meta,
        boundary=session.boundary,
        events_processed=processed,
    )

    with tracer.span("export", module="pipeline"):
        segments = [segment.points for segment in session.frozen_segments()]
        seeds = [session.first_seed] if session.first_seed is not None else []
        overlay = draw_boundary_overlay(image, segments=segments, preview=session.preview, seeds=seeds)
        save_image(overlay, os.path.join(out_dir, "overlay.png"))

        if session.is_closed():
            selection = export_selection(
                session.boundary, meta.width, meta.height,
                padding=config.export.crop_padding,
            )
            document.selection_bbox = selection.bbox
            save_image(selection.mask, os.path.join(out_dir, "mask.png"))
            if selection.bbox is not None:
                cutout = extract_cutout(image, selection.mask, selection.bbox)
                save_image(cutout, os.path.join(out_dir, "cutout.png"))
        else:
            tracer.event("Boundary not closed, no selection exported", level="WARN")

    save_json(document, os.path.join(out_dir, "trace.json"))

    tracer.event(f"Trace complete: {len(session.frozen_segments())} segments, closed={session.is_closed()}")
    return document


@trace(label="export_cost_map")
def export_cost_map(image_path, out_path, config=None, config_path=None):
    """
    Write the visualized cost field (cost * 255) for an image.

    Returns the uint8 array that was saved.
    """
    if config is None:
        config = load_config(config_path)

    image, _ = load_image(image_path)
    cost_matrix = build_cost_matrix(image, config.cost)
    visual = cost_matrix.to_visual()
    save_image(np.ascontiguousarray(visual), out_path)
    return visual
