"""
Hierarchical runtime tracing for live-wire tracing.

Nested spans with timing let you follow cost-matrix construction, per-seed
searches and session decisions without stepping through code. Settings come
from the ``tracing`` section of LiveWireConfig.
"""

import functools
import hashlib
import json
import sys
import time
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

import numpy as np
from pydantic import BaseModel

from livewire.config import TracingConfig


LEVELS = {"ERROR": 0, "WARN": 1, "INFO": 2, "DEBUG": 3}


def _timestamp():
    now = datetime.now()
    return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"


def _format_meta(meta):
    return " ".join(f"{key}={summarize(value)}" for key, value in meta.items())


class Tracer:
    """
    Span/event tracer writing one text line per record to stderr.

    Events are attributed to the innermost open span. With json_output each
    text line is followed by a JSON record; with file_path every line is
    mirrored to that file.
    """

    def __init__(self, settings=None):
        self.settings = settings or TracingConfig()
        self._sink = None
        self._spans = []  # (name, module) of open spans, innermost last

    @property
    def enabled(self):
        return self.settings.enabled

    def apply(self, settings):
        """Swap in new settings, reopening the mirror file if one is set."""
        self.close()
        self.settings = replace(settings, level=settings.level.upper())
        if self.settings.enabled and self.settings.file_path:
            self._sink = open(self.settings.file_path, "w", encoding="utf-8")

    def close(self):
        if self._sink is not None:
            self._sink.close()
            self._sink = None

    def _accepts(self, level):
        if not self.settings.enabled:
            return False
        threshold = LEVELS.get(self.settings.level, LEVELS["INFO"])
        return LEVELS.get(level, LEVELS["INFO"]) <= threshold

    def _emit(self, line):
        print(line, file=sys.stderr)
        if self._sink is not None:
            self._sink.write(line + "\n")
            self._sink.flush()

    def _record(self, level, module, func, message, meta=None):
        if not self._accepts(level):
            return

        stamp = _timestamp()
        depth = len(self._spans)
        where = f"{module}:{func}" if func else module
        self._emit(f"{stamp} {level:<5} {'  ' * depth}{where}  {message}")

        if self.settings.json_output:
            self._emit(json.dumps({
                "timestamp": stamp,
                "level": level,
                "depth": depth,
                "module": module,
                "function": func,
                "message": message,
                "meta": {key: summarize(value) for key, value in (meta or {}).items()},
            }))

    @contextmanager
    def span(self, name, module="", **meta):
        """
        Trace a block as a named span.

        Start and end records carry elapsed milliseconds. An exception
        escaping the block is recorded at ERROR level and re-raised.
        """
        if not self.settings.enabled:
            yield
            return

        self._record("INFO", module, name, f"start {_format_meta(meta)}".strip(), meta)
        self._spans.append((name, module))
        started = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self._spans.pop()
            elapsed = (time.perf_counter() - started) * 1000
            self._record("ERROR", module, name,
                         f"failed dt={elapsed:.0f}ms error={type(exc).__name__}: {str(exc)[:100]}")
            raise
        self._spans.pop()
        elapsed = (time.perf_counter() - started) * 1000
        self._record("INFO", module, name, f"end ok dt={elapsed:.0f}ms")

    def event(self, message, level="INFO", **meta):
        """Record a one-off event inside the current span."""
        if not self._accepts(level):
            return
        func, module = self._spans[-1] if self._spans else ("", "")
        self._record(level, module, func, f"{message} {_format_meta(meta)}".strip(), meta)


def summarize(obj, max_len=200):
    """
    Compact, bounded description of a value for trace records.

    Arrays report dtype, shape and finite range (cost fields carry inf
    outside the image), small arrays also a content hash.
    """
    try:
        text = _describe(obj)
    except Exception:
        return f"<{type(obj).__name__}>"
    return text if len(text) <= max_len else text[:max_len - 3] + "..."


def _short_hash(data):
    return hashlib.md5(data).hexdigest()[:8]


def _describe(obj):
    if obj is None:
        return "None"
    kind = type(obj).__name__

    if isinstance(obj, np.ndarray):
        parts = [str(obj.dtype), "x".join(str(s) for s in obj.shape)]
        if obj.size and obj.dtype.kind in "biuf":
            values = obj[np.isfinite(obj)] if obj.dtype.kind == "f" else obj
            if values.size:
                parts.append(f"min={float(values.min()):.3g},max={float(values.max()):.3g}")
        if 0 < obj.size < 1000:
            parts.append(f"h={_short_hash(obj.tobytes())}")
        return f"ndarray({','.join(parts)})"
    if isinstance(obj, np.generic):
        return str(obj.item())

    if isinstance(obj, BaseModel):
        return f"{kind}(fields={list(type(obj).model_fields)[:3]}...)"

    # Pixel and other named tuples
    if isinstance(obj, tuple) and hasattr(obj, "_fields"):
        return f"{kind}(" + ",".join(f"{name}={getattr(obj, name)}" for name in obj._fields) + ")"

    if isinstance(obj, str):
        return repr(obj) if len(obj) <= 50 else f"str(len={len(obj)},h={_short_hash(obj.encode())})"
    if isinstance(obj, bytes):
        return f"bytes(len={len(obj)},h={_short_hash(obj)})"

    if isinstance(obj, (list, tuple)):
        if not obj:
            return f"{kind}(len=0)"
        return f"{kind}(len={len(obj)},first={_describe(obj[0])})"
    if isinstance(obj, dict):
        keys = ",".join(str(k) for k in list(obj)[:5])
        return f"dict(len={len(obj)},keys=[{keys}])"

    if isinstance(obj, float):
        return f"{obj:.4g}"
    if isinstance(obj, (bool, int)):
        return str(obj)
    return f"<{kind}>"


def trace(label=None, arg_names=None):
    """
    Run the decorated function inside a span named label (default: its name).

    Keyword arguments named in arg_names are summarized in the start record.
    """
    def decorator(func):
        module = (func.__module__ or "").rsplit(".", 1)[-1]
        name = label or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not _tracer.enabled:
                return func(*args, **kwargs)
            meta = {key: kwargs[key] for key in (arg_names or ()) if key in kwargs}
            with _tracer.span(name, module=module, **meta):
                return func(*args, **kwargs)

        return wrapper
    return decorator


_tracer = Tracer()


def get_tracer():
    """The process-wide tracer."""
    return _tracer


def configure_tracer(enabled=False, level="INFO", file_path=None, json_output=False):
    """Configure the process-wide tracer from individual settings."""
    _tracer.apply(TracingConfig(
        enabled=enabled,
        level=level,
        file_path=file_path,
        json_output=json_output,
    ))
