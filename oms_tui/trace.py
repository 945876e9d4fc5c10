"""Frame-level trace file for the rendering core.

The dashboard owns the terminal, so per-frame diagnostics (viewport cache
misses and how long a recompute took) go to a file instead:

    OMS_TUI_TRACE unset    -> {tempdir}/oms_tui_trace.log
    OMS_TUI_TRACE=""       -> tracing off
    OMS_TUI_TRACE=<path>   -> that file

    from oms_tui.trace import trace
    trace("VIEWPORT", "miss source=worker:1 events=42 width=120")
"""

import os
import tempfile
import traceback
from datetime import datetime
from typing import Optional

TRACE_ENV_VAR = "OMS_TUI_TRACE"
DEFAULT_TRACE_FILENAME = "oms_tui_trace.log"

_created_parent: Optional[str] = None


def trace_path() -> Optional[str]:
    """Current trace destination, or None when tracing is off."""
    value = os.environ.get(TRACE_ENV_VAR)
    if value is None:
        return os.path.join(tempfile.gettempdir(), DEFAULT_TRACE_FILENAME)
    return value or None


def _format_line(component: str, msg: str) -> str:
    stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    return f"[{stamp}] [{component}] {msg}\n"


def trace(component: str, msg: str, *, include_traceback: bool = False) -> None:
    """Append one line to the trace file.

    Args:
        component: Short tag for the subsystem, e.g. "VIEWPORT".
        msg: Message text.
        include_traceback: Also write the exception currently being handled.
    """
    global _created_parent
    path = trace_path()
    if not path:
        return
    parent = os.path.dirname(os.path.abspath(path))
    lines = [_format_line(component, msg)]
    if include_traceback:
        formatted = traceback.format_exc()
        if formatted.strip() != "NoneType: None":
            lines.append(_format_line(component, "Traceback:") + formatted)
    try:
        if parent != _created_parent:
            os.makedirs(parent, exist_ok=True)
            _created_parent = parent
        with open(path, "a", encoding="utf-8") as f:
            f.writelines(lines)
    except OSError:
        # Tracing never raises
        pass
