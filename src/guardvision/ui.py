"""Gradio UI for GuardVision.

Upload an image, run the AI scan, click regions (on the image or in the list)
to switch them between MASKED and SKIP, tune the fill color and opacity, and
download the redacted copy.

Run from CLI after install:

- `guardvision-ui` to launch directly
- or `guardvision ui`

Notes
-----
- The overlay is recomputed from the session on every event; the source
  image is never modified.
- Redaction is composited locally; only the detection call leaves the
  machine.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .detector import build_detector
from .errors import GuardVisionError
from .imaging import save_export
from .logging import get_logger
from .models import RedactionStyle
from .overlay import annotated_sections
from .session import SessionController, SessionState
from .settings import get_settings

logger = get_logger(__name__)

TABLE_HEADERS = ["#", "Label", "Confidence", "Status"]

View = Tuple[Any, List[List[Any]], str, str]

_STATUS_TEXT = {
    SessionState.EMPTY: "Upload an image to start the analysis process.",
    SessionState.LOADED: "Image loaded. Run the AI scan to find sensitive regions.",
    SessionState.ANALYZING: "AI is scanning for PII...",
    SessionState.ANNOTATED: "Click a region or a row to toggle it, then download.",
    SessionState.EXPORTED: "Redacted image ready. You can keep editing and export again.",
}


def _new_controller() -> SessionController:
    settings = get_settings()
    try:
        style = RedactionStyle.from_hex(settings.fill_color, settings.fill_opacity)
    except ValueError:
        style = RedactionStyle()
    return SessionController(style=style)


def _rows(ctrl: SessionController) -> List[List[Any]]:
    return [
        [
            idx,
            det.label,
            f"{det.confidence:.0%}",
            "MASKED" if det.selected else "SKIP",
        ]
        for idx, det in enumerate(ctrl.detections, start=1)
    ]


def _view(ctrl: Optional[SessionController], show_original: bool = False) -> View:
    """Render ``(annotated_image, table_rows, status_markdown, badge)``."""
    if ctrl is None or ctrl.session is None:
        status = _STATUS_TEXT[SessionState.EMPTY]
        if ctrl is not None and ctrl.error:
            status = f"**Error:** {ctrl.error}"
        return None, [], status, ""
    preview = ctrl.preview(show_original=show_original)
    sections = (
        []
        if show_original
        else annotated_sections(ctrl.detections, ctrl.style, ctrl.session.size)
    )
    status = _STATUS_TEXT[ctrl.state]
    if ctrl.error:
        status = f"**Error:** {ctrl.error}"
    count = len(ctrl.detections)
    badge = f"**{count} Detected**" if count else ""
    return (preview, sections), _rows(ctrl), status, badge


def handle_upload(
    ctrl: Optional[SessionController], file_obj: Any, show_original: bool = False
) -> Tuple[SessionController, View]:
    ctrl = ctrl or _new_controller()
    if file_obj is None:
        ctrl.clear()
        return ctrl, _view(ctrl, show_original)
    path = getattr(file_obj, "name", file_obj)
    try:
        ctrl.load(str(path))
    except GuardVisionError as exc:
        logger.warning("upload rejected", {"error": str(exc)})
    return ctrl, _view(ctrl, show_original)


def handle_scan(
    ctrl: Optional[SessionController], show_original: bool = False
) -> Tuple[SessionController, View]:
    ctrl = ctrl or _new_controller()
    if ctrl.session is None:
        ctrl.error = "Please upload an image first."
        return ctrl, _view(ctrl, show_original)
    try:
        ctrl.analyze(ctrl.detector or build_detector(get_settings()))
    except GuardVisionError:
        ctrl.error = (
            "Failed to analyze image. Please check your connection and API key."
        )
    except ValueError as exc:
        ctrl.error = str(exc)
    return ctrl, _view(ctrl, show_original)


def handle_toggle(
    ctrl: Optional[SessionController], index: int, show_original: bool = False
) -> Tuple[Optional[SessionController], View]:
    """Toggle the detection at 0-based ``index`` (list row or image section)."""
    if ctrl is not None:
        ctrl.toggle_index(int(index))
    return ctrl, _view(ctrl, show_original)


def handle_select_all(
    ctrl: Optional[SessionController], selected: bool, show_original: bool = False
) -> Tuple[Optional[SessionController], View]:
    if ctrl is not None:
        ctrl.set_all(selected)
    return ctrl, _view(ctrl, show_original)


def handle_style(
    ctrl: Optional[SessionController],
    color: str,
    opacity: float,
    show_original: bool = False,
) -> Tuple[SessionController, View]:
    ctrl = ctrl or _new_controller()
    try:
        ctrl.style = RedactionStyle.from_hex(color, float(opacity))
    except (TypeError, ValueError) as exc:
        ctrl.error = str(exc)
    return ctrl, _view(ctrl, show_original)


def handle_export(
    ctrl: Optional[SessionController], show_original: bool = False
) -> Tuple[Optional[SessionController], Optional[str], View]:
    if ctrl is None or not ctrl.can_export:
        return ctrl, None, _view(ctrl, show_original)
    try:
        result = ctrl.export()
        out_dir = Path(tempfile.mkdtemp(prefix="guardvision_ui_"))
        out_path = save_export(result, out_dir)
    except GuardVisionError as exc:
        ctrl.error = str(exc)
        return ctrl, None, _view(ctrl, show_original)
    return ctrl, str(out_path), _view(ctrl, show_original)


def handle_clear(
    ctrl: Optional[SessionController],
) -> Tuple[Optional[SessionController], None, View]:
    if ctrl is not None:
        ctrl.clear()
    return ctrl, None, _view(ctrl)


def build_interface():
    """Construct and return the Gradio Blocks interface."""
    import gradio as gr  # local import to avoid hard dependency at import time

    settings = get_settings()

    with gr.Blocks(title="GuardVision – Image PII Redaction") as demo:
        gr.Markdown(
            """
            # GuardVision – Image PII Redaction
            Upload an image, run the AI scan, choose which regions to mask,
            then download the redacted copy.
            """
        )
        state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=8):
                file_in = gr.File(
                    label="Image",
                    file_types=["image"],
                    type="filepath",
                )
                canvas = gr.AnnotatedImage(label="Detections", show_legend=False)
                status = gr.Markdown(_STATUS_TEXT[SessionState.EMPTY])
            with gr.Column(scale=4):
                with gr.Accordion("Redaction Style", open=True):
                    with gr.Row():
                        color = gr.ColorPicker(value=settings.fill_color, label="Color")
                        opacity = gr.Slider(
                            value=settings.fill_opacity,
                            minimum=0.0,
                            maximum=1.0,
                            step=0.05,
                            label="Opacity",
                        )
                show_original = gr.Checkbox(value=False, label="Show original")
                badge = gr.Markdown("")
                table = gr.Dataframe(
                    headers=TABLE_HEADERS,
                    datatype=["number", "str", "str", "str"],
                    interactive=False,
                    label="Detection Layers",
                )
                with gr.Row():
                    select_all = gr.Button("Mask all")
                    select_none = gr.Button("Skip all")
                scan_btn = gr.Button("Run AI Scan", variant="primary")
                export_btn = gr.Button("Download Redacted", variant="primary")
                download = gr.File(label="Redacted image", interactive=False)
                clear_btn = gr.Button("Clear Image")
                gr.Markdown(
                    "Images are sent to the configured detection service. "
                    "Redaction itself is performed locally."
                )

        view_outputs = [canvas, table, status, badge]

        def _unpack(result):
            ctrl, view = result
            return (ctrl, *view)

        file_in.change(
            lambda c, f, s: _unpack(handle_upload(c, f, s)),
            inputs=[state, file_in, show_original],
            outputs=[state, *view_outputs],
        )
        scan_btn.click(
            lambda c, s: _unpack(handle_scan(c, s)),
            inputs=[state, show_original],
            outputs=[state, *view_outputs],
        )

        def _on_canvas_select(c, s, evt: gr.SelectData):
            return _unpack(handle_toggle(c, evt.index, s))

        def _on_table_select(c, s, evt: gr.SelectData):
            row = evt.index[0] if isinstance(evt.index, (list, tuple)) else evt.index
            return _unpack(handle_toggle(c, row, s))

        canvas.select(
            _on_canvas_select,
            inputs=[state, show_original],
            outputs=[state, *view_outputs],
        )
        table.select(
            _on_table_select,
            inputs=[state, show_original],
            outputs=[state, *view_outputs],
        )
        select_all.click(
            lambda c, s: _unpack(handle_select_all(c, True, s)),
            inputs=[state, show_original],
            outputs=[state, *view_outputs],
        )
        select_none.click(
            lambda c, s: _unpack(handle_select_all(c, False, s)),
            inputs=[state, show_original],
            outputs=[state, *view_outputs],
        )
        for control in (color, opacity):
            control.change(
                lambda c, col, op, s: _unpack(handle_style(c, col, op, s)),
                inputs=[state, color, opacity, show_original],
                outputs=[state, *view_outputs],
            )
        show_original.change(
            lambda c, s: (c, *_view(c, s)),
            inputs=[state, show_original],
            outputs=[state, *view_outputs],
        )

        def _on_export(c, s):
            ctrl, path, view = handle_export(c, s)
            return (ctrl, path, *view)

        export_btn.click(
            _on_export,
            inputs=[state, show_original],
            outputs=[state, download, *view_outputs],
        )

        def _on_clear(c):
            ctrl, path, view = handle_clear(c)
            return (ctrl, None, path, *view)

        clear_btn.click(
            _on_clear,
            inputs=[state],
            outputs=[state, file_in, download, *view_outputs],
        )

    return demo


def launch(
    server_name: str = "127.0.0.1", server_port: int = 7860, inbrowser: bool = False
) -> None:
    """Launch the Gradio UI.

    Parameters
    ----------
    server_name:
        Host interface for the Gradio server.
    server_port:
        Port for the Gradio server.
    inbrowser:
        Open a browser window on launch when True.
    """
    app = build_interface()
    app.launch(server_name=server_name, server_port=server_port, inbrowser=inbrowser)
