"""Command-line interface for GuardVision.

Provides:
- `redact`: Detect (or read) regions in an image and write a redacted copy.
- `detect`: Print the detection service's regions as JSON.
- `ui`: Launch the Gradio UI for interactive selection.
- `api`: Serve the HTTP API.
"""

from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import orjson
import typer
from pydantic import TypeAdapter, ValidationError
from rich import print

from .audit import build_export_record, write_audit
from .detector import build_detector
from .errors import GuardVisionError
from .models import RawDetection, RedactionStyle
from .session import SessionController
from .settings import get_settings

app = typer.Typer(add_completion=False, help="GuardVision image PII redactor")

_raw_list = TypeAdapter(List[RawDetection])


def _read_detections(path: str) -> List[RawDetection]:
    try:
        return _raw_list.validate_json(Path(path).read_bytes())
    except (OSError, ValidationError) as exc:
        print(f"[red]Invalid detections file:[/red] {path} ({exc.__class__.__name__})")
        raise typer.Exit(code=1) from exc


@app.command()
def redact(
    input: str = typer.Option(..., "--input", "-i", help="Input image path"),
    output_dir: str = typer.Option(".", "--output-dir", "-o", help="Directory for the redacted image"),
    detections: Optional[str] = typer.Option(
        None,
        "--detections",
        "-d",
        help="JSON file of {label, confidence, box_2d}; skips the detection service",
    ),
    color: Optional[str] = typer.Option(None, help="Fill color, e.g. '#000000'"),
    opacity: Optional[float] = typer.Option(
        None, min=0.0, max=1.0, help="Fill opacity between 0 and 1"
    ),
    skip: List[int] = typer.Option(
        [], "--skip", "-s", help="1-based index of a detection to leave unredacted (repeatable)"
    ),
    detector: Optional[str] = typer.Option(None, help="Detector backend: gemini | ollama"),
    audit: bool = typer.Option(True, "--audit/--no-audit", help="Write a .meta.json audit record"),
):
    """Redact PII regions in an image and write ``redacted-<name>``.

    Parameters
    ----------
    input:
        Image to redact.
    output_dir:
        Where the redacted image (and audit record) are written.
    detections:
        Pre-computed detections; when omitted the detection service is called.
    color:
        Fill color (hex).
    opacity:
        Fill opacity in ``[0, 1]``.
    skip:
        Detections to leave visible, by position in the list.
    """
    from .imaging import save_export

    settings = get_settings()
    if detector:
        settings = replace(settings, detector=detector.strip().lower())
    try:
        style = RedactionStyle.from_hex(
            color or settings.fill_color,
            settings.fill_opacity if opacity is None else opacity,
        )
    except ValueError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    ctrl = SessionController(style=style)
    try:
        ctrl.load(input)
        if detections:
            token = ctrl.begin_analysis()
            ctrl.complete_analysis(token, _read_detections(detections))
        else:
            ctrl.analyze(build_detector(settings))
        found = ctrl.detections
        for idx in sorted(set(skip)):
            if not 1 <= idx <= len(found):
                print(f"[yellow]No detection #{idx}; ignored[/yellow]")
                continue
            ctrl.set_selected(found[idx - 1].identity, False)
        result = ctrl.export()
        out_path = save_export(result, output_dir)
    except (GuardVisionError, ValueError) as exc:
        print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    session = ctrl.session
    assert session is not None
    for n, det in enumerate(session.detections, start=1):
        mark = "[green]MASKED[/green]" if det.selected else "[yellow]SKIP[/yellow]"
        print(f"  {n}. {det.label} ({det.confidence:.0%}) {mark}")
    print(f"[green]Redacted image:[/green] {out_path}")
    if audit:
        record = build_export_record(
            session.source, session.file_label, session.detections, style, result
        )
        meta_path = write_audit(record, out_path.with_suffix(".meta.json"))
        print(f"[green]Details:[/green] {meta_path}")


@app.command()
def detect(
    input: str = typer.Option(..., "--input", "-i", help="Input image path"),
    detector: Optional[str] = typer.Option(None, help="Detector backend: gemini | ollama"),
):
    """Run the detection service and print its regions as JSON."""
    settings = get_settings()
    if detector:
        settings = replace(settings, detector=detector.strip().lower())
    ctrl = SessionController(detector=build_detector(settings))
    try:
        ctrl.load(input)
        dets = ctrl.analyze()
    except (GuardVisionError, ValueError) as exc:
        print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    payload = [
        {"label": d.label, "confidence": d.confidence, "box_2d": list(d.box)}
        for d in dets
    ]
    typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8"))


@app.command()
def ui(
    host: Optional[str] = typer.Option(
        None, help="Host to bind the UI server (use 0.0.0.0 only when intentional)"
    ),
    port: Optional[int] = typer.Option(None, help="Port for the UI server"),
    inbrowser: bool = typer.Option(False, help="Open browser on launch"),
):
    """Launch the Gradio UI for interactive redaction."""
    from .ui import launch as launch_ui

    settings = get_settings()
    launch_ui(
        server_name=host or settings.ui_host,
        server_port=port or settings.ui_port,
        inbrowser=inbrowser,
    )


@app.command()
def api(
    host: Optional[str] = typer.Option(None, help="Host to bind the API server"),
    port: Optional[int] = typer.Option(None, help="Port for the API server"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Serve the HTTP API with uvicorn."""
    from .api import run

    run(host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
