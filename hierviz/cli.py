#!/usr/bin/env python3
"""hierviz CLI - render, convert, validate and serve."""

import argparse
import json
import logging
import sys
from pathlib import Path

from .builder import GraphModelBuilder
from .config import API_HOST, API_PORT, settings_from_env
from .controller import HostElement, ViewController
from .errors import ConversionError, EmptyInput, InvalidShape
from .formats import Format, convert, format_for_path
from .models import GraphLayout, PayloadShape, Theme, ViewKind
from .validation import validation_summary


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _read_input(path):
    if path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e.strerror}"}, 1)


def _input_format(args):
    if args.format:
        return Format(args.format)
    if args.file == "-":
        return Format.JSON
    return format_for_path(args.file)


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_render(args):
    controller = ViewController(
        host=HostElement(width=args.width, height=args.height),
        settings=settings_from_env(),
        strict=args.strict,
    )
    text = _read_input(args.file)
    if args.payload:
        failure = controller.render(text, view=args.view, theme=args.theme, graph_layout=args.layout)
    else:
        failure = controller.render_text(
            text,
            fmt=_input_format(args),
            view=args.view,
            theme=args.theme,
            graph_layout=args.layout,
        )
    if failure is not None:
        _json_out({"status": "error", "kind": failure.kind, "error": failure.message}, 1)

    svg = controller.to_svg()
    nodes = len(controller.model) if controller.model is not None else 0
    controller.teardown()

    if args.output is None:
        sys.stdout.write(svg + "\n")
        sys.exit(0)
    Path(args.output).write_text(svg, encoding="utf-8")
    _json_out({"status": "rendered", "output": args.output, "nodes": nodes})


def cmd_convert(args):
    try:
        payload = convert(_read_input(args.file), _input_format(args), args.shape)
    except ConversionError as e:
        _json_out({"status": "error", "error": str(e)}, 1)
    _json_out(payload)


def cmd_validate(args):
    text = _read_input(args.file)
    try:
        payload = text if args.payload else convert(text, _input_format(args), PayloadShape.GRAPH)
        model = GraphModelBuilder(strict=args.strict).build(payload)
    except ConversionError as e:
        _json_out({"status": "error", "error": str(e)}, 1)
    except EmptyInput as e:
        _json_out({"status": "empty", "message": str(e)})
    except InvalidShape as e:
        _json_out({
            "status": "invalid",
            "error": str(e),
            "summary": validation_summary(e.issues),
            "issues": [i.to_dict() for i in e.issues],
        }, 1)
    issues = list(model.issues)
    _json_out({
        "status": "valid",
        "nodes": len(model),
        "edges": len(model.edges),
        "max_depth": model.max_depth,
        "summary": validation_summary(issues),
        "issues": [i.to_dict() for i in issues],
    })


def cmd_serve(args):
    import uvicorn

    uvicorn.run("backend.main:app", host=args.host, port=args.port, reload=args.reload)


def build_parser():
    parser = argparse.ArgumentParser(prog="hierviz", description="Hierarchical data visualizer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    formats = [f.value for f in Format]

    p = sub.add_parser("render", help="Render a document to SVG")
    p.add_argument("file", help="Input file ('-' for stdin)")
    p.add_argument("--format", choices=formats, default=None)
    p.add_argument("--view", choices=[v.value for v in ViewKind], default=ViewKind.GRAPH.value)
    p.add_argument("--layout", choices=[g.value for g in GraphLayout], default=GraphLayout.COLUMNS.value)
    p.add_argument("--theme", choices=[t.value for t in Theme], default=Theme.LIGHT.value)
    p.add_argument("--width", type=float, default=0)
    p.add_argument("--height", type=float, default=0)
    p.add_argument("--strict", action="store_true", help="Reject links to missing nodes")
    p.add_argument("--payload", action="store_true", help="Input is already a nodes/links or name/children payload")
    p.add_argument("-o", "--output", default=None, help="SVG output path (stdout if omitted)")

    p = sub.add_parser("convert", help="Print the payload for a document")
    p.add_argument("file")
    p.add_argument("--format", choices=formats, default=None)
    p.add_argument("--shape", choices=[s.value for s in PayloadShape], default=PayloadShape.GRAPH.value)

    p = sub.add_parser("validate", help="Check a document's graph structure")
    p.add_argument("file")
    p.add_argument("--format", choices=formats, default=None)
    p.add_argument("--strict", action="store_true")
    p.add_argument("--payload", action="store_true")

    p = sub.add_parser("serve", help="Run the HTTP/WebSocket backend")
    p.add_argument("--host", default=API_HOST)
    p.add_argument("--port", type=int, default=API_PORT)
    p.add_argument("--reload", action="store_true")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cmd_map = {
        "render": cmd_render,
        "convert": cmd_convert,
        "validate": cmd_validate,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
