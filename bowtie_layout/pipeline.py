import argparse
import asyncio
import json
import logging
import math
from pathlib import Path
from typing import List, Optional

from bowtie_layout.config import Spacing
from bowtie_layout.ingestion.loader import fetch_diagram, load_diagram
from bowtie_layout.models.bowtie import BowtieDiagram
from bowtie_layout.validation.diagram_validator import validate_bowtie_diagram
from bowtie_layout.view import BowtieDiagramView

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def read_source(source: str) -> BowtieDiagram:
    """Loads a diagram from a file path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        return fetch_diagram(source)
    return load_diagram(Path(source))


def _view_level(value: str) -> float:
    if value.lower() in ("all", "inf"):
        return math.inf
    level = float(value)
    if level < 0:
        raise argparse.ArgumentTypeError("view level must be >= 0")
    return level


def cmd_validate(args: argparse.Namespace) -> None:
    """Report validation issues; exit with status 1 when any is an error."""
    diagram = read_source(args.source)
    issues = validate_bowtie_diagram(diagram)
    errors = [i for i in issues if i.severity == "error"]

    for issue in issues:
        log = logger.error if issue.severity == "error" else logger.warning
        log(f"{issue.id}: {issue.message}")
    logger.info(f"Validation: {len(errors)} errors, {len(issues) - len(errors)} warnings in {args.source}")

    if errors:
        raise SystemExit(1)


def cmd_render(args: argparse.Namespace) -> None:
    """Lay out a diagram and write the render graph as JSON."""
    diagram = read_source(args.source)
    view = BowtieDiagramView(
        spacing=Spacing(horizontal=args.horizontal_spacing, vertical=args.vertical_spacing)
    )
    asyncio.run(view.refresh(diagram, view_level=args.view_level))
    if view.status == "error":
        logger.error(view.error)
        raise SystemExit(1)

    if args.focus:
        view.controller.double_activate(args.focus)
        if view.controller.focused_id != args.focus:
            logger.warning(f"Cannot focus {args.focus!r}: not a visible threat or consequence")

    payload = view.render().model_dump(mode="json")
    text = json.dumps(payload, indent=2)
    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        logger.info(f"Wrote {len(payload['nodes'])} nodes and {len(payload['edges'])} edges to {out_path}")
    else:
        print(text)


def main(argv: Optional[List[str]] = None):
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        prog="bowtie-layout", description="Bowtie diagram layout and validation"
    )
    subparsers = parser.add_subparsers(dest="command")

    # validate subcommand
    p_validate = subparsers.add_parser("validate", help="Check a diagram for structural problems")
    p_validate.add_argument("source", help="Diagram JSON file or http(s) URL")
    p_validate.set_defaults(func=cmd_validate)

    # render subcommand
    p_render = subparsers.add_parser("render", help="Lay out a diagram and emit nodes and edges")
    p_render.add_argument("source", help="Diagram JSON file or http(s) URL")
    p_render.add_argument(
        "--view-level",
        type=_view_level,
        default=0,
        help="Deepest hierarchy level to show (default 0, 'all' for everything)",
    )
    p_render.add_argument("--focus", default=None, help="Node id of a threat or consequence to focus")
    p_render.add_argument(
        "--horizontal-spacing", type=float, default=200, help="Gap between layout columns"
    )
    p_render.add_argument(
        "--vertical-spacing", type=float, default=100, help="Gap between nodes in a column"
    )
    p_render.add_argument("--out", default=None, help="Output JSON path (default: stdout)")
    p_render.set_defaults(func=cmd_render)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
