from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path

from roadmap_calendar import TimelineConfig, format_fuzzy_date
from roadmap_core import ALL_STAFF, read_workspace, read_workspace_from_table, write_workspace
from roadmap_layout import layout_to_frame, layout_workspace
from roadmap_render import generate_roadmap_html


def _year_month(value: str) -> tuple[int, int]:
    try:
        year, month = (int(part) for part in value.split("-", 1))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}") from exc
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"month out of range in {value!r}")
    return year, month


def _add_window_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", type=_year_month, help="Override timeline start (YYYY-MM).")
    parser.add_argument("--end", type=_year_month, help="Override timeline end (YYYY-MM).")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roadmap",
        description="Lay out and render roadmap timelines from a workspace file.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Generate roadmap HTML.")
    render.add_argument("-i", "--input", required=True, type=Path, help="Path to workspace JSON file.")
    render.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("roadmap.html"),
        help="Path to output HTML file.",
    )
    render.add_argument("--filter", default=ALL_STAFF, help="Only show projects involving this staff id.")
    render.add_argument("--width", type=int, help="Timeline width in pixels.")
    _add_window_args(render)

    layout = subparsers.add_parser("layout", help="Export computed geometry as CSV.")
    layout.add_argument("-i", "--input", required=True, type=Path, help="Path to workspace JSON file.")
    layout.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("roadmap_layout.csv"),
        help="Path to output CSV file.",
    )
    layout.add_argument("--filter", default=ALL_STAFF, help="Only include projects involving this staff id.")
    layout.add_argument("--width", type=int, help="Timeline width in pixels.")
    _add_window_args(layout)

    importer = subparsers.add_parser("import", help="Convert an Excel/CSV plan into a workspace file.")
    importer.add_argument("-i", "--input", required=True, type=Path, help="Path to input Excel or CSV file.")
    importer.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("roadmap.json"),
        help="Path to output workspace JSON file.",
    )
    _add_window_args(importer)

    preview = subparsers.add_parser("preview", help="Show the fuzzy label for a month value.")
    preview.add_argument("value", help="Month value, e.g. 3.5 for mid March.")
    preview.add_argument("year", help="Year.")
    return parser


def _window(args: argparse.Namespace, config: TimelineConfig) -> TimelineConfig:
    if args.start:
        config = replace(config, start_year=args.start[0], start_month=args.start[1])
    if args.end:
        config = replace(config, end_year=args.end[0], end_month=args.end[1])
    return config


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "preview":
        print(format_fuzzy_date(args.value, args.year))
        return 0

    try:
        if args.command == "import":
            workspace = read_workspace_from_table(args.input, _window(args, TimelineConfig()))
            write_workspace(workspace, args.output)
            print(f"Workspace saved to {args.output.resolve()}")
            return 0

        workspace = read_workspace(args.input)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))
    workspace.config = _window(args, workspace.config)

    if args.command == "render":
        generate_roadmap_html(workspace, args.output, args.filter, args.width)
        return 0
    if args.command == "layout":
        rows = layout_workspace(workspace, pixel_width=args.width, staff_filter=args.filter)
        args.output.parent.mkdir(parents=True, exist_ok=True)
        layout_to_frame(rows).to_csv(args.output, index=False)
        print(f"Layout saved to {args.output.resolve()}")
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
