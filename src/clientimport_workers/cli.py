"""
Command line interface for column mapping and import runs

Input is a JSON document ``{"headers": [...], "rows": [[...]], "overrides": {...}}``
as produced by whatever reads the source file.
"""
import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from . import __version__
from .config import get_settings
from .errors import ImportCoreError
from .mapping.templates import MappingTemplate
from .utils.logging_setup import configure_logging
from .validation.pipeline import ImportPipeline

logger = structlog.get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_VALIDATION_ERRORS = 2


def load_input(path: str) -> Dict[str, Any]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict) or not isinstance(payload.get("headers"), list):
        raise ValueError(f"{path}: expected an object with a 'headers' list")
    payload.setdefault("rows", [])
    payload.setdefault("overrides", {})
    return payload


def load_template(path: Optional[str]) -> Optional[MappingTemplate]:
    if not path:
        return None
    return MappingTemplate.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


def format_mapping_table(mapping) -> str:
    """Plain text table of column assignments"""
    lines = [f"{'#':>3}  {'Header':<28} {'Field':<20} {'Conf':>5}  Status"]
    for index, raw in enumerate(mapping.headers):
        header = "" if raw is None else str(raw)
        assignment = mapping.get(index)
        if assignment is None:
            lines.append(f"{index:>3}  {header[:28]:<28} {'-':<20} {'':>5}  unmapped")
            continue
        lines.append(
            f"{index:>3}  {header[:28]:<28} {assignment.field.value:<20} "
            f"{assignment.confidence:>5.2f}  {assignment.status.value}"
        )
    if mapping.unmapped_fields:
        lines.append("")
        lines.append("Unmapped fields: " + ", ".join(f.value for f in mapping.unmapped_fields))
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clientimport",
        description="Infer column mappings and run client imports",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    parser.add_argument("--log-json", action="store_true", help="Render logs as JSON")
    parser.add_argument("--template", default=None, help="Mapping template JSON file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    map_parser = subparsers.add_parser("map", help="Suggest a column mapping")
    map_parser.add_argument("input", help="Input JSON file")
    map_parser.add_argument("--json", action="store_true", help="Print the mapping as JSON")

    run_parser = subparsers.add_parser("run", help="Map, transform, validate and dedupe")
    run_parser.add_argument("input", help="Input JSON file")
    run_parser.add_argument("--output", "-o", default=None, help="Write the JSON report here")
    run_parser.add_argument("--workers", type=int, default=None, help="Transform rows in parallel")
    return parser


def run_map(args: argparse.Namespace, pipeline: ImportPipeline) -> int:
    payload = load_input(args.input)
    mapping = pipeline.suggest_mapping(
        payload["headers"], payload["rows"], overrides=payload["overrides"]
    )
    if args.json:
        print(json.dumps(mapping.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(format_mapping_table(mapping))
    return EXIT_SUCCESS


def run_import(args: argparse.Namespace, pipeline: ImportPipeline) -> int:
    payload = load_input(args.input)
    result = pipeline.run(payload["headers"], payload["rows"], overrides=payload["overrides"])
    report = json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str)
    if args.output:
        Path(args.output).write_text(report, encoding="utf-8")
        print(f"Report written: {args.output}", file=sys.stderr)
    else:
        print(report)
    return EXIT_SUCCESS if result.validation.valid else EXIT_VALIDATION_ERRORS


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_json or None)

    try:
        settings = get_settings({"max_workers": args.workers} if getattr(args, "workers", None) else None)
        pipeline = ImportPipeline(
            settings=settings,
            template=load_template(args.template),
            parallel=bool(getattr(args, "workers", None)),
            max_workers=getattr(args, "workers", None),
        )
        if args.command == "map":
            return run_map(args, pipeline)
        return run_import(args, pipeline)
    except (OSError, ValueError, ImportCoreError) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_COMMAND_ERROR


if __name__ == "__main__":
    sys.exit(main())
