#!/usr/bin/env python3
"""sprites — developer CLI for the ULPC sprite pipeline.

Usage:
    sprites convert --in <intermediary.json> --out <build.json> [--trace <trace.json>]
                    [--defs DIR] [--reference FILE] [--animations idle,walk]
    sprites schema  --out <schema.json> [--defs DIR]
    sprites export  --build <build.json> --out-dir <dir> --slug <slug>
                    [--defs DIR] [--spritesheets DIR] [--mode both] [--fps 8] [--zero-pad 3]

Exit codes:
    0  — success
    1  — pipeline error (unresolved body/head, invalid build, geometry, missing asset)
    2  — invalid usage or missing input file
"""

import argparse
import json
import sys
from pathlib import Path

import jsonschema
from pydantic import ValidationError

# Ensure project root is on sys.path so the pipeline packages are importable
# when the script is invoked from any working directory.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.config import ExportOptions  # noqa: E402
from app.errors import (  # noqa: E402
    BuildValidationError,
    RequiredCategoryUnresolved,
    SpritePipelineError,
)
from app.utils.logging import configure_logging  # noqa: E402
from catalog.reference import CategoryReference  # noqa: E402
from catalog.sheet_defs import CategoryCatalog  # noqa: E402
from compose.compositor import Compositor  # noqa: E402
from compose.export import export_build  # noqa: E402
from models.build import Build  # noqa: E402
from resolvers.intermediary import IntermediaryResolver  # noqa: E402
from validators.enum_schema import build_enum_schema  # noqa: E402

_CONTRACTS_DIR = Path(__file__).resolve().parent.parent / "contracts" / "schemas"
_SCHEMA_IN = json.loads((_CONTRACTS_DIR / "char_intermediary.v1.json").read_text(encoding="utf-8"))


def _load_json(path: Path) -> object:
    return json.loads(path.read_text(encoding="utf-8"))


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------

def cmd_convert(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"ERROR: input file not found: {input_path}", file=sys.stderr)
        return 2

    try:
        selection = _load_json(input_path)
    except (json.JSONDecodeError, OSError) as exc:
        print(f"ERROR: failed to load {input_path}: {exc}", file=sys.stderr)
        return 1

    try:
        jsonschema.validate(instance=selection, schema=_SCHEMA_IN)
    except jsonschema.ValidationError as exc:
        print(
            f"ERROR: input does not conform to char_intermediary.v1.json: {exc.message}",
            file=sys.stderr,
        )
        return 1

    catalog = CategoryCatalog.discover(args.defs)
    reference = None
    if args.reference:
        reference_path = Path(args.reference)
        if not reference_path.exists():
            print(f"ERROR: reference file not found: {reference_path}", file=sys.stderr)
            return 2
        try:
            reference = CategoryReference.load(reference_path)
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError
            print(f"ERROR: failed to load reference {reference_path}: {exc}", file=sys.stderr)
            return 1

    animations = [a.strip() for a in args.animations.split(",") if a.strip()] if args.animations else None
    resolver = IntermediaryResolver(catalog, reference=reference, animations=animations)

    trace_path = Path(args.trace) if args.trace else None
    try:
        result = resolver.convert(selection)
    except (RequiredCategoryUnresolved, BuildValidationError) as exc:
        if trace_path is not None:
            _write_json(trace_path, [t.model_dump() for t in exc.trace])
        print(str(exc), file=sys.stderr)
        return 1
    except ValidationError as exc:
        print(f"ERROR: invalid selection: {exc}", file=sys.stderr)
        return 1

    _write_json(Path(args.output), result.build.to_json_dict())
    if trace_path is not None:
        _write_json(trace_path, [t.model_dump() for t in result.trace])

    print(
        f"OK: {len(result.build.layers)} layers; {len(result.warnings)} warnings; "
        f"{len(result.low_confidence)} fallback variants → {args.output}"
    )
    return 0


# ---------------------------------------------------------------------------
# schema
# ---------------------------------------------------------------------------

def cmd_schema(args: argparse.Namespace) -> int:
    catalog = CategoryCatalog.discover(args.defs)
    schema = build_enum_schema(catalog)
    _write_json(Path(args.output), schema)
    print(f"OK: {len(schema['$defs']['category_enum']['enum'])} categories → {args.output}")
    return 0


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------

def cmd_export(args: argparse.Namespace) -> int:
    build_path = Path(args.build)
    if not build_path.exists():
        print(f"ERROR: build file not found: {build_path}", file=sys.stderr)
        return 2

    try:
        build = Build.model_validate(_load_json(build_path))
    except (json.JSONDecodeError, OSError, ValidationError) as exc:
        print(f"ERROR: failed to load {build_path}: {exc}", file=sys.stderr)
        return 1

    overrides: dict = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.fps is not None:
        overrides["fps"] = args.fps
    if args.zero_pad is not None:
        overrides["zero_pad"] = args.zero_pad
    try:
        options = ExportOptions(**overrides)
    except ValidationError as exc:
        print(f"ERROR: invalid export options: {exc}", file=sys.stderr)
        return 2

    catalog = CategoryCatalog.discover(args.defs)
    compositor = Compositor.from_catalog(catalog, spritesheets_root=args.spritesheets)
    result = export_build(build, compositor, args.out_dir, args.slug, options)

    total = sum(result.frames.values())
    print(f"OK: {len(result.sheets)} sheets; {total} frames → {args.out_dir}")
    return 0


# ---------------------------------------------------------------------------
# entry point
# ---------------------------------------------------------------------------

def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sprites", description=__doc__,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("convert", help="Resolve a character intermediary into a ULPC build.")
    p.add_argument("--in", dest="input", required=True, metavar="PATH")
    p.add_argument("--out", dest="output", required=True, metavar="PATH")
    p.add_argument("--trace", metavar="PATH", help="Also write the resolution trace.")
    p.add_argument("--defs", metavar="DIR", help="sheet_definitions directory.")
    p.add_argument("--reference", metavar="FILE", help="Category reference JSON.")
    p.add_argument("--animations", metavar="LIST", help="Comma-separated animations.")
    p.set_defaults(func=cmd_convert)

    p = sub.add_parser("schema", help="Write the catalog-locked build schema.")
    p.add_argument("--out", dest="output", required=True, metavar="PATH")
    p.add_argument("--defs", metavar="DIR")
    p.set_defaults(func=cmd_schema)

    p = sub.add_parser("export", help="Compose and slice a ULPC build.")
    p.add_argument("--build", required=True, metavar="PATH")
    p.add_argument("--out-dir", required=True, metavar="DIR")
    p.add_argument("--slug", required=True)
    p.add_argument("--defs", metavar="DIR")
    p.add_argument("--spritesheets", metavar="DIR")
    p.add_argument("--mode", choices=["full", "split_by_animation", "split_by_frame", "both"])
    p.add_argument("--fps", type=float)
    p.add_argument("--zero-pad", type=int)
    p.set_defaults(func=cmd_export)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code) if exc.code is not None else 2

    configure_logging()
    try:
        return args.func(args)
    except SpritePipelineError as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
