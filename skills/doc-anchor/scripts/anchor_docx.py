#!/usr/bin/env python3
"""
ABOUTME: Command line for paragraph anchoring: index, verify, report, generate
ABOUTME: Reads and writes .docx files on disk around the docx_anchor core
"""

import argparse
import sys
from pathlib import Path

from docx_anchor import (
    DocxAnchorError,
    build_container_report,
    check_package,
    generate_package,
    index_package,
    load_anchor_map,
    load_bindings,
    save_anchor_map,
)
from docx_anchor.common import SENTINEL_MARKER, format_text_preview

# Exit code when the document opened fine but no owned container survived
EXIT_INTEGRITY_LOST = 2

# Number of found ids printed by verify (all of them with --verbose)
ID_SAMPLE_SIZE = 5


def cmd_index(args) -> int:
    source = Path(args.input)
    output = Path(args.output) if args.output else source.with_stem(source.stem + '_indexed')
    anchors_path = Path(args.anchors) if args.anchors else \
        output.with_name(output.stem + '_anchors.json')

    data = source.read_bytes()
    print(f"Source file: {source} ({len(data)} bytes)")
    indexed, anchors = index_package(data, verbose=args.verbose)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(indexed)
    save_anchor_map(anchors, anchors_path)

    print("-" * 50)
    print(f"Indexed paragraphs: {len(anchors)}")
    print(f"Output to: {output} ({len(indexed)} bytes)")
    print(f"Anchor map: {anchors_path}")
    return 0


def cmd_verify(args) -> int:
    source = Path(args.input)
    report = check_package(source.read_bytes(), verbose=args.verbose)

    print(f"Document: {source}")
    print("-" * 50)
    print(f"Total containers: {report.total_containers}")
    print(f"Owned containers: {report.owned_container_count}")
    print(f"Foreign containers: {report.foreign_container_count}")
    print(f"Malformed containers: {report.malformed_count}")

    if not report.preserved:
        print("\nRESULT: INTEGRITY LOST")
        print("  No anchor container survived; the editor may have stripped them.")
        return EXIT_INTEGRITY_LOST

    print("\nRESULT: INTEGRITY PRESERVED")
    shown = report.found_ids if args.verbose else report.found_ids[:ID_SAMPLE_SIZE]
    for i, anchor_id in enumerate(shown, 1):
        print(f"  {i}. {anchor_id}")
    if len(report.found_ids) > len(shown):
        print(f"  ... and {len(report.found_ids) - len(shown)} more")
    return 0


def cmd_report(args) -> int:
    print(build_container_report(Path(args.input).read_bytes()))
    return 0


def cmd_generate(args) -> int:
    source = Path(args.input)
    output = Path(args.output) if args.output else source.with_stem(source.stem + '_placeholder')

    anchors = load_anchor_map(args.anchors)
    value_bindings, generation_bindings = load_bindings(args.bindings)
    print(f"Source file: {source}")
    print(f"Anchors: {len(anchors)}, value bindings: {len(value_bindings)}, "
          f"generation bindings: {len(generation_bindings)}")
    if args.verbose:
        print("-" * 50)

    data, result = generate_package(
        source.read_bytes(), anchors, value_bindings, generation_bindings, verbose=args.verbose
    )

    if result.unresolved:
        print("\nUnresolved paragraphs:")
        for warning in result.warnings:
            anchor = anchors.get(warning.paragraph_id)
            preview = format_text_preview(anchor.text) if anchor is not None else ''
            print(f"  - {warning.paragraph_id}: {preview}")

    by_method = {}
    for resolution in result.resolutions:
        if resolution.resolved:
            by_method[resolution.method] = by_method.get(resolution.method, 0) + 1

    print("-" * 50)
    summary = ', '.join(f"{count} by {method}" for method, count in sorted(by_method.items()))
    print(f"Completed: {result.applied_count} applied ({summary or 'none'}), "
          f"{len(result.unresolved)} unresolved")
    if result.sentinel_applied:
        print(f"Warning: nothing applied, first paragraph marked with {SENTINEL_MARKER}")

    if not args.dry_run:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        print(f"Output to: {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Anchor DOCX paragraphs with content controls and generate placeholder documents"
    )
    sub = parser.add_subparsers(dest='command', required=True)

    p_index = sub.add_parser('index', help='Wrap every paragraph in an anchor container')
    p_index.add_argument('input', help='Source .docx file')
    p_index.add_argument('-o', '--output', help='Indexed .docx (default: <input>_indexed.docx)')
    p_index.add_argument('--anchors', help='Anchor map JSON (default: <output>_anchors.json)')
    p_index.set_defaults(func=cmd_index)

    p_verify = sub.add_parser('verify', help='Check whether anchors survived an external edit')
    p_verify.add_argument('input', help='.docx file to check')
    p_verify.set_defaults(func=cmd_verify)

    p_report = sub.add_parser('report', help='Print a per-container diagnostic report')
    p_report.add_argument('input', help='.docx file to inspect')
    p_report.set_defaults(func=cmd_report)

    p_generate = sub.add_parser('generate', help='Write placeholder tokens into bound paragraphs')
    p_generate.add_argument('input', help='Indexed .docx file')
    p_generate.add_argument('--anchors', required=True, help='Anchor map JSON written by index')
    p_generate.add_argument('--bindings', required=True, help='Bindings JSON file')
    p_generate.add_argument('-o', '--output', help='Output .docx (default: <input>_placeholder.docx)')
    p_generate.add_argument('--dry-run', action='store_true', help='Resolve only, do not save')
    p_generate.set_defaults(func=cmd_generate)

    for p in (p_index, p_verify, p_generate):
        p.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if not hasattr(args, 'verbose'):
        args.verbose = False

    try:
        return args.func(args)
    except (DocxAnchorError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
