"""
Command-line front end for the capability-matrix store.

Example:
    cmm import vendor_a.xlsx vendor_b.xlsx --parent matrix-...
    cmm compare --template matrix-... --output comparison.csv
    cmm delete-requirement "Provide 24/7 support" --yes
    cmm undo
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from cmm_common.normalize import normalize_score
from cmm_common.schema import SCORE_CONFIG, MatrixWithRows

from .comparison import build_comparison_data, comparison_to_frame, get_requirement_delete_info
from .config import AppConfig, ConfigError, load_config
from .exporter import ExportMetadata, format_date_for_filename, write_matrix
from .importer import parse_excel_paths
from .ledger import RequirementLedger, UndoJournal
from .session import PendingSaveQueue
from .store import MatrixStore

LOGGER = logging.getLogger(__name__)


def configure_logging(verbosity: int) -> None:
    level = logging.DEBUG if verbosity > 0 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")


def _ledger(store: MatrixStore, config: AppConfig) -> RequirementLedger:
    return RequirementLedger(store, UndoJournal(config.store.undo_journal))


def _load_matrices(store: MatrixStore, matrix_ids: Sequence[str]) -> List[MatrixWithRows]:
    matrices: List[MatrixWithRows] = []
    for matrix_id in matrix_ids:
        matrix = store.get_matrix_with_rows(matrix_id)
        if matrix is None:
            LOGGER.warning("Matrix %s not found; skipped.", matrix_id)
            continue
        matrices.append(matrix)
    return matrices


def _comparison_ids(store: MatrixStore, args: argparse.Namespace) -> List[str]:
    if args.matrix_ids:
        return list(args.matrix_ids)
    if args.template:
        return [m.id for m in store.get_child_matrices(args.template)]
    return [m.id for m in store.get_imported_matrices()]


########################
# COMMANDS
########################

def cmd_list(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    matrices = store.get_all_matrices()
    if not matrices:
        print("No matrices.")
        return 0

    active = store.get_active_matrix_id()
    for matrix in matrices:
        kind = "imported" if matrix.is_imported else "template"
        marker = "*" if matrix.id == active else " "
        rows = len(store.get_matrix_rows(matrix.id))
        print(f"{marker} {matrix.id}  {matrix.name}  [{kind}, {rows} rows, updated {matrix.updated_at}]")

    counts = store.count_matrices()
    print(f"{counts['total']} matrices ({counts['user']} user, {counts['imported']} imported)")
    return 0


def cmd_new(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    matrix = store.create_matrix_with_rows(args.name, args.rows)
    store.set_active_matrix_id(matrix.id)
    print(f"Created {matrix.id} ({matrix.name}) with {len(matrix.rows)} empty rows")
    return 0


def cmd_import(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    if args.parent and store.get_matrix_by_id(args.parent) is None:
        LOGGER.error("Parent matrix %s not found", args.parent)
        return 2

    result = parse_excel_paths(args.files)
    for parsed in result.matrices:
        imported = store.import_parsed_matrix(parsed, parent_matrix_id=args.parent)
        print(f"Imported {imported.name} ({len(imported.rows)} rows) as {imported.id}")

    print(f"{len(result.matrices)} matrix(es) imported, {len(result.errors)} warning(s)")
    for error in result.errors:
        print(f"  - {error}")
    return 0 if result.matrices else 1


def cmd_compare(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    matrices = _load_matrices(store, _comparison_ids(store, args))
    if not matrices:
        LOGGER.error("No matrices to compare")
        return 1

    data = build_comparison_data(matrices)
    frame = comparison_to_frame(data)
    LOGGER.info("Compared %d requirement(s) across %d matrices", frame.height, len(matrices))

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        frame.write_csv(args.output, include_header=True)
        print(f"Wrote {args.output}")
    else:
        print(frame)
    return 0


def cmd_export(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    matrix = store.get_matrix_with_rows(args.matrix_id)
    if matrix is None:
        LOGGER.error("Matrix %s not found", args.matrix_id)
        return 2

    metadata = ExportMetadata(
        company_name=args.company or matrix.name,
        date=args.date or format_date_for_filename(),
        version=args.version or config.export.default_version,
    )
    path = write_matrix(
        matrix,
        metadata,
        args.output_dir or config.export.output_dir,
        title=config.export.title,
        sheet_name=config.export.sheet_name,
    )
    print(f"Wrote {path}")
    return 0


def cmd_edit_row(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    if store.get_matrix_row(args.row_id) is None:
        LOGGER.error("Row %s not found", args.row_id)
        return 2

    changes = {
        field: getattr(args, field)
        for field in ("requirement_number", "requirements", "past_performance", "comments")
        if getattr(args, field) is not None
    }
    if args.score is not None:
        changes["experience_and_capability"] = normalize_score(args.score)
    if not changes:
        LOGGER.error("Nothing to change")
        return 2

    with PendingSaveQueue(store, delay=config.session.debounce_seconds) as session:
        session.queue(args.row_id, **changes)
    print(f"Updated {args.row_id}: {', '.join(sorted(changes))}")
    return 0


def cmd_number(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    if store.get_matrix_by_id(args.matrix_id) is None:
        LOGGER.error("Matrix %s not found", args.matrix_id)
        return 2
    changed = store.assign_missing_numbers(args.matrix_id)
    print(f"Numbered {changed} row(s)")
    return 0


def cmd_delete_requirement(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    matrices = _load_matrices(store, [m.id for m in store.get_all_matrices()])
    info = get_requirement_delete_info(build_comparison_data(matrices), args.requirement)

    if info.companies_with_data:
        print(f'"{args.requirement}" has data in {len(info.companies_with_data)} matrix(es):')
        for company in info.companies_with_data:
            details = []
            if company.score is not None:
                details.append(f"score {company.score} ({SCORE_CONFIG[company.score].label})")
            if company.has_past_performance:
                details.append("past performance")
            if company.has_comments:
                details.append("comments")
            print(f"  - {company.matrix_name}: {', '.join(details)}")
        if not args.yes:
            print("Re-run with --yes to delete it anyway.")
            return 1

    result = _ledger(store, config).delete_by_requirement(args.requirement)
    print(f"Deleted {result.deleted_count} row(s) from {len(result.affected_matrix_ids)} matrix(es)")
    if result.deleted_count:
        print("Run `cmm undo` to restore them.")
    return 0


def cmd_undo(args: argparse.Namespace, config: AppConfig, store: MatrixStore) -> int:
    result = _ledger(store, config).undo()
    if result is None:
        print("Nothing to undo.")
        return 1
    print(f'Restored {result.deleted_count} row(s) for "{result.requirement}"')
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import, compare and export capability matrices.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML config (default: $CMM_CONFIG or cmm.yaml)",
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        help="Override the SQLite database path from the config.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for debug).",
    )
    subparsers = parser.add_subparsers(dest="command")

    listing = subparsers.add_parser("list", help="List stored matrices.")
    listing.set_defaults(func=cmd_list)

    new = subparsers.add_parser("new", help="Create an empty template matrix.")
    new.add_argument("name")
    new.add_argument("--rows", type=int, default=10, help="Number of empty rows (default: 10).")
    new.set_defaults(func=cmd_new)

    importer = subparsers.add_parser("import", help="Import vendor capability-matrix workbooks.")
    importer.add_argument("files", nargs="+", type=Path)
    importer.add_argument("--parent", help="Template matrix id to link the imports to.")
    importer.set_defaults(func=cmd_import)

    compare = subparsers.add_parser("compare", help="Side-by-side comparison by requirement.")
    compare.add_argument("matrix_ids", nargs="*", help="Matrices in column order (default: all imported).")
    compare.add_argument("--template", help="Compare every matrix imported against this template.")
    compare.add_argument("--output", type=Path, help="Optional CSV path for the comparison.")
    compare.set_defaults(func=cmd_compare)

    export = subparsers.add_parser("export", help="Export a matrix to the standard .xlsx layout.")
    export.add_argument("matrix_id")
    export.add_argument("--company", help="Company name (default: matrix name).")
    export.add_argument("--date", help="Date shown in the sheet and filename (default: today).")
    export.add_argument("--version", help="Version label (default from config).")
    export.add_argument("--output-dir", type=Path, help="Directory for the workbook.")
    export.set_defaults(func=cmd_export)

    edit = subparsers.add_parser("edit-row", help="Change fields of one row.")
    edit.add_argument("row_id")
    edit.add_argument("--number", dest="requirement_number", help="Requirement number, e.g. 1.2.")
    edit.add_argument("--requirements", help="Requirement text.")
    edit.add_argument("--score", help="Score 0-3; anything else clears it.")
    edit.add_argument("--past-performance", dest="past_performance")
    edit.add_argument("--comments")
    edit.set_defaults(func=cmd_edit_row)

    number = subparsers.add_parser("number", help="Assign numbers to rows that have none.")
    number.add_argument("matrix_id")
    number.set_defaults(func=cmd_number)

    delete = subparsers.add_parser(
        "delete-requirement",
        help="Delete a requirement from every matrix (undo with `cmm undo`).",
    )
    delete.add_argument("requirement")
    delete.add_argument("--yes", action="store_true", help="Delete even if vendors supplied data for it.")
    delete.set_defaults(func=cmd_delete_requirement)

    undo = subparsers.add_parser("undo", help="Restore the rows removed by the last delete-requirement.")
    undo.set_defaults(func=cmd_undo)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 2

    configure_logging(args.verbose)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        LOGGER.error("Config error: %s", exc)
        return 2

    db_path = args.db_path or config.store.db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with MatrixStore(db_path) as store:
        return args.func(args, config, store)


if __name__ == "__main__":
    sys.exit(main())
