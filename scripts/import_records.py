import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from healthlog import create_app
from healthlog.errors import HealthLogError
from healthlog.importer import run_import
from healthlog.models import User
from healthlog.store import get_record_store
from healthlog.transfer import detect_import_format, parse_json_rows, parse_workbook_rows


def main():
    parser = argparse.ArgumentParser(
        description="Import daily records for one user from a JSON or Excel file."
    )
    parser.add_argument("file", type=Path, help="Path to a .json or .xlsx file.")
    parser.add_argument("--email", required=True, help="Email of the account that owns the records.")
    parser.add_argument(
        "--allow-update",
        action="store_true",
        help="Overwrite days that already have a record instead of rejecting the import.",
    )
    args = parser.parse_args()

    file_format = detect_import_format(args.file.name)
    if file_format is None:
        parser.error("file must end in .json or .xlsx")

    app = create_app()
    with app.app_context():
        user = User.query.filter_by(email=args.email.strip().lower()).first()
        if user is None:
            print(f"No account found for {args.email}", file=sys.stderr)
            return 1

        content = args.file.read_bytes()
        try:
            rows = parse_json_rows(content) if file_format == "json" else parse_workbook_rows(content)
            result = run_import(
                get_record_store(),
                user.id,
                rows,
                allow_update=args.allow_update,
                chunk_size=app.config["IMPORT_CHUNK_SIZE"],
            )
        except HealthLogError as exc:
            print(f"Import failed: {exc}", file=sys.stderr)
            return 1

        print(f"Rows read: {result.total}")
        print(f"Skipped without valid weight: {result.skipped}")
        print(f"Merged rows sharing a date: {result.merged}")
        print(f"Records written: {result.written}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
