"""
Import a JSON file of material records from the CLI.

The job runs on the calling thread and the final job status is printed.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from app.container import build_container
from app.logging_utils import configure_logging
from app.services.material_import_service import InlineTaskExecutor, NoValidRecordsError
from db.session import get_session_factory


def _load_records(path: Path) -> list:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("records", [])
    if not isinstance(payload, list):
        raise SystemExit(f"{path} must hold a JSON array or an object with a 'records' array.")
    return payload


def main() -> int:
    parser = argparse.ArgumentParser(description="Bulk import material records into the catalog.")
    parser.add_argument("file", type=Path, help="JSON file with an array of records.")
    parser.add_argument("--owner-id", required=True, help="Catalog owner the records belong to.")
    parser.add_argument("--source", default=None, help="Job source label; defaults to the file name.")
    parser.add_argument(
        "--no-update-existing",
        dest="update_existing",
        action="store_false",
        help="Skip records whose SKU already exists.",
    )
    parser.add_argument(
        "--no-import-new",
        dest="import_new",
        action="store_false",
        help="Skip records that are not yet in the catalog.",
    )
    args = parser.parse_args()

    configure_logging()
    container = build_container(
        session_factory=get_session_factory(),
        executor=InlineTaskExecutor(),
    )

    try:
        accepted = container.import_service.trigger_import(
            owner_id=args.owner_id,
            records=_load_records(args.file),
            source=args.source or args.file.name,
            options={"update_existing": args.update_existing, "import_new": args.import_new},
        )
    except NoValidRecordsError as exc:
        print(json.dumps({"error": str(exc), "invalid_records": [r.to_dict() for r in exc.invalid_records]}, indent=2))
        return 1

    status = container.import_service.get_job_status(job_id=accepted.job_id, owner_id=args.owner_id)
    if status is None:
        return 1

    payload = {
        "job_id": str(status.job_id),
        "status": status.status,
        "total_items": status.total_items,
        "processed_items": status.processed_items,
        "imported_items": status.imported_items,
        "updated_items": status.updated_items,
        "skipped_items": status.skipped_items,
        "error_items": status.error_items,
        "invalid_count": accepted.invalid_count,
        "errors": [entry.to_dict() for entry in status.errors],
    }
    print(json.dumps(payload, indent=2))
    return 0 if status.status == "COMPLETED" else 2


if __name__ == "__main__":
    raise SystemExit(main())
