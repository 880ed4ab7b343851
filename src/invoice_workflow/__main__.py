"""Command line entry point: ``python -m invoice_workflow``."""

import argparse
import asyncio
import json
import mimetypes
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .app import WorkflowApp
from .config import SystemConfig
from .processors import AutoProcessingResult, InboundEmail, UploadedDocument
from .utils import setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoice_workflow",
        description="Invoice extraction workflow: template matching and auto-processing",
    )
    parser.add_argument("--database-url", help="SQLAlchemy database URL")
    parser.add_argument("--storage-dir", help="Directory for stored documents and CSV files")
    parser.add_argument("--log-file", help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and default settings")

    create = sub.add_parser("create-job", help="Create a job from local files and auto-process it")
    create.add_argument("title")
    create.add_argument("files", nargs="+", help="PDF or image files")
    create.add_argument("--client-id", type=int, required=True)
    create.add_argument("--price", type=int, default=0, help="Total price in cents")
    create.add_argument("--deadline-hours", type=float, default=24)
    create.add_argument("--no-auto", action="store_true", help="Skip auto-processing")

    ingest = sub.add_parser("ingest-email", help="Create a job from a Postmark inbound webhook payload")
    ingest.add_argument("payload", help="Path to the webhook JSON, or - for stdin")
    ingest.add_argument("--no-auto", action="store_true", help="Skip auto-processing")

    process = sub.add_parser("process", help="Run auto-processing for a job")
    process.add_argument("job_id", type=int)

    match = sub.add_parser("match", help="Show saved templates matching a supplier")
    match.add_argument("supplier")
    match.add_argument("--client-name", default=None)

    settings = sub.add_parser("settings", help="Show system settings")
    settings.add_argument("--init", action="store_true", help="Insert missing defaults first")
    return parser


def result_to_dict(result: Optional[AutoProcessingResult]) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    return {
        "success": result.success,
        "action": result.action.value if result.action else None,
        "reason": result.reason,
        "supplier": result.supplier,
        "templateScore": result.template_score,
        "error": result.error,
        "csvUrl": result.completion.csv_url if result.completion else None,
    }


def read_documents(paths: List[str]) -> List[UploadedDocument]:
    documents = []
    for path in map(Path, paths):
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        documents.append(UploadedDocument(path.name, path.read_bytes(), content_type))
    return documents


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logger(os.getenv("LOG_LEVEL", "INFO"), log_file=args.log_file)
    app = WorkflowApp(database_url=args.database_url, storage_dir=args.storage_dir)

    try:
        if args.command == "init-db":
            config = SystemConfig.initialize_defaults(app.settings)
            logger.info("Database ready at %s", app.db_manager.database_url)
            print(json.dumps(config.as_dict(), indent=2))
            return 0

        if args.command == "create-job":
            job_id, result = asyncio.run(app.submit_job(
                args.title, args.client_id, read_documents(args.files),
                total_price=args.price, deadline_hours=args.deadline_hours,
                auto_process=not args.no_auto,
            ))
            print(json.dumps({"jobId": job_id, "autoProcessing": result_to_dict(result)},
                             indent=2))
            return 0 if result is None or result.success else 1

        if args.command == "ingest-email":
            if args.payload == "-":
                payload = json.load(sys.stdin)
            else:
                payload = json.loads(Path(args.payload).read_text(encoding="utf-8"))
            intake, result = asyncio.run(app.receive_email(InboundEmail.from_postmark(payload),
                                                           auto_process=not args.no_auto))
            print(json.dumps({
                "jobId": intake.job_id,
                "jobType": intake.job_type,
                "attachmentCount": intake.attachment_count,
                "autoProcessing": result_to_dict(result),
            }, indent=2))
            return 0 if result is None or result.success else 1

        if args.command == "process":
            result = asyncio.run(app.auto_processor().process(args.job_id))
            print(json.dumps(result_to_dict(result), indent=2))
            return 0 if result.success else 1

        if args.command == "match":
            matches = app.matcher.match(args.supplier, args.client_name)
            print(json.dumps([m.to_dict() for m in matches], indent=2))
            return 0

        if args.command == "settings":
            if args.init:
                config = SystemConfig.initialize_defaults(app.settings)
            else:
                config = app.system_config()
            print(json.dumps(config.as_dict(), indent=2))
            return 0
    except Exception as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    finally:
        app.close()
    return 2


if __name__ == "__main__":
    sys.exit(main())
