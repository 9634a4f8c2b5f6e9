"""
Command line interface.

    schemaflow import users --primary-key=id '[{"id": 1, "name": "Ann"}]'
    cat users.json | schemaflow import users -
    schemaflow infer @users.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from schemaflow import __version__
from schemaflow.common.logging_config import setup_logging
from schemaflow.common.metrics import get_metrics
from schemaflow.config.settings import Settings, get_settings
from schemaflow.inference.accumulator import SchemaAccumulator
from schemaflow.inference.classifier import DetectorConfig
from schemaflow.inference.errors import SchemaInferenceError
from schemaflow.inference.schema import schema_to_dict
from schemaflow.ingest.orchestrator import CONFLICT_POLICIES, ImportOptions, ImportSession, OrchestrationError
from schemaflow.ingest.reader import DocumentDecodeError, iter_input
from schemaflow.storage.adapter import StorageError
from schemaflow.storage.factory import create_collection_store

logger = logging.getLogger("schemaflow.cli")


def _comma_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _add_inference_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-d", "--inference-depth", type=int, default=None,
        help="Number of documents at the beginning of each batch to detect field types. "
             "Equal to the batch size if not set")
    parser.add_argument(
        "-p", "--primary-key", type=_comma_list, default=None,
        help="Comma separated list of fields forming the primary key (top level keys only)")
    parser.add_argument(
        "--autogenerate", type=_comma_list, default=None,
        help="Comma separated list of autogenerated fields (top level keys only)")
    parser.add_argument(
        "--on-conflict", choices=CONFLICT_POLICIES, default=None,
        help="What to do when documents disagree on a field type")
    parser.add_argument(
        "--detect-byte-arrays", dest="detect_byte_arrays", action="store_true", default=None,
        help="Try to detect base64 byte array fields")
    parser.add_argument(
        "--no-detect-uuids", dest="detect_uuids", action="store_false", default=None,
        help="Do not detect UUID fields")
    parser.add_argument(
        "--no-detect-times", dest="detect_times", action="store_false", default=None,
        help="Do not detect date-time fields")
    parser.add_argument(
        "--no-detect-integers", dest="detect_integers", action="store_false", default=None,
        help="Treat every number as a float")
    parser.add_argument(
        "documents", nargs="*", metavar="DOCUMENT",
        help="JSON documents or arrays, '@file' to read a file, '-' for stdin (default)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemaflow",
        description="Import JSON documents into collections, inferring and evolving their schema.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import documents into a collection")
    import_parser.add_argument("collection", help="Target collection")
    import_parser.add_argument("-b", "--batch-size", type=int, default=None, help="Documents per batch")
    import_parser.add_argument(
        "--update-schema", action="store_true", default=None,
        help="Evolve the schema of an existing collection from every batch")
    import_parser.add_argument(
        "-a", "--append", action="store_true", default=None,
        help="Append to an existing collection")
    import_parser.add_argument(
        "--no-create", action="store_true", default=None,
        help="Do not create the collection if it doesn't exist")
    import_parser.add_argument(
        "--no-auto-evolve", dest="auto_evolve_on_failure", action="store_false", default=None,
        help="Do not evolve the schema when storage rejects a batch")
    import_parser.add_argument(
        "--no-cleanup-null-values", dest="cleanup_null_values", action="store_false", default=None,
        help="Keep NULL values and empty arrays when retrying a rejected batch")
    import_parser.add_argument(
        "--storage", default=None, help="Storage backend: fs://, sql or http")
    import_parser.add_argument(
        "--metrics-file", default=None,
        help="Write Prometheus metrics to this file when the import ends")
    _add_inference_flags(import_parser)

    infer_parser = subparsers.add_parser("infer", help="Print the schema inferred from documents")
    infer_parser.add_argument("--collection", default="inferred", help="Schema title")
    _add_inference_flags(infer_parser)

    return parser


def _settings_for(args: argparse.Namespace, settings: Settings) -> Settings:
    overrides = {
        name: getattr(args, name)
        for name in ("detect_byte_arrays", "detect_uuids", "detect_times", "detect_integers")
        if getattr(args, name, None) is not None
    }
    if getattr(args, "storage", None):
        overrides["storage_backend"] = args.storage
    return settings.model_copy(update=overrides) if overrides else settings


def cmd_import(args: argparse.Namespace, settings: Settings, stdin: TextIO, stdout: TextIO) -> int:
    options = ImportOptions.from_settings(
        settings,
        batch_size=args.batch_size,
        inference_depth=args.inference_depth,
        primary_key=args.primary_key,
        auto_generate=args.autogenerate,
        update_schema=args.update_schema,
        append=args.append,
        no_create=args.no_create,
        auto_evolve_on_failure=args.auto_evolve_on_failure,
        cleanup_null_values=args.cleanup_null_values,
        conflict_policy=args.on_conflict,
    )
    store = create_collection_store(settings)
    try:
        session = ImportSession(
            store, args.collection, options, DetectorConfig.from_settings(settings))
        summary = session.import_documents(iter_input(args.documents or ["-"], stdin))
    finally:
        store.close()

    if args.metrics_file and settings.metrics_enabled:
        Path(args.metrics_file).write_bytes(get_metrics())

    stdout.write(json.dumps(summary.to_dict()) + "\n")
    return 0


def cmd_infer(args: argparse.Namespace, settings: Settings, stdin: TextIO, stdout: TextIO) -> int:
    options = ImportOptions.from_settings(
        settings,
        inference_depth=args.inference_depth,
        primary_key=args.primary_key,
        auto_generate=args.autogenerate,
        conflict_policy=args.on_conflict,
    )
    accumulator = SchemaAccumulator(args.collection, DetectorConfig.from_settings(settings))
    accumulator.evolve(
        iter_input(args.documents or ["-"], stdin),
        primary_key=options.primary_key,
        auto_generate=options.auto_generate,
        inference_depth=options.inference_depth,
        on_conflict=options.on_conflict,
    )
    stdout.write(json.dumps(schema_to_dict(accumulator.schema), indent=2, ensure_ascii=False) + "\n")
    return 0


COMMANDS = {
    "import": cmd_import,
    "infer": cmd_infer,
}


def main(
    argv: Optional[Sequence[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    args = build_parser().parse_args(argv)
    settings = _settings_for(args, get_settings())
    setup_logging(args.log_level or settings.log_level, json_format=settings.log_json)

    try:
        return COMMANDS[args.command](args, settings, stdin or sys.stdin, stdout or sys.stdout)
    except (OrchestrationError, SchemaInferenceError, StorageError, DocumentDecodeError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
