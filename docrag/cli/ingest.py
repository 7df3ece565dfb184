"""Operator CLI for docrag.

Usage::

    python -m docrag.cli category-add --name "Contracts" --description "Signed contracts"
    python -m docrag.cli categories
    python -m docrag.cli upload --file ./msa.pdf --category <category-id>
    python -m docrag.cli process --document <document-id>
    python -m docrag.cli reprocess --document <document-id>
    python -m docrag.cli documents [--category <category-id>]
    python -m docrag.cli ask --category <category-id> "What is the notice period?"
    python -m docrag.cli search --category <category-id> "termination"

Every command builds its services through the same factory the web app uses,
so the CLI and the API always share a database and a storage root.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from docrag.config.loader import load_settings
from docrag.config.settings import Settings
from docrag.models.rag import ProcessingResult
from docrag.services.ingestion.extractors.detection import content_type_for
from docrag.utils.errors import DocRagError

Components = dict[str, Any]


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _print_result(result: ProcessingResult) -> int:
    print(f"  Status:           {result.status.value}")
    print(f"  Chunks stored:    {result.chunks_processed} / {result.total_chunks}")
    if result.error:
        print(f"  Error:            {result.error}")
    return 0 if result.success else 1


async def _handle_category_add(args: argparse.Namespace, components: Components) -> int:
    category = await components["document_service"].create_category(args.name, args.description)
    print(f"Created category {category.name}")
    print(f"  ID: {category.id}")
    return 0


async def _handle_categories(args: argparse.Namespace, components: Components) -> int:  # noqa: ARG001
    categories = await components["document_service"].list_categories()
    if not categories:
        print("No categories.")
        return 0
    for category in categories:
        state = "active" if category.is_active else "inactive"
        print(f"  {category.id}  {category.name:<30} {state}")
    return 0


async def _handle_upload(args: argparse.Namespace, components: Components) -> int:
    """Upload a local file and process it synchronously."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    content_type = args.content_type or content_type_for(path.name)
    document = await components["document_service"].upload_document(
        data=path.read_bytes(),
        filename=path.name,
        content_type=content_type,
        category_id=args.category,
    )
    print(f"Uploaded {document.name} ({document.file_size} bytes)")
    print(f"  Document ID:      {document.id}")

    result = await components["ingestion_service"].process_document(document.id)
    return _print_result(result)


async def _handle_process(args: argparse.Namespace, components: Components) -> int:
    print(f"Processing document {args.document}")
    result = await components["ingestion_service"].process_document(args.document)
    return _print_result(result)


async def _handle_reprocess(args: argparse.Namespace, components: Components) -> int:
    print(f"Reprocessing document {args.document}")
    result = await components["ingestion_service"].reprocess_document(args.document)
    return _print_result(result)


async def _handle_documents(args: argparse.Namespace, components: Components) -> int:
    documents = await components["document_service"].list_documents(args.category)
    if not documents:
        print("No documents.")
        return 0
    for document in documents:
        print(
            f"  {document.id}  {document.status.value:<10} "
            f"{document.chunk_count:>5} chunks  {document.name}"
        )
    return 0


async def _handle_ask(args: argparse.Namespace, components: Components) -> int:
    answer = await components["chat_service"].answer(args.question, args.category)
    print(answer.message)
    if answer.sources:
        print("\nSources:")
        for source in answer.sources:
            print(f"  {source.similarity:.3f}  {source.document_name}")
    return 0


async def _handle_search(args: argparse.Namespace, components: Components) -> int:
    matches = await components["chat_service"].search(args.query, args.category)
    if not matches:
        print("No matches.")
        return 0
    for match in matches:
        preview = match.content[:100].replace("\n", " ")
        print(f"  {match.similarity:.3f}  {match.document_name} #{match.chunk_index}: {preview}")
    return 0


_HANDLERS = {
    "category-add": _handle_category_add,
    "categories": _handle_categories,
    "upload": _handle_upload,
    "process": _handle_process,
    "reprocess": _handle_reprocess,
    "documents": _handle_documents,
    "ask": _handle_ask,
    "search": _handle_search,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred: importing main builds the web app and configures logging.
    from docrag.main import build_components, close_components, initialize_components

    components = build_components(app_settings)
    try:
        await initialize_components(components)
        return await _HANDLERS[args.command](args, components)
    except (DocRagError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await close_components(components)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the operator CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m docrag.cli",
        description="Manage docrag categories and documents, and query the index.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to the YAML config file (default: config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- category-add --
    cat_parser = subparsers.add_parser("category-add", help="Create a category")
    cat_parser.add_argument("--name", required=True, help="Category name")
    cat_parser.add_argument("--description", default=None, help="Optional description")

    # -- categories --
    subparsers.add_parser("categories", help="List categories")

    # -- upload --
    upload_parser = subparsers.add_parser("upload", help="Upload a file and process it")
    upload_parser.add_argument("--file", required=True, help="Path to the file")
    upload_parser.add_argument("--category", required=True, help="Category ID")
    upload_parser.add_argument(
        "--content-type",
        dest="content_type",
        default=None,
        help="MIME type (default: guessed from the file extension)",
    )

    # -- process / reprocess --
    process_parser = subparsers.add_parser("process", help="Run ingestion for a document")
    process_parser.add_argument("--document", required=True, help="Document ID")
    reprocess_parser = subparsers.add_parser(
        "reprocess", help="Reset a document to pending and run ingestion again"
    )
    reprocess_parser.add_argument("--document", required=True, help="Document ID")

    # -- documents --
    docs_parser = subparsers.add_parser("documents", help="List documents")
    docs_parser.add_argument("--category", default=None, help="Filter by category ID")

    # -- ask --
    ask_parser = subparsers.add_parser("ask", help="Ask a question of one category")
    ask_parser.add_argument("--category", required=True, help="Category ID")
    ask_parser.add_argument("question", help="The question")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Ranked chunk search")
    search_parser.add_argument("--category", default=None, help="Category ID")
    search_parser.add_argument("query", help="Search text")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, load settings, dispatch."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        app_settings = load_settings(args.config)
    except DocRagError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    sys.exit(asyncio.run(_run(args, app_settings)))


if __name__ == "__main__":
    main()
