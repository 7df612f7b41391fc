"""CLI entry point for the candidate evaluator."""

import argparse
import asyncio
import json
import logging
import sys

from evaluator.core.config import Settings

DEFAULT_CONFIG = "config/settings.yaml"


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to settings YAML file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Candidate evaluator - score a CV and project report against ground truth",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- serve subcommand (default) ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    _add_common(serve_parser)
    serve_parser.add_argument("--host", help="Override server.host")
    serve_parser.add_argument("--port", type=int, help="Override server.port")

    # --- ingest subcommand ---
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Chunk ground-truth PDFs into the corpus and retrieval index",
    )
    _add_common(ingest_parser)
    ingest_parser.add_argument(
        "--docs",
        help="Directory of ground-truth PDFs (default: storage.docs_dir)",
    )

    # --- evaluate subcommand ---
    evaluate_parser = subparsers.add_parser(
        "evaluate",
        help="Evaluate a CV and project report once and print the result as JSON",
    )
    _add_common(evaluate_parser)
    evaluate_parser.add_argument("--job-title", required=True, help="Job title to evaluate against")
    evaluate_parser.add_argument("--cv", required=True, help="Path to the candidate CV PDF")
    evaluate_parser.add_argument("--project", required=True, help="Path to the project report PDF")

    args = parser.parse_args(argv)

    # Default to serve when no subcommand given
    if args.command is None:
        args.command = "serve"
        args.config = DEFAULT_CONFIG
        args.verbose = False
        args.host = None
        args.port = None

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_serve(settings: Settings, args: argparse.Namespace) -> None:
    """Handle serve subcommand."""
    import uvicorn

    from evaluator.api.app import create_app_from_settings

    app = create_app_from_settings(settings)
    uvicorn.run(
        app,
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
    )


async def cmd_ingest(settings: Settings, args: argparse.Namespace) -> None:
    """Handle ingest subcommand."""
    from evaluator.rag.corpus import ingest_directory
    from evaluator.rag.index import build_index

    docs_dir = args.docs or settings.storage.docs_dir
    index = build_index(settings)
    chunks = await ingest_directory(
        docs_dir,
        settings.storage.corpus_path,
        index,
        settings.chunking,
    )
    print(f"Ingested {len(chunks)} chunk(s) from {docs_dir} into {index.strategy} index.")
    for namespace in sorted({c.namespace.value for c in chunks}):
        count = sum(1 for c in chunks if c.namespace.value == namespace)
        print(f"  {namespace}: {count}")


async def cmd_evaluate(settings: Settings, args: argparse.Namespace) -> None:
    """Handle evaluate subcommand."""
    from evaluator.llm.client import StructuredCompletionClient
    from evaluator.pipeline.evaluation import EvaluationPipeline
    from evaluator.pipeline.pdf import parse_pdf
    from evaluator.rag.index import build_index

    cv_doc, project_doc = await asyncio.gather(
        asyncio.to_thread(parse_pdf, args.cv),
        asyncio.to_thread(parse_pdf, args.project),
    )
    print(f"Extracted {cv_doc.page_count} CV page(s) and {project_doc.page_count} project page(s).")

    pipeline = EvaluationPipeline(
        build_index(settings),
        StructuredCompletionClient.from_config(settings.llm, settings.retry),
        top_k=settings.retrieval.top_k,
    )
    result = await pipeline.evaluate(args.job_title, cv_doc.text, project_doc.text)
    print(json.dumps(result.model_dump(), indent=2))


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "ingest":
            asyncio.run(cmd_ingest(settings, args))
        elif args.command == "evaluate":
            asyncio.run(cmd_evaluate(settings, args))
        else:
            cmd_serve(settings, args)
    except (FileNotFoundError, ImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
