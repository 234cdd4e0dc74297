#!/usr/bin/env python3
"""CLI entry point for the LouiS stroke RAG system."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from stroke_rag.answer_parser import parse_answer
from stroke_rag.api_client import InferenceClient
from stroke_rag.config import ConfigurationError, ServiceConfig
from stroke_rag.indexer import ReferenceIndexer
from stroke_rag.llm_client import OpenAIClient
from stroke_rag.rag_pipeline import RAGPipeline
from stroke_rag.render import render_session
from stroke_rag.retriever import ReferenceRetriever
from stroke_rag.session import ActiveView, AnalysisSession, SessionState

# Load environment variables from .env file
load_dotenv()


async def index_command(data_dir: Path, index_path: Path, embedding_model: str) -> None:
    """Build vector index from reference documents."""
    print(f"Indexing reference documents from {data_dir}...")
    indexer = ReferenceIndexer(
        data_dir=data_dir, index_path=index_path, embedding_model=embedding_model
    )
    count = await indexer.index_all()
    print(f"Indexed {count} reference chunks successfully.")


async def run_session(
    session: AnalysisSession,
    query: str,
    views: list[ActiveView],
    config: ServiceConfig | None = None,
) -> int:
    """Submit one query and print the requested views."""
    print(f"Analyzing: {query}\n")
    await session.submit(query)
    if session.state is not SessionState.LOADED:
        print(render_session(session), file=sys.stderr)
        return 1

    image_url = None
    image = session.response.image
    if image and config and config.api_base_url:
        image_url = config.image_url(image.path)

    for view in views:
        session.select_view(view)
        print(render_session(session, image_url=image_url))
        print()
    return 0


async def query_command(
    query: str,
    config: ServiceConfig,
    remote: bool,
    view: str,
    as_json: bool = False,
) -> int:
    """Query the local pipeline or the remote API and print the structured answer."""
    views = list(ActiveView) if view == "all" else [ActiveView(view)]

    if remote:
        try:
            client = InferenceClient(config)
        except ConfigurationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        async with client:
            session = AnalysisSession(backend=client)
            if as_json:
                return await _print_json(session, query)
            return await run_session(session, query, views, config=config)

    retriever = ReferenceRetriever(
        index_path=config.index_path,
        embedding_model=config.embedding_model,
        top_k=config.top_k,
    )
    llm_client = OpenAIClient(model=config.llm_model)
    pipeline = RAGPipeline(retriever=retriever, llm_client=llm_client)
    session = AnalysisSession(backend=pipeline)
    if as_json:
        return await _print_json(session, query)
    return await run_session(session, query, views)


async def _print_json(session: AnalysisSession, query: str) -> int:
    parsed = await session.submit(query)
    if parsed is None:
        print(f"Error: {session.error}", file=sys.stderr)
        return 1
    payload = {
        "parsed": parsed.model_dump(),
        "retrieved_chunks": [s.model_dump() for s in session.snippets],
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def parse_command(source: Path | None) -> int:
    """Parse a saved answer (file or stdin) and print it as JSON."""
    raw = source.read_text(encoding="utf-8") if source else sys.stdin.read()
    parsed = parse_answer(raw)
    print(json.dumps(parsed.model_dump(), indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LouiS Stroke RAG - vascular syndrome suggestions from clinical text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    index_parser = subparsers.add_parser("index", help="Build reference index")
    index_parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory with reference documents (default: data)",
    )
    index_parser.add_argument(
        "--index-path",
        type=Path,
        default=None,
        help="Path to ChromaDB index (default: .chroma_db)",
    )

    query_parser = subparsers.add_parser("query", help="Analyze clinical data")
    query_parser.add_argument("query", type=str, help="Patient clinical data")
    query_parser.add_argument(
        "--remote",
        action="store_true",
        help="Send the query to the remote API instead of the local pipeline",
    )
    query_parser.add_argument(
        "--index-path", type=Path, default=None, help="ChromaDB index path (default: .chroma_db)"
    )
    query_parser.add_argument(
        "--model", type=str, default=None, help="OpenAI model to use (default: gpt-4o-mini)"
    )
    query_parser.add_argument(
        "--top-k", type=int, default=None, help="Number of chunks to retrieve (default: 5)"
    )
    query_parser.add_argument(
        "--view",
        choices=[v.value for v in ActiveView] + ["all"],
        default="all",
        help="Which section to print (default: all)",
    )
    query_parser.add_argument("--json", action="store_true", help="Print the parsed answer as JSON")

    parse_parser = subparsers.add_parser("parse", help="Parse a saved answer into JSON")
    parse_parser.add_argument(
        "file", type=Path, nargs="?", default=None, help="Answer file (default: stdin)"
    )

    return parser


def _config_from_args(args: argparse.Namespace) -> ServiceConfig:
    config = ServiceConfig.from_env()
    overrides = {
        "index_path": getattr(args, "index_path", None),
        "llm_model": getattr(args, "model", None),
        "top_k": getattr(args, "top_k", None),
    }
    return config.model_copy(update={k: v for k, v in overrides.items() if v is not None})


async def main() -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "parse":
        return parse_command(args.file)

    config = _config_from_args(args)
    if args.command == "index":
        await index_command(args.data_dir, config.index_path, config.embedding_model)
        return 0
    return await query_command(args.query, config, args.remote, args.view, args.json)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
