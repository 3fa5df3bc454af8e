"""
Command-line interface for Parallax.
"""
import argparse
import asyncio
import json
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from parallax.config import get_config, load_config
from parallax.core.lenses import Lens, custom_lens, get_lens
from parallax.core.pipeline import LensPipeline, RankingOptions
from parallax.core.scoring import ScoringStrategy, TemporalMode, parse_pub_date
from parallax.core.session import RunSession
from parallax.fetchers.feeds import FeedFetcher
from parallax.fetchers.search import PROVIDERS, build_query_url, provider_headers
from parallax.formatters.markdown import MarkdownFormatter
from parallax.graph.edges import (
    EdgeExtractionResult,
    SemanticEdge,
    SemanticEdgeExtractor,
    Term,
    build_term_index,
    normalize_relationships,
)
from parallax.graph.llm import OpenAIClient

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: bool = False) -> None:
    """
    Configure root logging for a command-line run.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Also write to parallax_YYYYMMDD.log in the working directory
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(f"parallax_{datetime.now().strftime('%Y%m%d')}.log"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Parallax - multi-perspective news lenses and term graphs")
    parser.add_argument("--config", help="Path to a YAML or JSON config file")
    parser.add_argument("--verbose", action="store_true", help="Log debug output")
    parser.add_argument("--log-file", action="store_true", help="Also log to parallax_YYYYMMDD.log")
    subparsers = parser.add_subparsers(dest="command", required=True)

    lens = subparsers.add_parser("lens", help="Fetch, score and rank coverage of a topic through a lens")
    lens.add_argument("topic", help="Research topic")
    lens.add_argument("--lens", default="political", help="Lens id (default: political)")
    lens.add_argument("--column", action="append", default=[],
                      help="Custom column label; repeat to build a custom lens searched per column")
    lens.add_argument("--entity", action="append", default=[], help="Named entity; repeatable")
    lens.add_argument("--seed-date", help="Event date the topic is anchored to")
    lens.add_argument("--mode", choices=[m.value for m in TemporalMode], help="Temporal handling")
    lens.add_argument("--strategy", choices=[s.value for s in ScoringStrategy], help="Scoring strategy")
    lens.add_argument("--window-days", type=float, help="Temporal window around the seed date")
    lens.add_argument("--min-score", type=int, help="Drop articles scoring below this")
    lens.add_argument("--search", choices=sorted(PROVIDERS), help="Also query a search provider")
    lens.add_argument("--format", choices=["md", "json", "list"], default="md",
                      help="Output format; list is a flat reading list across columns")
    lens.add_argument("--output", help="Write to this file instead of stdout")
    lens.add_argument("--progress", action="store_true", help="Show a progress bar while fetching")

    edges = subparsers.add_parser("edges", help="Extract semantic relationships between terms with an LLM")
    edges.add_argument("terms", help="JSON file: a list of terms or {terms, disciplines, topic}")
    edges.add_argument("--topic", help="Topic the terms belong to")
    edges.add_argument("--model", help="LLM model name")
    edges.add_argument("--strands", action="store_true", help="Include gallery strands in the output")
    edges.add_argument("--format", choices=["md", "json"], default="json", help="Output format")
    edges.add_argument("--output", help="Write to this file instead of stdout")

    layout = subparsers.add_parser("layout", help="Lay out terms from saved relationships")
    layout.add_argument("terms", help="JSON file with the terms")
    layout.add_argument("edges", help="JSON file with relationships (output of the edges command)")
    layout.add_argument("--points", help="JSON file with one 2D/3D point per term; refines them with edges")
    layout.add_argument("--output", help="Write to this file instead of stdout")

    return parser.parse_args(argv)


def read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_output(content: str, path: Optional[str] = None) -> None:
    if path:
        Path(path).write_text(content, encoding="utf-8")
        logger.info(f"Wrote {path}")
    else:
        print(content)


def load_terms(data: Any) -> Tuple[List[Term], List[str], str]:
    """
    Read terms from a bare list or a {terms, disciplines, topic} object.

    Strings are accepted as terms with default type and no disciplines.

    Returns:
        Terms (blank labels dropped), discipline names, topic
    """
    disciplines: List[str] = []
    topic = ""
    records = data
    if isinstance(data, dict):
        records = data.get("terms") or []
        disciplines = [str(d) for d in data.get("disciplines") or []]
        topic = str(data.get("topic") or "")
    terms = []
    for record in records if isinstance(records, list) else []:
        if isinstance(record, str):
            term = Term(label=record.strip())
        elif isinstance(record, dict):
            term = Term.from_dict(record)
        else:
            continue
        if term.label:
            terms.append(term)
    return terms, disciplines, topic


def load_edges(data: Any, terms: Sequence[Term]) -> List[SemanticEdge]:
    """Re-validate saved relationships against the terms."""
    records = data.get("relationships") if isinstance(data, dict) else data
    return normalize_relationships(records if isinstance(records, list) else [],
                                   build_term_index(terms), terms)


def _slug(label: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", label.lower()).strip("-") or "column"


def resolve_lens(args: argparse.Namespace) -> Lens:
    if args.column:
        return custom_lens([{"id": _slug(label), "label": label} for label in args.column])
    return get_lens(args.lens, get_config("lenses", {}))


def search_urls(lens: Lens, topic: str, provider: Optional[str]) -> Dict[str, List[str]]:
    """
    Query URLs per column when a search provider is selected.

    Columns without feeds of their own are searched for "<topic> <column label>";
    the others get one query for the topic.
    """
    if not provider:
        return {}
    language = get_config("search.language", "en")
    country = get_config("search.country", "us")
    urls = {}
    for column in lens.columns:
        query = topic if column.feeds else f"{topic} {column.label}"
        urls[column.id] = [build_query_url(query, language, country, provider)]
    return urls


async def run_lens(args: argparse.Namespace) -> int:
    seed_date = None
    if args.seed_date:
        seed_date = parse_pub_date(args.seed_date)
        if seed_date is None:
            logger.error(f"Could not parse seed date '{args.seed_date}'")
            return 2

    lens = resolve_lens(args)
    if not lens.columns:
        logger.error(f"Lens '{lens.id}' has no columns; use --column to define them")
        return 2

    defaults = RankingOptions.from_config()
    options = RankingOptions(
        strategy=args.strategy or defaults.strategy,
        temporal_mode=args.mode or defaults.temporal_mode,
        window_days=args.window_days if args.window_days is not None else defaults.window_days,
        min_score=args.min_score if args.min_score is not None else defaults.min_score,
        title_threshold=defaults.title_threshold,
    )
    session = RunSession.start(args.topic, args.entity, seed_date)
    provider = args.search
    extra_urls = search_urls(lens, args.topic, provider)

    logger.info(f"Running lens '{lens.id}' for '{args.topic}'")
    async with FeedFetcher(domain_headers=provider_headers(provider) if provider else None) as fetcher:
        pipeline = LensPipeline(fetcher.fetch, options, progress=args.progress)
        result = await pipeline.run(lens, session.fingerprint, extra_urls)
    session.record_lens(result)

    if args.format == "json":
        content = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    elif args.format == "list":
        items = [item for column_items in result.columns.values() for item in column_items]
        content = MarkdownFormatter().format_reading_list(items)
    else:
        content = MarkdownFormatter().format_lens_report(result, args.topic)
    write_output(content, args.output)
    return 0 if result.article_count or not result.failures else 1


async def run_edges(args: argparse.Namespace) -> int:
    terms, disciplines, topic = load_terms(read_json(args.terms))
    if not terms:
        logger.error(f"No terms found in {args.terms}")
        return 2

    session = RunSession(topic=args.topic or topic)
    session.set_terms(terms)
    client = OpenAIClient(model=args.model)
    try:
        result = await SemanticEdgeExtractor(client).extract(session.topic, terms, disciplines)
    finally:
        await client.close()
    session.set_edges(result)
    result = result or EdgeExtractionResult(term_count=len(terms))

    if args.format == "md":
        content = MarkdownFormatter().format_edges(result, session.gallery.strands if args.strands else ())
    else:
        payload = result.to_dict()
        if args.strands:
            payload["strands"] = [strand.to_dict() for strand in session.gallery.strands]
        content = json.dumps(payload, indent=2, ensure_ascii=False)
    write_output(content, args.output)
    return 0


def run_layout(args: argparse.Namespace) -> int:
    terms, _, topic = load_terms(read_json(args.terms))
    session = RunSession(topic=topic)
    session.set_terms(terms)
    edges = load_edges(read_json(args.edges), terms)
    session.set_edges(EdgeExtractionResult(relationships=edges, term_count=len(terms)))

    if args.points:
        points = read_json(args.points)
        try:
            refined = session.refine_layout(points)
        except ValueError as e:
            logger.error(str(e))
            return 2
        payload: Dict[str, Any] = {
            "points": [{"label": term.label, "position": point} for term, point in zip(terms, refined)]
        }
    else:
        payload = {"strands": [strand.to_dict() for strand in session.gallery.strands]}
    write_output(json.dumps(payload, indent=2, ensure_ascii=False), args.output)
    return 0


async def async_main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the application.
    """
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    if args.config:
        load_config(args.config)

    if args.command == "lens":
        return await run_lens(args)
    if args.command == "edges":
        return await run_edges(args)
    return run_layout(args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point for the command-line script.
    """
    try:
        return asyncio.run(async_main(argv))
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 1
    except (KeyError, ValueError, OSError) as e:
        logger.error(str(e))
        return 2
    except Exception as e:
        logger.exception(f"An error occurred: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
