import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from brand_search.config.settings import settings
from brand_search.container import configure_container, container
from brand_search.core.errors import SearchError
from brand_search.core.models.evaluation import EvaluationReport
from brand_search.core.models.search import SearchRequest
from brand_search.core.services.evaluation_service import SearchEvaluator
from brand_search.core.services.ingest_service import IngestService
from brand_search.core.services.search_orchestrator import SearchOrchestrator

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


async def cmd_ingest(args: argparse.Namespace) -> int:
    """Ingest command - chunk, embed and index markdown documents."""
    if args.docs:
        settings.docs_path = args.docs
    configure_container(settings)
    try:
        ingest_service = container.resolve(IngestService)
        count = await ingest_service.run(force=args.force)
    finally:
        await container.aclose()
    logger.info(f"Indexed {count} chunks")
    return 0


def _build_request(args: argparse.Namespace) -> SearchRequest:
    payload = {
        "query": args.query or "",
        "limit": args.limit or settings.search_limit,
        "threshold": settings.search_threshold,
        "searchMode": args.mode,
        "semanticWeight": settings.search_semantic_weight,
        "diversityLambda": settings.search_diversity_lambda,
        "includeFacets": args.facets,
        "expandQuery": args.expand,
    }
    if args.types:
        payload["types"] = args.types.split(",")
    if args.rerank is not None:
        payload["rerank"] = args.rerank
    if args.no_diversity:
        payload["diversity"] = False
    if args.similar_to:
        payload["similarTo"] = args.similar_to
        payload["excludeSameDocument"] = not args.include_same_document
    if args.filters:
        payload["filters"] = json.loads(args.filters)
    return SearchRequest.from_dict(payload)


def _print_results(response) -> None:
    timing = response.timing
    print(
        f"{len(response.results)} results "
        f"(candidates={response.meta.candidates_retrieved}, "
        f"reranked={response.meta.reranked}, {timing.total:.0f}ms)"
    )
    for i, result in enumerate(response.results, start=1):
        title = getattr(result, "title", "") or getattr(result, "name", "") or result.id
        snippet = " ".join(result.display_text.split())[:100]
        print(f"{i:>2}. [{result.type}] {title} ({result.score:.3f})")
        if snippet:
            print(f"    {snippet}")

    for source_type, facets in (response.facets or {}).items():
        values = ", ".join(f"{f.type}:{f.value}={f.count}" for f in facets)
        print(f"facets[{source_type.value}]: {values}")


async def cmd_search(args: argparse.Namespace) -> int:
    """Search command - run one query and print ranked results."""
    configure_container(settings)
    try:
        orchestrator = container.resolve(SearchOrchestrator)
        response = await orchestrator.search(_build_request(args))
    finally:
        await container.aclose()

    if args.json:
        print(json.dumps(response.to_dict(), indent=2, default=str))
    else:
        _print_results(response)
    return 0


def _print_report(report: EvaluationReport) -> None:
    overall = report.overall
    print("=" * 70)
    print("EVALUATION RESULTS")
    print("=" * 70)
    print(f"  MRR@10:           {overall.mrr10 * 100:.1f}%")
    print(f"  Recall@5:         {overall.recall5 * 100:.1f}%")
    print(f"  Recall@10:        {overall.recall10 * 100:.1f}%")
    print(f"  Exact Match Rate: {overall.exact_match_rate * 100:.1f}%")
    print(f"  Avg Latency:      {report.avg_latency_ms:.0f}ms")
    print(f"  P95 Latency:      {report.p95_latency_ms:.0f}ms")
    print("")
    print(f"{'Type':<15} {'Count':<7} {'MRR@10':<10} {'Recall@5':<10} {'Exact%':<10}")
    print("-" * 70)
    for query_type, summary in report.by_type.items():
        print(
            f"{query_type:<15} {summary.count:<7} {summary.mrr10 * 100:>5.1f}%    "
            f"{summary.recall5 * 100:>5.1f}%    {summary.exact_match_rate * 100:>5.1f}%"
        )
    print("")

    worst = sorted(report.queries, key=lambda q: q.reciprocal_rank)[:5]
    print("Worst Performing Queries:")
    for q in worst:
        top = q.top_titles[0] if q.top_titles else "No results found"
        print(f"  [{q.type}] \"{q.query}\" - RR: {q.reciprocal_rank:.3f} - Top: {top}")


async def cmd_evaluate(args: argparse.Namespace) -> int:
    """Evaluate command - score search quality on a labelled dataset."""
    configure_container(settings)
    try:
        evaluator = container.resolve(SearchEvaluator)
        report = await evaluator.evaluate_file(args.dataset or settings.evaluation_dataset_path)
    finally:
        await container.aclose()

    _print_report(report)

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(asdict(report), indent=2), encoding="utf-8")
        logger.info(f"Results saved to {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brand-search")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="index markdown documents")
    ingest.add_argument("--docs", help="documents folder (default: settings.docs_path)")
    ingest.add_argument("--force", action="store_true", help="re-index unchanged documents")
    ingest.set_defaults(handler=cmd_ingest)

    search = sub.add_parser("search", help="run a search query")
    search.add_argument("query", nargs="?", default="")
    search.add_argument("--types", help="comma-separated: chats,assets,documents")
    search.add_argument("--limit", type=int)
    search.add_argument("--mode", default="hybrid", choices=["hybrid", "semantic", "keyword"])
    search.add_argument("--rerank", dest="rerank", action="store_true", default=None)
    search.add_argument("--no-rerank", dest="rerank", action="store_false")
    search.add_argument("--no-diversity", action="store_true")
    search.add_argument("--similar-to", help="find chunks similar to this chunk ID")
    search.add_argument("--include-same-document", action="store_true")
    search.add_argument("--filters", help="JSON object of search filters")
    search.add_argument("--facets", action="store_true")
    search.add_argument("--expand", action="store_true", help="expand the keyword query")
    search.add_argument("--json", action="store_true", help="print the raw response")
    search.set_defaults(handler=cmd_search)

    evaluate = sub.add_parser("evaluate", help="evaluate search quality")
    evaluate.add_argument("--dataset", help="dataset JSON path")
    evaluate.add_argument("--output", help="write the full report as JSON")
    evaluate.set_defaults(handler=cmd_evaluate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(args.handler(args))
    except (SearchError, FileNotFoundError, json.JSONDecodeError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
