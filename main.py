"""CLI entry point for the learner recommendation engine."""

import argparse
import asyncio
import json
import logging
import sys

from recengine.catalog.memory import InMemoryCatalog
from recengine.core.config import Settings
from recengine.core.db import init_db
from recengine.core.errors import RecommendationError
from recengine.core.schemas import InteractionKind, OfferingKind
from recengine.pipeline.orchestrator import RecommendationEngine


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Learner recommendation engine - rank exams and opportunities per learner",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    common.add_argument(
        "--catalog",
        default="config/catalog.yaml",
        help="Path to catalog snapshot YAML (default: config/catalog.yaml)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- generate ---
    generate_parser = subparsers.add_parser(
        "generate", parents=[common], help="Generate recommendations for a learner",
    )
    generate_parser.add_argument("--learner", required=True, help="Learner ID")

    # --- list ---
    list_parser = subparsers.add_parser(
        "list", parents=[common], help="List a learner's active recommendations",
    )
    list_parser.add_argument("--learner", required=True, help="Learner ID")
    list_parser.add_argument(
        "--kind",
        choices=[k.value for k in OfferingKind],
        help="Only show one offering kind",
    )
    list_parser.add_argument("--limit", type=int, default=20, help="Max records (default: 20)")

    # --- top ---
    top_parser = subparsers.add_parser(
        "top", parents=[common], help="Top recommendations the learner has not viewed",
    )
    top_parser.add_argument("--learner", required=True, help="Learner ID")
    top_parser.add_argument("--limit", type=int, default=10, help="Max records (default: 10)")

    # --- interact ---
    interact_parser = subparsers.add_parser(
        "interact", parents=[common], help="Record an interaction on a recommendation",
    )
    interact_parser.add_argument("--record", type=int, required=True, help="Recommendation ID")
    interact_parser.add_argument(
        "--kind",
        required=True,
        choices=[k.value for k in InteractionKind],
        help="Interaction kind",
    )

    # --- trending ---
    trending_parser = subparsers.add_parser(
        "trending", parents=[common], help="Show trending offerings",
    )
    trending_parser.add_argument(
        "--kind",
        choices=[k.value for k in OfferingKind],
        help="Only show one offering kind",
    )
    trending_parser.add_argument("--limit", type=int, default=10, help="Max items (default: 10)")

    # --- metrics ---
    subparsers.add_parser(
        "metrics", parents=[common], help="Print per-strategy metrics as JSON",
    )

    # --- serve ---
    serve_parser = subparsers.add_parser(
        "serve", parents=[common], help="Run the HTTP API with uvicorn",
    )
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_engine(args: argparse.Namespace) -> tuple[RecommendationEngine, Settings]:
    settings = Settings.from_yaml(args.config)
    catalog = InMemoryCatalog.from_yaml(args.catalog)
    conn = init_db(settings.database.path)
    return RecommendationEngine(catalog, catalog, conn, settings), settings


async def run_command(args: argparse.Namespace, engine: RecommendationEngine) -> None:
    """Dispatch the non-server subcommands."""
    if args.command == "generate":
        result = await engine.generate(args.learner)
        print(f"Generated {result.generated_count} recommendations for '{result.learner_id}'.")
        for name, count in result.by_strategy.items():
            print(f"  {name}: {count} candidates")
        for warning in result.warnings:
            print(f"  warning: {warning}")

    elif args.command in ("list", "top"):
        kind = OfferingKind(args.kind) if getattr(args, "kind", None) else None
        if args.command == "list":
            records = await engine.list_for_learner(args.learner, kind=kind, limit=args.limit)
        else:
            records = await engine.top(args.learner, limit=args.limit)
        print(f"{len(records)} recommendations for '{args.learner}':")
        for r in records:
            flags = ",".join(
                k.value for k in InteractionKind if getattr(r.interaction, k.value)
            )
            title = r.offering_details.display_name if r.offering_details else "?"
            print(
                f"  #{r.id} {r.offering.kind.value}:{r.offering.id} {title} "
                f"score={r.score:.3f} [{r.strategy.value}] {flags}"
            )

    elif args.command == "interact":
        record = engine.record_interaction(args.record, args.kind)
        print(f"Recorded '{args.kind}' on recommendation #{record.id}.")

    elif args.command == "trending":
        kind = OfferingKind(args.kind) if args.kind else None
        items = await engine.trending(kind, limit=args.limit)
        for item in items:
            print(f"  {item.kind}:{item.id} {item.display_name} (popularity {item.popularity})")

    elif args.command == "metrics":
        print(json.dumps(engine.metrics().model_dump(mode="json"), indent=2))


def serve(engine: RecommendationEngine, settings: Settings, host: str, port: int) -> None:
    import uvicorn

    from recengine.api.app import create_app

    uvicorn.run(create_app(engine, settings), host=host, port=port, log_level="info")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        engine, settings = build_engine(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        serve(engine, settings, args.host, args.port)
        return

    try:
        asyncio.run(run_command(args, engine))
    except RecommendationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
