"""
Entry point: serve the API or run one research/maintenance job.

Usage::

    python run.py serve
    python run.py research --topic "developer tools"
    python run.py twitter-batch tech health --reset
    python run.py remove-duplicates --threshold 0.8 --strategy keep-older
    python run.py clear-state
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run")


def _print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def serve(settings, args) -> None:
    import uvicorn

    from ideaslot.api import create_app
    from ideaslot.container import ServiceContainer

    container = await ServiceContainer.from_settings(settings)
    config = uvicorn.Config(
        create_app(container),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level="info",
    )
    # Served on this loop so the async store client stays on the loop that built it
    await uvicorn.Server(config).serve()


async def research(settings, args) -> None:
    from ideaslot.agents.research import enhance_prompt_with_research
    from ideaslot.container import ServiceContainer

    container = await ServiceContainer.from_settings(settings)
    result = await container.aggregator.get_combined_research(args.topic)
    _print(result.to_dict())
    if args.prompt:
        print(enhance_prompt_with_research(args.prompt, result))


async def twitter_batch(settings, args) -> None:
    from ideaslot.container import ServiceContainer

    container = await ServiceContainer.from_settings(settings)
    if args.reset:
        container.twitter_batch.reset()
    _print(await container.twitter_batch.run(args.categories, args.template))


async def remove_duplicates(settings, args) -> None:
    from ideaslot.container import ServiceContainer
    from ideaslot.models import RemovalStrategy, SimilarityWeights

    strategy = RemovalStrategy.parse(args.strategy)
    weights = SimilarityWeights(title=args.title_weight, description=args.description_weight)
    container = await ServiceContainer.from_settings(settings)
    report = await container.duplicate_remover().remove_duplicates(
        args.threshold, weights, strategy
    )
    _print(report.to_dict())


async def clear_state(settings, args) -> None:
    from ideaslot.scheduling.state_store import create_state_store

    cleared = create_state_store(settings.state_path).clear_state()
    logger.info("State %s: %s", "cleared" if cleared else "NOT cleared", settings.state_path)


COMMANDS = {
    "serve": serve,
    "research": research,
    "twitter-batch": twitter_batch,
    "remove-duplicates": remove_duplicates,
    "clear-state": clear_state,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="IdeaSlot research and maintenance")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    p = sub.add_parser("research", help="Print combined Reddit/Twitter trends")
    p.add_argument("--topic", default="")
    p.add_argument("--prompt", default=None, help="Also print this prompt enriched with trends")

    p = sub.add_parser("twitter-batch", help="Search Twitter once per category")
    p.add_argument("categories", nargs="+")
    p.add_argument("--template", default=None, help='Query template containing "{category}"')
    p.add_argument("--reset", action="store_true", help="Discard saved progress first")

    p = sub.add_parser("remove-duplicates", help="Delete near-duplicate ideas")
    p.add_argument("--threshold", type=float, default=0.7)
    p.add_argument("--strategy", default="keep-newer")
    p.add_argument("--title-weight", type=float, default=0.6)
    p.add_argument("--description-weight", type=float, default=0.4)

    sub.add_parser("clear-state", help="Delete saved batch progress")
    return parser


def main(argv=None) -> int:
    from ideaslot.config import get_settings
    from ideaslot.exceptions import (
        ConfigurationError,
        DatabaseError,
        IdeaSlotError,
        ValidationError,
    )

    args = build_parser().parse_args(argv)
    try:
        asyncio.run(COMMANDS[args.command](get_settings(), args))
    except (IdeaSlotError, ValidationError, DatabaseError, ConfigurationError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(0)
