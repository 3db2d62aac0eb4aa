"""CLI entry point for relayquery.

Records are written to stdout as JSON lines (one NIP-01 event object per
line); progress and summaries go to the log on stderr.

Exit codes: ``0`` success (including an empty result), ``1`` configuration
error, ``2`` invalid input, ``130`` interrupted.

Examples:
    ```bash
    python -m relayquery query --relay wss://relay.damus.io --kind 1 --tag-name t --tag-value nostr
    python -m relayquery search "bitcoin" --relay wss://relay.nostr.band --since 2024-01-01T00:00
    python -m relayquery followings npub1... --relay wss://relay.damus.io
    python -m relayquery encode 7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e
    python -m relayquery decode npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qkw038js35mp4dma8qzvjptg
    ```
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from relayquery.core.exceptions import ConfigurationError, InvalidInputError
from relayquery.core.logger import Logger, setup_logging
from relayquery.models.progress import ProgressEvent, ProgressKind
from relayquery.services.followings import FollowingsLoader
from relayquery.services.query import QueryEngine
from relayquery.utils.bech32 import Bech32Error
from relayquery.utils.keys import (
    NPUB_PREFIX,
    InvalidIdentifierError,
    decode_identifier,
    encode_identifier,
    is_hex_pubkey,
)


EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_INVALID_INPUT = 2
EXIT_INTERRUPTED = 130

logger = Logger("cli")


def _emit(obj: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(obj, ensure_ascii=False) + "\n")


def _log_progress(event: ProgressEvent) -> None:
    if event.kind == ProgressKind.RECORD_RECEIVED:
        logger.debug("progress", kind=event.kind, relay=event.relay, count=event.count)
    elif event.kind == ProgressKind.FAILED:
        logger.warning("progress", kind=event.kind, relay=event.relay, error=event.error)
    else:
        logger.info("progress", kind=event.kind, relay=event.relay)


def _relays(args: argparse.Namespace) -> list[str] | None:
    return args.relay or None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run_query(engine: QueryEngine, args: argparse.Namespace) -> int:
    records = await engine.query(
        _relays(args),
        author=args.author,
        kind=args.kind,
        tag=(args.tag_name, args.tag_value),
        limit=args.limit,
        timeout=args.timeout,
        on_progress=_log_progress,
    )
    for record in records:
        _emit(record.to_dict())
    logger.info("records_written", count=len(records))
    return EXIT_OK


async def run_search(engine: QueryEngine, args: argparse.Namespace) -> int:
    records = await engine.search(
        _relays(args),
        args.text,
        authors=args.authors,
        since=args.since,
        until=args.until,
        limit=args.limit,
        timeout=args.timeout,
        on_progress=_log_progress,
    )
    for record in records:
        _emit(record.to_dict())
    logger.info("records_written", count=len(records))
    return EXIT_OK


async def run_followings(engine: QueryEngine, args: argparse.Namespace) -> int:
    loader = FollowingsLoader(engine, max_profiles=args.max_profiles)
    profiles = await loader.load(args.pubkey, _relays(args))
    for profile in profiles:
        _emit(profile.to_dict())
    logger.info("profiles_written", count=len(profiles))
    return EXIT_OK


async def run_encode(_engine: QueryEngine, args: argparse.Namespace) -> int:
    if not is_hex_pubkey(args.hex):
        raise InvalidInputError(f"expected 64 hex characters, got {args.hex!r}")
    _emit({"prefix": args.prefix, "bech32": encode_identifier(args.prefix, bytes.fromhex(args.hex))})
    return EXIT_OK


async def run_decode(_engine: QueryEngine, args: argparse.Namespace) -> int:
    prefix, hex_value = decode_identifier(args.identifier.strip())
    _emit({"prefix": prefix, "hex": hex_value})
    return EXIT_OK


COMMANDS: dict[str, Callable[[QueryEngine, argparse.Namespace], Awaitable[int]]] = {
    "query": run_query,
    "search": run_search,
    "followings": run_followings,
    "encode": run_encode,
    "decode": run_decode,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_relay_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--relay",
        action="extend",
        nargs="+",
        metavar="URL",
        help="wss:// relay URL(s), up to 5 (default: relays from --config)",
    )


def _add_budget_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--limit", type=int, help="Maximum records returned")
    parser.add_argument("--timeout", type=float, help="Time budget in seconds")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="relayquery",
        description="Query several Nostr relays at once",
    )
    parser.add_argument("--config", type=Path, help="YAML QueryConfig path")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")

    sub = parser.add_subparsers(dest="command", required=True)

    query = sub.add_parser("query", help="Fetch records by kind, author and tag")
    _add_relay_args(query)
    query.add_argument("--author", help="Author as npub or 64-char hex")
    query.add_argument("--kind", default="1", help="Event kind (default: 1)")
    query.add_argument("--tag-name", help="Single-letter tag name, e.g. t")
    query.add_argument("--tag-value", help="Tag value")
    _add_budget_args(query)

    search = sub.add_parser("search", help="NIP-50 full-text search")
    search.add_argument("text", help="Search term")
    _add_relay_args(search)
    search.add_argument("--authors", help="Authors separated by spaces or commas (max 40)")
    search.add_argument("--since", help="Lower time bound (unix seconds or ISO-8601)")
    search.add_argument("--until", help="Upper time bound (unix seconds or ISO-8601)")
    _add_budget_args(search)

    followings = sub.add_parser("followings", help="List profiles followed by a key")
    followings.add_argument("pubkey", help="Account key as npub or hex")
    _add_relay_args(followings)
    followings.add_argument(
        "--max-profiles", type=int, default=50, help="Profiles to resolve (default: 50)"
    )

    encode = sub.add_parser("encode", help="Encode 64-char hex as bech32")
    encode.add_argument("hex", help="32-byte value as hex")
    encode.add_argument("--prefix", default=NPUB_PREFIX, help="bech32 prefix (default: npub)")

    decode = sub.add_parser("decode", help="Decode a 32-byte bech32 identifier")
    decode.add_argument("identifier", help="e.g. npub1...")

    return parser


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def main(argv: list[str] | None = None) -> int:
    """Parse arguments, build the engine, and run one subcommand."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, json_output=args.json_logs)

    try:
        engine = QueryEngine.from_yaml(args.config) if args.config else QueryEngine()
    except (FileNotFoundError, ConfigurationError) as e:
        logger.error("config_invalid", path=str(args.config), error=str(e))
        return EXIT_CONFIG

    try:
        return await COMMANDS[args.command](engine, args)
    except (InvalidInputError, Bech32Error, InvalidIdentifierError) as e:
        logger.error("invalid_input", command=args.command, error=str(e))
        return EXIT_INVALID_INPUT
    finally:
        await engine.wait_closed()


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("interrupted")
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    cli()
