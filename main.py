from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Sequence

from dotenv import load_dotenv

from quote_router.common import log_event
from quote_router.routing import QuoteRouter, SwapParams
from quote_router.runtime import AppSettings, build_router, setup_logger

EXIT_OK = 0
EXIT_NO_ROUTE = 2
EXIT_BUILD_FAILED = 3


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    sys.stdout.flush()


def _add_swap_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input-mint", required=True)
    parser.add_argument("--output-mint", required=True)
    parser.add_argument("--amount", required=True, type=int, help="Input amount in base units")
    parser.add_argument("--slippage-bps", type=int, default=50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quote-router",
        description="Quote and build Solana swaps across aggregator, AMM and order-book backends.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    quote = commands.add_parser("quote", help="Best quote following the routing policy")
    _add_swap_arguments(quote)
    quote.add_argument("--token-age-ms", type=int, default=None)
    quote.add_argument("--liquidity-usd", type=float, default=None)

    compare = commands.add_parser("compare", help="Quotes from every backend, best first")
    _add_swap_arguments(compare)

    swap = commands.add_parser("swap", help="Best quote plus an unsigned swap transaction")
    _add_swap_arguments(swap)
    swap.add_argument("--wallet", required=True, help="Fee payer public key")
    swap.add_argument("--token-age-ms", type=int, default=None)
    swap.add_argument("--liquidity-usd", type=float, default=None)

    commands.add_parser("executors", help="List registered executors")
    return parser


def _params(args: argparse.Namespace) -> SwapParams:
    return SwapParams(
        input_mint=args.input_mint,
        output_mint=args.output_mint,
        amount=args.amount,
        slippage_bps=args.slippage_bps,
        wallet_key=getattr(args, "wallet", None),
    )


async def run_command(router: QuoteRouter, args: argparse.Namespace) -> int:
    if args.command == "executors":
        _emit(router.describe())
        return EXIT_OK

    params = _params(args)

    if args.command == "compare":
        quotes = await router.all_quotes(params)
        _emit([quote.to_dict() for quote in quotes])
        return EXIT_OK if quotes else EXIT_NO_ROUTE

    quote = await router.best_quote(
        params,
        token_age_ms=args.token_age_ms,
        liquidity_usd=args.liquidity_usd,
    )
    if quote is None:
        _emit({"error": "no_route", "inputMint": params.input_mint, "outputMint": params.output_mint})
        return EXIT_NO_ROUTE

    if args.command == "quote":
        _emit(quote.to_dict())
        return EXIT_OK

    result = await router.execute_swap(quote, args.wallet)
    if result is None:
        _emit({"error": "build_failed", "quote": quote.to_dict()})
        return EXIT_BUILD_FAILED
    _emit({"quote": quote.to_dict(), **result.to_dict()})
    return EXIT_OK


async def close_router(router: QuoteRouter, logger: logging.Logger) -> None:
    try:
        await router.close()
    except Exception as error:
        log_event(
            logger,
            level="warning",
            event="shutdown_close_failed",
            message="Failed to release router resources",
            error=str(error),
            error_type=type(error).__name__,
        )


async def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    settings = AppSettings.from_env()
    logger = setup_logger(settings.log_level)

    try:
        router = build_router(settings, logger)
    except ValueError as error:
        log_event(
            logger,
            level="error",
            event="router_config_invalid",
            message="Quote router configuration is invalid",
            error=str(error),
        )
        return 1

    try:
        await router.connect()
        return await run_command(router, args)
    except ValueError as error:
        log_event(
            logger,
            level="error",
            event="invalid_request",
            message="Swap request rejected",
            error=str(error),
        )
        return 1
    finally:
        await close_router(router, logger)
        log_event(logger, level="debug", event="shutdown_completed", message="Shutdown completed")


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
