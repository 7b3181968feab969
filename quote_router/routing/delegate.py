from __future__ import annotations

import asyncio
import base64
import logging

from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from quote_router.common import log_event

from .types import Quote, SwapExecutor, SwapParams, SwapResult, TransactionBuildFailedError


def _parse_wallet(wallet_key: str) -> Pubkey:
    try:
        return Pubkey.from_string((wallet_key or "").strip())
    except Exception as error:
        raise TransactionBuildFailedError(f"invalid wallet public key: {wallet_key!r}") from error


def _fee_payer(serialized_transaction: str) -> Pubkey:
    try:
        decoded = base64.b64decode(serialized_transaction, validate=True)
        tx = VersionedTransaction.from_bytes(decoded)
    except Exception as error:
        raise TransactionBuildFailedError(f"built transaction is not a versioned transaction: {error}") from error
    account_keys = tx.message.account_keys
    if not account_keys:
        raise TransactionBuildFailedError("built transaction has no account keys")
    return account_keys[0]


class ExecutionDelegate:
    """Turn a winning quote into a signable transaction through the one authorized builder.

    Route discovery may come from any backend, but only the builder keeps its
    route plan and account list consistent with the instructions it emits. A
    quote from another backend is therefore only used to pick the trade; the
    builder is re-quoted for the same input, output, amount and slippage and
    its own quote is what gets built.
    """

    def __init__(self, *, builder: SwapExecutor, logger: logging.Logger) -> None:
        self._builder = builder
        self._logger = logger

    @property
    def builder_id(self) -> str:
        return self._builder.executor_id

    async def _requote(self, quote: Quote, wallet_key: str) -> Quote:
        params = SwapParams(
            input_mint=quote.input_mint,
            output_mint=quote.output_mint,
            amount=quote.in_amount,
            slippage_bps=quote.slippage_bps,
            wallet_key=wallet_key,
        )
        log_event(
            self._logger,
            level="info",
            event="execution_requote",
            message="Re-quoting the authorized builder for execution",
            quote_source=quote.source_id,
            builder=self.builder_id,
            selected_out_amount=quote.out_amount,
        )
        fresh = await self._builder.quote(params)
        if fresh is None:
            raise TransactionBuildFailedError(
                f"{self.builder_id} could not re-quote the route selected from {quote.source_id}",
                source_id=quote.source_id,
            )
        log_event(
            self._logger,
            level="info",
            event="execution_requote_ok",
            message="Authorized builder re-quoted the route",
            quote_source=quote.source_id,
            builder=self.builder_id,
            selected_out_amount=quote.out_amount,
            builder_out_amount=fresh.out_amount,
        )
        return fresh

    async def execute(self, quote: Quote, wallet_key: str) -> SwapResult:
        wallet = _parse_wallet(wallet_key)
        wallet_text = str(wallet)

        if quote.source_id == self.builder_id and quote.raw_payload:
            build_quote = quote
        else:
            build_quote = await self._requote(quote, wallet_text)

        try:
            result = await self._builder.build_transaction(build_quote, wallet_text)
        except asyncio.CancelledError:
            raise
        except Exception as error:
            raise TransactionBuildFailedError(
                f"{self.builder_id} build raised: {error}",
                source_id=quote.source_id,
            ) from error
        if result is None:
            raise TransactionBuildFailedError(
                f"{self.builder_id} did not return a transaction",
                source_id=quote.source_id,
            )

        fee_payer = _fee_payer(result.serialized_transaction)
        if fee_payer != wallet:
            raise TransactionBuildFailedError(
                f"built transaction pays fees from {fee_payer}, expected {wallet}",
                source_id=quote.source_id,
            )
        return result
