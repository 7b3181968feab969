from __future__ import annotations

import json
import logging
import unittest
from typing import Any, Sequence

from quote_router.routing.executors import (
    OPENBOOK_MARKETS,
    PHOENIX_MARKETS,
    JupiterExecutor,
    OpenBookExecutor,
    OrcaExecutor,
    PhoenixExecutor,
    RaydiumExecutor,
    find_market,
)
from quote_router.routing.executors.common import endpoint_urls, is_no_route_text, parse_amount
from quote_router.routing.transport import TransportResponse
from quote_router.routing.types import (
    SOL_MINT,
    USDC_MINT,
    USDT_MINT,
    EndpointUnavailableError,
    InvalidResponseError,
    NoRouteError,
    Quote,
    SwapParams,
)

LOGGER = logging.getLogger("test.executors")
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
WALLET = "11111111111111111111111111111111"


def _response(payload: Any, *, status: int = 200) -> TransportResponse:
    body = payload if isinstance(payload, str) else json.dumps(payload)
    return TransportResponse(status=status, url="https://stub.test", body=body)


class QueuedTransport:
    def __init__(self, *outcomes: TransportResponse | Exception) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def attempt(
        self,
        urls: Sequence[str],
        *,
        method: str = "GET",
        params: dict[str, str] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        timeout_seconds: float = 8.0,
    ) -> TransportResponse:
        self.calls.append(
            {
                "urls": tuple(urls),
                "method": method,
                "params": params,
                "json_body": json_body,
                "headers": headers,
                "timeout_seconds": timeout_seconds,
            }
        )
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _params(
    *,
    input_mint: str = SOL_MINT,
    output_mint: str = USDC_MINT,
    amount: int = 1_000_000_000,
) -> SwapParams:
    return SwapParams(input_mint=input_mint, output_mint=output_mint, amount=amount, slippage_bps=50)


JUPITER_QUOTE = {
    "inputMint": SOL_MINT,
    "outputMint": USDC_MINT,
    "inAmount": "1000000000",
    "outAmount": "95000000",
    "priceImpactPct": "0.0012",
    "routePlan": [
        {"swapInfo": {"label": "Whirlpool", "ammKey": "a"}, "percent": 100},
        {"swapInfo": {"label": "Phoenix", "ammKey": "b"}, "percent": 100},
    ],
}


class JupiterExecutorTests(unittest.IsolatedAsyncioTestCase):
    def _executor(self, transport: QueuedTransport, *, api_key: str | None = "key") -> JupiterExecutor:
        return JupiterExecutor(
            logger=LOGGER,
            transport=transport,
            api_urls=["https://quote-api.test/v6/", "https://api.test/swap/v1"],
            api_key=api_key,
            quote_timeout_seconds=3.0,
            build_timeout_seconds=9.0,
        )

    async def test_quote_parses_amounts_route_and_raw_payload(self) -> None:
        transport = QueuedTransport(_response(JUPITER_QUOTE))

        quote = await self._executor(transport).quote(_params())

        self.assertEqual(quote.source_id, "jupiter")
        self.assertEqual(quote.in_amount, 1_000_000_000)
        self.assertEqual(quote.out_amount, 95_000_000)
        self.assertEqual(quote.price_impact_pct, "0.0012")
        self.assertEqual(quote.hop_count, 2)
        self.assertEqual(quote.raw_payload, JUPITER_QUOTE)

        call = transport.calls[0]
        self.assertEqual(call["urls"], ("https://quote-api.test/v6/quote", "https://api.test/swap/v1/quote"))
        self.assertEqual(
            call["params"],
            {"inputMint": SOL_MINT, "outputMint": USDC_MINT, "amount": "1000000000", "slippageBps": "50"},
        )
        self.assertEqual(call["headers"], {"x-api-key": "key"})
        self.assertEqual(call["timeout_seconds"], 3.0)

    async def test_missing_api_key_sends_no_header_and_warns_once(self) -> None:
        transport = QueuedTransport(_response(JUPITER_QUOTE), _response(JUPITER_QUOTE))
        executor = self._executor(transport, api_key=None)

        with self.assertLogs("test.executors", level="WARNING") as logs:
            await executor.quote(_params())
            await executor.quote(_params())

        self.assertEqual(transport.calls[0]["headers"], {})
        warnings = [record for record in logs.records if getattr(record, "event", "") == "jupiter_api_key_missing"]
        self.assertEqual(len(warnings), 1)

    def test_dust_amount_is_not_handled(self) -> None:
        executor = JupiterExecutor(logger=LOGGER, transport=QueuedTransport(), min_amount=1_000)

        self.assertFalse(executor.can_handle(_params(amount=999)))
        self.assertTrue(executor.can_handle(_params(amount=1_000)))

    async def test_error_field_with_no_route_text_yields_none(self) -> None:
        transport = QueuedTransport(_response({"error": "Could not find any route", "errorCode": "COULD_NOT_FIND_ANY_ROUTE"}))

        with self.assertLogs("test.executors", level="INFO") as logs:
            quote = await self._executor(transport).quote(_params())

        self.assertIsNone(quote)
        self.assertIn("executor_no_route", [getattr(record, "event", "") for record in logs.records])

    async def test_no_route_status_yields_none(self) -> None:
        transport = QueuedTransport(_response({"error": "NO_ROUTES_FOUND"}, status=400))

        self.assertIsNone(await self._executor(transport).quote(_params()))

    async def test_unavailable_endpoints_yield_none(self) -> None:
        transport = QueuedTransport(EndpointUnavailableError("exhausted", rate_limited=True))

        with self.assertLogs("test.executors", level="WARNING") as logs:
            quote = await self._executor(transport).quote(_params())

        self.assertIsNone(quote)
        self.assertIn("executor_endpoint_unavailable", [getattr(record, "event", "") for record in logs.records])

    async def test_non_json_body_yields_none(self) -> None:
        transport = QueuedTransport(_response("<html>bad gateway</html>"))

        self.assertIsNone(await self._executor(transport).quote(_params()))

    async def test_unexpected_error_yields_none(self) -> None:
        transport = QueuedTransport(RuntimeError("session closed"))

        with self.assertLogs("test.executors", level="ERROR") as logs:
            quote = await self._executor(transport).quote(_params())

        self.assertIsNone(quote)
        self.assertEqual(logs.records[-1].event, "executor_quote_error")

    async def test_build_posts_quote_payload_and_returns_transaction(self) -> None:
        transport = QueuedTransport(_response(JUPITER_QUOTE), _response({"swapTransaction": "AQAB", "lastValidBlockHeight": 1}))
        executor = self._executor(transport)
        quote = await executor.quote(_params())

        result = await executor.build_transaction(quote, WALLET)

        self.assertEqual(result.serialized_transaction, "AQAB")
        self.assertEqual(result.source_id, "jupiter")
        build_call = transport.calls[1]
        self.assertEqual(build_call["method"], "POST")
        self.assertEqual(build_call["urls"], ("https://quote-api.test/v6/swap", "https://api.test/swap/v1/swap"))
        self.assertEqual(build_call["json_body"]["quoteResponse"], JUPITER_QUOTE)
        self.assertEqual(build_call["json_body"]["userPublicKey"], WALLET)
        self.assertTrue(build_call["json_body"]["wrapAndUnwrapSol"])
        self.assertEqual(build_call["timeout_seconds"], 9.0)

    async def test_build_refuses_quote_from_other_backend(self) -> None:
        transport = QueuedTransport()
        foreign = Quote(
            source_id="raydium",
            input_mint=SOL_MINT,
            output_mint=USDC_MINT,
            in_amount=1,
            out_amount=1,
            price_impact_pct="0",
            slippage_bps=50,
            route_plan=({"poolId": "x"},),
            raw_payload={"success": True},
        )

        self.assertIsNone(await self._executor(transport).build_transaction(foreign, WALLET))
        self.assertEqual(transport.calls, [])

    async def test_build_rejected_status_yields_none(self) -> None:
        transport = QueuedTransport(_response(JUPITER_QUOTE), _response({"error": "invalid wallet"}, status=400))
        executor = self._executor(transport)
        quote = await executor.quote(_params())

        self.assertIsNone(await executor.build_transaction(quote, WALLET))

    async def test_build_without_transaction_yields_none(self) -> None:
        transport = QueuedTransport(_response(JUPITER_QUOTE), _response({"lastValidBlockHeight": 1}))
        executor = self._executor(transport)
        quote = await executor.quote(_params())

        self.assertIsNone(await executor.build_transaction(quote, WALLET))

    async def test_build_with_unavailable_endpoints_yields_none(self) -> None:
        transport = QueuedTransport(_response(JUPITER_QUOTE), EndpointUnavailableError("exhausted"))
        executor = self._executor(transport)
        quote = await executor.quote(_params())

        self.assertIsNone(await executor.build_transaction(quote, WALLET))


class RaydiumExecutorTests(unittest.IsolatedAsyncioTestCase):
    async def test_quote_reads_data_and_requests_v0(self) -> None:
        payload = {
            "id": "req-1",
            "success": True,
            "data": {
                "inputAmount": "1000000000",
                "outputAmount": "94000000",
                "priceImpactPct": 0.05,
                "routePlan": [{"poolId": "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2"}],
            },
        }
        transport = QueuedTransport(_response(payload))
        executor = RaydiumExecutor(logger=LOGGER, transport=transport, api_urls=["https://ray.test/"])

        quote = await executor.quote(_params())

        self.assertEqual(quote.source_id, "raydium")
        self.assertEqual(quote.out_amount, 94_000_000)
        self.assertEqual(quote.price_impact_pct, "0.05")
        self.assertEqual(quote.raw_payload, payload)
        self.assertEqual(transport.calls[0]["urls"], ("https://ray.test/compute/swap-base-in",))
        self.assertEqual(transport.calls[0]["params"]["txVersion"], "V0")

    async def test_multi_hop_route_is_rejected(self) -> None:
        payload = {
            "success": True,
            "data": {"outputAmount": "94000000", "routePlan": [{"poolId": "a"}, {"poolId": "b"}]},
        }
        executor = RaydiumExecutor(logger=LOGGER, transport=QueuedTransport(_response(payload)))

        self.assertIsNone(await executor.quote(_params()))

    async def test_unsuccessful_response_yields_none(self) -> None:
        payload = {"success": False, "msg": "ROUTE_NOT_FOUND"}
        executor = RaydiumExecutor(logger=LOGGER, transport=QueuedTransport(_response(payload)))

        self.assertIsNone(await executor.quote(_params()))

    async def test_missing_data_object_yields_none(self) -> None:
        executor = RaydiumExecutor(logger=LOGGER, transport=QueuedTransport(_response({"success": True})))

        self.assertIsNone(await executor.quote(_params()))

    async def test_build_is_declined(self) -> None:
        transport = QueuedTransport()
        executor = RaydiumExecutor(logger=LOGGER, transport=transport)
        quote = Quote(
            source_id="raydium",
            input_mint=SOL_MINT,
            output_mint=USDC_MINT,
            in_amount=1,
            out_amount=1,
            price_impact_pct="0",
            slippage_bps=50,
            route_plan=({"poolId": "x"},),
        )

        self.assertIsNone(await executor.build_transaction(quote, WALLET))
        self.assertEqual(transport.calls, [])


class OrcaExecutorTests(unittest.IsolatedAsyncioTestCase):
    async def test_single_pool_quote_gets_synthetic_route(self) -> None:
        payload = {
            "whirlpool": "HJPjoWUrhoZzkNfRpHuieeFk9WcZWjwy6PBjZ81ngndJ",
            "estimatedAmountIn": "1000000000",
            "estimatedAmountOut": "94500000",
            "priceImpact": "0.03",
        }
        transport = QueuedTransport(_response(payload))
        executor = OrcaExecutor(logger=LOGGER, transport=transport, api_urls=["https://orca.test"])

        quote = await executor.quote(_params())

        self.assertEqual(quote.out_amount, 94_500_000)
        self.assertEqual(
            quote.route_plan,
            ({"source": "orca-whirlpool", "pool": "HJPjoWUrhoZzkNfRpHuieeFk9WcZWjwy6PBjZ81ngndJ"},),
        )
        self.assertEqual(transport.calls[0]["urls"], ("https://orca.test/v1/whirlpool/quote",))
        self.assertEqual(transport.calls[0]["params"]["mode"], "ExactIn")

    async def test_missing_output_yields_none(self) -> None:
        executor = OrcaExecutor(logger=LOGGER, transport=QueuedTransport(_response({"whirlpool": "x"})))

        self.assertIsNone(await executor.quote(_params()))


class PhoenixExecutorTests(unittest.IsolatedAsyncioTestCase):
    async def test_selling_base_uses_sell_side(self) -> None:
        transport = QueuedTransport(_response({"expectedOutput": "94800000", "priceImpact": "0.01"}))
        executor = PhoenixExecutor(logger=LOGGER, transport=transport, api_urls=["https://phoenix.test"])

        quote = await executor.quote(_params())

        market = PHOENIX_MARKETS["SOL/USDC"]
        self.assertEqual(quote.out_amount, 94_800_000)
        self.assertEqual(quote.route_plan, ({"source": "phoenix", "market": "SOL/USDC", "address": market.address},))
        self.assertEqual(quote.raw_payload["market"]["isBuy"], False)
        self.assertEqual(transport.calls[0]["urls"], (f"https://phoenix.test/v1/markets/{market.address}/quote",))
        self.assertEqual(transport.calls[0]["params"], {"amount": "1000000000", "side": "sell"})

    async def test_buying_base_uses_buy_side(self) -> None:
        transport = QueuedTransport(_response({"expectedOutput": "10000000"}))
        executor = PhoenixExecutor(logger=LOGGER, transport=transport)

        quote = await executor.quote(_params(input_mint=USDT_MINT, output_mint=SOL_MINT, amount=1_000_000))

        self.assertEqual(quote.in_amount, 1_000_000)
        self.assertEqual(transport.calls[0]["params"]["side"], "buy")

    async def test_pair_without_market_is_not_handled(self) -> None:
        transport = QueuedTransport()
        executor = PhoenixExecutor(logger=LOGGER, transport=transport)
        params = _params(output_mint=BONK_MINT)

        self.assertFalse(executor.can_handle(params))
        self.assertIsNone(await executor.quote(params))
        self.assertEqual(transport.calls, [])

    async def test_zero_fill_yields_none(self) -> None:
        executor = PhoenixExecutor(logger=LOGGER, transport=QueuedTransport(_response({"expectedOutput": "0"})))

        self.assertIsNone(await executor.quote(_params()))


class OpenBookExecutorTests(unittest.IsolatedAsyncioTestCase):
    async def test_unconfigured_executor_reports_no_route_without_requests(self) -> None:
        transport = QueuedTransport()
        executor = OpenBookExecutor(logger=LOGGER, transport=transport)

        self.assertTrue(executor.can_handle(_params()))
        self.assertIsNone(await executor.quote(_params()))
        self.assertEqual(transport.calls, [])

    async def test_configured_executor_quotes_market(self) -> None:
        transport = QueuedTransport(_response({"expectedOutput": "94700000"}))
        executor = OpenBookExecutor(logger=LOGGER, transport=transport, api_urls=["https://indexer.test"])

        quote = await executor.quote(_params())

        market = OPENBOOK_MARKETS["SOL/USDC"]
        self.assertEqual(quote.source_id, "openbook")
        self.assertEqual(quote.out_amount, 94_700_000)
        self.assertEqual(transport.calls[0]["urls"], (f"https://indexer.test/markets/{market.address}/quote",))


class QuoteOnlyBuildTests(unittest.IsolatedAsyncioTestCase):
    async def test_every_quote_only_backend_logs_and_returns_none(self) -> None:
        transport = QueuedTransport()
        executors = [
            RaydiumExecutor(logger=LOGGER, transport=transport),
            OrcaExecutor(logger=LOGGER, transport=transport),
            PhoenixExecutor(logger=LOGGER, transport=transport),
            OpenBookExecutor(logger=LOGGER, transport=transport, api_urls=["https://openbook.test"]),
        ]
        quote = Quote(
            source_id="jupiter",
            input_mint=SOL_MINT,
            output_mint=USDC_MINT,
            in_amount=1,
            out_amount=1,
            price_impact_pct="0",
            slippage_bps=50,
            route_plan=({"poolId": "x"},),
        )

        for executor in executors:
            with self.subTest(executor=executor.executor_id):
                with self.assertLogs("test.executors", level="INFO") as logs:
                    result = await executor.build_transaction(quote, WALLET)

                self.assertIsNone(result)
                self.assertEqual(logs.records[-1].event, "executor_build_declined")
                self.assertEqual(logs.records[-1].source, executor.executor_id)
                self.assertEqual(logs.records[-1].quote_source, "jupiter")
        self.assertEqual(transport.calls, [])


class ExecutorHelperTests(unittest.TestCase):
    def test_find_market_matches_both_directions(self) -> None:
        sell = find_market(PHOENIX_MARKETS, SOL_MINT, USDC_MINT)
        buy = find_market(PHOENIX_MARKETS, USDC_MINT, SOL_MINT)

        self.assertFalse(sell.is_buy)
        self.assertTrue(buy.is_buy)
        self.assertEqual(sell.market, buy.market)
        self.assertIsNone(find_market(PHOENIX_MARKETS, USDC_MINT, USDT_MINT))

    def test_endpoint_urls_normalizes_and_dedupes(self) -> None:
        urls = endpoint_urls(["https://a.test/", "https://a.test", " ", "https://b.test"], "/quote")

        self.assertEqual(urls, ("https://a.test/quote", "https://b.test/quote"))

    def test_no_route_text_detection(self) -> None:
        self.assertTrue(is_no_route_text('{"errorCode":"NO_ROUTES_FOUND"}'))
        self.assertFalse(is_no_route_text("internal server error"))

    def test_parse_amount_errors(self) -> None:
        with self.assertRaises(NoRouteError):
            parse_amount(None, field_name="outAmount", source="x")
        with self.assertRaises(InvalidResponseError):
            parse_amount("12.5", field_name="outAmount", source="x")
        with self.assertRaises(InvalidResponseError):
            parse_amount("-1", field_name="outAmount", source="x")
        self.assertEqual(parse_amount(" 42 ", field_name="outAmount", source="x"), 42)


if __name__ == "__main__":
    unittest.main()
