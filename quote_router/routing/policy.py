from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .types import (
    KIND_AGGREGATOR,
    KIND_DIRECT_AMM,
    KIND_ORDER_BOOK,
    RouteConfig,
    SwapExecutor,
    SwapParams,
    is_stable_pair,
)

DEFAULT_TIERS = (KIND_AGGREGATOR, KIND_DIRECT_AMM, KIND_ORDER_BOOK)
SMALL_TRADE_TIERS = (KIND_DIRECT_AMM, KIND_ORDER_BOOK, KIND_AGGREGATOR)
FRESH_TOKEN_TIERS = (KIND_DIRECT_AMM, KIND_AGGREGATOR, KIND_ORDER_BOOK)
LOW_LIQUIDITY_TIERS = (KIND_DIRECT_AMM, KIND_ORDER_BOOK, KIND_AGGREGATOR)
STABLE_PAIR_TIERS = (KIND_ORDER_BOOK, KIND_AGGREGATOR, KIND_DIRECT_AMM)


@dataclass(slots=True, frozen=True)
class RoutingSettings:
    small_trade_threshold: int = 500_000
    fresh_token_age_ms: int = 48 * 60 * 60 * 1000
    min_liquidity_usd: float = 50_000.0
    disabled_executors: frozenset[str] = frozenset()


class RoutePolicy:
    """Order executors by how well they suit one request.

    Rules run in a fixed order and each one that matches replaces the tier
    order chosen so far, so the last matching rule wins:

    * small trades put direct AMMs first and flag ``aggregator_last``
    * young tokens put direct AMMs first
    * thin liquidity puts single-hop venues first and flags ``prefer_single_hop``
    * stable/stable pairs put order books first

    Both flags outlive later rules. ``prefer_single_hop`` sorts single-hop
    executors ahead of the rest; ``aggregator_last`` then keeps aggregators
    behind every other kind. Executors sharing a kind keep their registration
    order.
    """

    def __init__(self, settings: RoutingSettings | None = None) -> None:
        self._settings = settings or RoutingSettings()

    @property
    def settings(self) -> RoutingSettings:
        return self._settings

    def route_config(
        self,
        params: SwapParams,
        executors: Mapping[str, SwapExecutor],
        *,
        token_age_ms: int | None = None,
        liquidity_usd: float | None = None,
    ) -> RouteConfig:
        tiers = DEFAULT_TIERS
        prefer_single_hop = False
        aggregator_last = False
        reasons: list[str] = []

        if params.amount < self._settings.small_trade_threshold:
            tiers = SMALL_TRADE_TIERS
            aggregator_last = True
            reasons.append("small_trade")

        if token_age_ms is not None and token_age_ms < self._settings.fresh_token_age_ms:
            tiers = FRESH_TOKEN_TIERS
            reasons.append("fresh_token")

        if liquidity_usd is not None and liquidity_usd < self._settings.min_liquidity_usd:
            tiers = LOW_LIQUIDITY_TIERS
            prefer_single_hop = True
            reasons.append("low_liquidity")

        if is_stable_pair(params.input_mint, params.output_mint):
            tiers = STABLE_PAIR_TIERS
            reasons.append("stable_pair")

        return RouteConfig(
            executor_order=self._order(
                executors,
                tiers=tiers,
                prefer_single_hop=prefer_single_hop,
                aggregator_last=aggregator_last,
            ),
            skip=frozenset(self._settings.disabled_executors),
            prefer_single_hop=prefer_single_hop,
            aggregator_last=aggregator_last,
            reasons=tuple(reasons),
        )

    @staticmethod
    def _order(
        executors: Mapping[str, SwapExecutor],
        *,
        tiers: tuple[str, ...],
        prefer_single_hop: bool,
        aggregator_last: bool,
    ) -> tuple[str, ...]:
        registration = {executor_id: index for index, executor_id in enumerate(executors)}

        def rank(executor_id: str) -> tuple[int, int, int, int]:
            executor = executors[executor_id]
            hop_rank = 0 if (not prefer_single_hop or executor.single_hop_only) else 1
            demoted = 1 if (aggregator_last and executor.kind == KIND_AGGREGATOR) else 0
            tier = tiers.index(executor.kind) if executor.kind in tiers else len(tiers)
            return (hop_rank, demoted, tier, registration[executor_id])

        return tuple(sorted(executors, key=rank))
