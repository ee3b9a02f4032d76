"""
Command-line interface for market discovery and order placement.

Every command prints JSON to stdout; logs go to stderr.

Usage:
    polyscout search "nba finals" --limit 5 --sort-by volume
    polyscout interests politics crypto --knowledge beginner --risk conservative
    polyscout market 0xabc...
    polyscout book <token_id>
    polyscout check-buy 25 --condition-id 0xabc...
    polyscout check-sell <token_id> 10
    polyscout prepare 0xabc... buy 0.65 10 --outcome Yes
    polyscout buy 0xabc... Yes 0.65 10
    polyscout sell 0xabc... Yes 0.70 10
    polyscout market-order 0xabc... Yes buy --amount 5
    polyscout gtd 0xabc... Yes buy 0.40 10 --minutes 30
    polyscout positions [--user 0x...]
    polyscout orders
    polyscout events --limit 5
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from .clients.positions import PositionFilter
from .exceptions import EngineError
from .logging import configure as configure_logging
from .models import KnowledgeLevel, RankStrategy, RiskTolerance
from .session import Session
from . import service


def _markets_payload(markets) -> dict:
    return {"count": len(markets), "markets": [m.to_dict() for m in markets]}


async def _search(session: Session, args) -> Any:
    markets = await service.search_markets(
        session, args.query, args.limit, args.category, args.sort_by, args.risk
    )
    return _markets_payload(markets)


async def _interests(session: Session, args) -> Any:
    markets = await service.search_by_interests(
        session, args.interests, args.limit, args.knowledge, args.risk, args.sort_by
    )
    return _markets_payload(markets)


async def _market(session: Session, args) -> Any:
    return (await service.get_market(session, args.market_id)).to_dict()


async def _book(session: Session, args) -> Any:
    return (await service.get_order_book(session, args.token_id)).to_dict()


async def _check_buy(session: Session, args) -> Any:
    return (await service.check_buy_requirements(session, args.value, args.condition_id)).to_dict()


async def _check_sell(session: Session, args) -> Any:
    return (
        await service.check_sell_requirements(session, args.token_id, args.size, args.condition_id)
    ).to_dict()


async def _prepare(session: Session, args) -> Any:
    preview = await service.prepare_order(
        session, args.market_id, args.side, args.price, args.size, args.outcome
    )
    return preview.to_dict()


async def _buy(session: Session, args) -> Any:
    response = await service.create_buy_order(
        session, args.market_id, args.outcome, args.price, args.size, args.skip_validation
    )
    return response.to_dict()


async def _sell(session: Session, args) -> Any:
    response = await service.create_sell_order(
        session, args.market_id, args.outcome, args.price, args.size, args.skip_validation
    )
    return response.to_dict()


async def _market_order(session: Session, args) -> Any:
    response = await service.create_market_order(
        session,
        args.market_id,
        args.outcome,
        args.side,
        amount=args.amount,
        size=args.size,
        price=args.price,
        skip_validation=args.skip_validation,
    )
    return response.to_dict()


async def _gtd(session: Session, args) -> Any:
    response = await service.create_gtd_order(
        session,
        args.market_id,
        args.outcome,
        args.side,
        args.price,
        args.size,
        args.minutes,
        args.skip_validation,
    )
    return response.to_dict()


async def _positions(session: Session, args) -> Any:
    position_filter = PositionFilter(
        limit=args.limit,
        size_threshold=args.size_threshold,
        sort_by=args.sort_by,
        event_id=args.event_id,
        redeemable=True if args.redeemable else None,
    )
    positions = await service.get_positions(session, args.user, position_filter)
    return {
        "summary": service.summarize_positions(positions).to_dict(),
        "positions": [p.to_dict() for p in positions],
    }


async def _orders(session: Session, args) -> Any:
    orders = await service.get_open_orders(session)
    return {"count": len(orders), "orders": [o.to_dict() for o in orders]}


async def _events(session: Session, args) -> Any:
    groups = await service.get_markets_by_events(session, args.limit)
    return {title: [m.to_dict() for m in markets] for title, markets in groups.items()}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polyscout",
        description="Prediction market discovery and order validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (DEBUG, INFO, WARNING...)")
    sub = parser.add_subparsers(dest="command", required=True)

    strategies = [s.value for s in RankStrategy]
    risks = [r.value for r in RiskTolerance]
    levels = [k.value for k in KnowledgeLevel]

    p = sub.add_parser("search", help="Search markets by query")
    p.add_argument("query", nargs="?", default="", help="Free-text query (empty = browse)")
    p.add_argument("-l", "--limit", type=int, default=10)
    p.add_argument("-c", "--category", help="Category filter, e.g. Sports")
    p.add_argument("-s", "--sort-by", choices=strategies, default="relevance")
    p.add_argument("-r", "--risk", choices=risks, default="moderate")
    p.set_defaults(handler=_search)

    p = sub.add_parser("interests", help="Search markets by interests")
    p.add_argument("interests", nargs="+")
    p.add_argument("-l", "--limit", type=int, default=10)
    p.add_argument("-k", "--knowledge", choices=levels, default="intermediate")
    p.add_argument("-r", "--risk", choices=risks, default="moderate")
    p.add_argument("-s", "--sort-by", choices=strategies, default="relevance")
    p.set_defaults(handler=_interests)

    p = sub.add_parser("market", help="Market detail with outcome tokens")
    p.add_argument("market_id", help="Condition id (0x...) or discovery id")
    p.set_defaults(handler=_market)

    p = sub.add_parser("book", help="Order book for a token")
    p.add_argument("token_id")
    p.set_defaults(handler=_book)

    p = sub.add_parser("check-buy", help="Check collateral for a buy")
    p.add_argument("value", type=float, help="Order value in USD")
    p.add_argument("--condition-id")
    p.set_defaults(handler=_check_buy)

    p = sub.add_parser("check-sell", help="Check held shares for a sell")
    p.add_argument("token_id")
    p.add_argument("size", type=float)
    p.add_argument("--condition-id")
    p.set_defaults(handler=_check_sell)

    p = sub.add_parser("prepare", help="Preview an order without submitting")
    p.add_argument("market_id")
    p.add_argument("side", type=str.upper, choices=["BUY", "SELL"])
    p.add_argument("price", type=float)
    p.add_argument("size", type=float)
    p.add_argument("-o", "--outcome", default="Yes")
    p.set_defaults(handler=_prepare)

    for name, handler, help_text in (
        ("buy", _buy, "Resting limit buy"),
        ("sell", _sell, "Resting limit sell"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("market_id")
        p.add_argument("outcome")
        p.add_argument("price", type=float)
        p.add_argument("size", type=float)
        p.add_argument("--skip-validation", action="store_true")
        p.set_defaults(handler=handler)

    p = sub.add_parser("market-order", help="Fill-or-kill order")
    p.add_argument("market_id")
    p.add_argument("outcome")
    p.add_argument("side", type=str.upper, choices=["BUY", "SELL"])
    p.add_argument("--amount", type=float, help="USD to spend (buy)")
    p.add_argument("--size", type=float, help="Shares to sell (sell)")
    p.add_argument("--price", type=float, help="Worst price (buy) or floor price (sell)")
    p.add_argument("--skip-validation", action="store_true")
    p.set_defaults(handler=_market_order)

    p = sub.add_parser("gtd", help="Good-till-date limit order")
    p.add_argument("market_id")
    p.add_argument("outcome")
    p.add_argument("side", type=str.upper, choices=["BUY", "SELL"])
    p.add_argument("price", type=float)
    p.add_argument("size", type=float)
    p.add_argument("-m", "--minutes", type=int, required=True, help="Minutes until expiry")
    p.add_argument("--skip-validation", action="store_true")
    p.set_defaults(handler=_gtd)

    p = sub.add_parser("positions", help="Wallet positions and summary")
    p.add_argument("-u", "--user", help="Wallet address (default: configured wallet)")
    p.add_argument("-l", "--limit", type=int, default=50)
    p.add_argument("--size-threshold", type=float, default=1.0)
    p.add_argument("--sort-by", default="CURRENT")
    p.add_argument("--event-id")
    p.add_argument("--redeemable", action="store_true", help="Only redeemable positions")
    p.set_defaults(handler=_positions)

    p = sub.add_parser("orders", help="Open orders")
    p.set_defaults(handler=_orders)

    p = sub.add_parser("events", help="Markets grouped by event")
    p.add_argument("-l", "--limit", type=int, default=10)
    p.set_defaults(handler=_events)

    return parser


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        async with Session.open() as session:
            result = await args.handler(session, args)
    except EngineError as e:
        print(json.dumps({"success": False, "error": str(e), "kind": e.kind.value}, indent=2))
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


def run() -> None:
    """Console entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
