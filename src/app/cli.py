"""
구독 운영 명령

    xendit-subscriptions fix-pending --all
    xendit-subscriptions fix-pending --subscription-id 42
    xendit-subscriptions send-payment-confirmation 42
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from core.config import settings
from core.factory import ServiceFactory
from core.responses import BusinessException

logger = logging.getLogger(__name__)


async def _fix_pending(subscription_id: Optional[str]) -> int:
    service = ServiceFactory.get_subscription_service()
    try:
        results = await service.fix_pending(subscription_id)
    except BusinessException as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    for row in results:
        print(json.dumps(row, default=str))
    fixed = sum(1 for row in results if row["outcome"] == "paid")
    print(f"checked={len(results)} fixed={fixed}")
    return 0


async def _send_payment_confirmation(subscription_id: str) -> int:
    service = ServiceFactory.get_subscription_service()
    try:
        sent = await service.resend_payment_confirmation(subscription_id)
    except BusinessException as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    if not sent:
        print("error: payment confirmation was not sent", file=sys.stderr)
        return 1
    print(f"payment confirmation sent for subscription {subscription_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xendit-subscriptions", description="Subscription maintenance commands.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    fix = subparsers.add_parser("fix-pending", help="Recheck pending subscriptions against Xendit.")
    fix.add_argument("--subscription-id", dest="subscription_id", help="Recheck a single subscription.")
    fix.add_argument("--all", dest="all", action="store_true", help="Recheck every pending subscription.")

    confirm = subparsers.add_parser("send-payment-confirmation", help="Resend the payment confirmation mail.")
    confirm.add_argument("subscription_id", help="Paid subscription ID.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.command == "fix-pending" and not (args.subscription_id or args.all):
        print("error: pass --subscription-id ID or --all", file=sys.stderr)
        return 1

    if not ServiceFactory.is_configured():
        ServiceFactory.configure_dependencies()

    if args.command == "fix-pending":
        return asyncio.run(_fix_pending(args.subscription_id))
    return asyncio.run(_send_payment_confirmation(args.subscription_id))


if __name__ == "__main__":
    raise SystemExit(main())
