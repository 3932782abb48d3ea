"""Price a cart from JSON files.

Usage:
    pricing-engine quote --request REQ.json --areas AREAS.json [--promos PROMOS.json]
    pricing-engine snapshot --request REQ.json --areas AREAS.json [--promos PROMOS.json]

Exit codes: 0 ok, 2 invalid input, 3 unknown delivery area, 4 lookup failed.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from .codec import (
    areas_from_wire,
    breakdown_to_wire,
    charge_request_from_wire,
    parse_timestamp,
    promo_store_from_wire,
    snapshot_to_wire,
)
from .config import PricingSettings
from .engine import calculate_charges
from .errors import LookupFailedError, PricingError, UnknownAreaError, ValidationError
from .fees import policy_from_settings
from .logconfig import configure_logging
from .lookups import PromoStore
from .money import parse_money
from .snapshot import create_order_snapshot

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_INVALID = 2
EXIT_UNKNOWN_AREA = 3
EXIT_LOOKUP_FAILED = 4


def _load_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path} is not valid JSON", e) from e
    except OSError as e:
        raise ValidationError(f"cannot read {path}", e) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pricing-engine", description="Order charge calculator")
    sub = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("quote", "print the charge breakdown"),
        ("snapshot", "print a frozen order snapshot"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--request", required=True, help="charge request JSON")
        cmd.add_argument("--areas", required=True, help="area listing JSON with delivery charges")
        cmd.add_argument("--promos", help="promo records JSON")
        cmd.add_argument("--product-base", help="targeted line total for product promos")
        cmd.add_argument("--user-usage", type=int, help="times the customer used the promo")
        cmd.add_argument(
            "--user-ineligible",
            action="store_true",
            help="the customer is not on the promo's eligibility list",
        )
        cmd.add_argument("--now", help="evaluation time, RFC 3339")
    return parser


def run(args: argparse.Namespace, settings: PricingSettings) -> dict:
    request = charge_request_from_wire(_load_json(args.request))
    areas = areas_from_wire(_load_json(args.areas))
    promos = promo_store_from_wire(_load_json(args.promos)) if args.promos else PromoStore([])

    product_base = None
    if args.product_base is not None:
        try:
            product_base = parse_money(args.product_base)
        except (TypeError, ValueError) as e:
            raise ValidationError("--product-base must be a decimal amount", e) from e

    breakdown = calculate_charges(
        request,
        promos,
        areas,
        policy_from_settings(settings),
        product_base=product_base,
        user_usage_count=args.user_usage,
        user_eligible=False if args.user_ineligible else None,
        now=parse_timestamp(args.now) if args.now else None,
    )
    if args.command == "snapshot":
        return snapshot_to_wire(create_order_snapshot(request, breakdown))
    return breakdown_to_wire(breakdown)


def _exit_code(err: PricingError) -> int:
    if isinstance(err, UnknownAreaError):
        return EXIT_UNKNOWN_AREA
    if isinstance(err, LookupFailedError):
        return EXIT_LOOKUP_FAILED
    return EXIT_INVALID


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = PricingSettings.from_env()
    except ValidationError as e:
        print(json.dumps({"error": {"code": e.code, "message": str(e)}}), file=sys.stderr)
        return EXIT_INVALID
    configure_logging(settings.log_level, settings.log_format)

    try:
        result = run(args, settings)
    except PricingError as e:
        logger.warning("pricing_failed", code=e.code, error=str(e))
        print(json.dumps({"error": {"code": e.code, "message": str(e)}}), file=sys.stderr)
        return _exit_code(e)

    print(json.dumps(result, indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
