"""
CLI entry point for Storefront Pricing.

This module wires together all components and provides the command-line
interface for the pricing pass, the FX refresh, the scheduler, the
maintenance tools and the web API.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Sequence

from storefront_pricing.maintenance.price_audit import INFLATED_THRESHOLD, PriceAuditor
from storefront_pricing.maintenance.price_normalizer import DEFAULT_THRESHOLD, PriceNormalizer
from storefront_pricing.services.container import AppServices, build_services
from storefront_pricing.utils.config_loader import AppConfig, load_config, load_env
from storefront_pricing.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Storefront Pricing - dynamic pricing and exchange rates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m storefront_pricing.main refresh-fx
    python -m storefront_pricing.main reprice
    python -m storefront_pricing.main normalize-prices --threshold 1000 --dry-run
    python -m storefront_pricing.main audit-prices --output data/output/audit.xlsx --currency EGP
    python -m storefront_pricing.main serve
        """,
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("refresh-fx", help="Fetch and store the latest exchange rates")
    subparsers.add_parser("reprice", help="Run one pricing pass over the catalog")

    normalize = subparsers.add_parser(
        "normalize-prices", help="Repair prices that were stored in minor units"
    )
    normalize.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_THRESHOLD,
        help=f"Final price above which an item is inflated (default: {DEFAULT_THRESHOLD:g})",
    )
    normalize.add_argument(
        "--dry-run",
        action="store_true",
        help="Report changes without saving",
    )

    audit = subparsers.add_parser("audit-prices", help="Write a price audit report")
    audit.add_argument(
        "--output", "-o",
        type=Path,
        help="Report path, .xlsx or .csv (default: data/output/price_audit.xlsx)",
    )
    audit.add_argument(
        "--currency",
        action="append",
        default=[],
        help="Add converted display prices for this currency (repeatable)",
    )
    audit.add_argument(
        "--threshold",
        type=float,
        default=INFLATED_THRESHOLD,
        help=f"Final price above which an item is flagged inflated (default: {INFLATED_THRESHOLD:g})",
    )

    scheduler = subparsers.add_parser("run-scheduler", help="Run the background jobs until interrupted")
    scheduler.add_argument(
        "--run-now",
        action="store_true",
        help="Run every job once at startup",
    )

    serve = subparsers.add_parser("serve", help="Run the web API")
    serve.add_argument("--host", help="Bind host (default: from config)")
    serve.add_argument("--port", type=int, help="Bind port (default: from config)")

    return parser.parse_args(argv)


def _print_header(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def run_refresh_fx(services: AppServices) -> int:
    result = services.fx_service.refresh_rates()

    _print_header("FX REFRESH")
    if not result["success"]:
        print("  ✗ Refresh failed; previous rates kept")
        for error in result["errors"]:
            print(f"    - {error}")
        print("=" * 60 + "\n")
        return 1

    print(f"  Date: {result['date']}")
    print(f"  Rates stored: {result['rates_count']}")
    for code, rate in sorted(result["rates"].items()):
        print(f"    {code}: {rate}")
    if result["missing_currencies"]:
        print(f"  ⚠ Missing: {', '.join(result['missing_currencies'])}")
    print("=" * 60 + "\n")
    return 0


def run_reprice(services: AppServices) -> int:
    result = services.pricing_service.run_pricing_pass()

    _print_header("PRICING SUMMARY")
    print(f"  Products scanned: {result['total']}")
    print(f"  Products updated: {result['updated']}")
    print(f"  Errors: {result['errors']}")
    print(f"  Duration: {result['duration_ms']}ms")
    print("=" * 60 + "\n")
    return 0 if result["errors"] == 0 else 1


def run_normalize(services: AppServices, threshold: float, dry_run: bool) -> int:
    normalizer = PriceNormalizer(services.catalog, engine=services.engine, threshold=threshold)
    report = normalizer.run(dry_run=dry_run)

    _print_header("PRICE NORMALIZATION")
    for change in report.changes:
        label = f"{change.product_id}/{change.sku}" if change.sku else change.product_id
        print(f"  {label}: {change.final_price_before} -> {change.final_price_after}")
    print(f"\n  Products scanned: {report.scanned}")
    print(f"  Products normalized: {report.updated}")
    if dry_run:
        print("\n[DRY RUN] - No changes saved")
    print("=" * 60 + "\n")
    return 0


def run_audit(
    services: AppServices,
    output: Path | None,
    currencies: list[str],
    threshold: float,
) -> int:
    output = output or Path(services.config.paths.output_dir) / "price_audit.xlsx"
    auditor = PriceAuditor(
        services.catalog,
        engine=services.engine,
        fx_service=services.fx_service,
        inflated_threshold=threshold,
    )
    try:
        path = auditor.export(output, currencies)
    except ValueError as e:
        logger.error(f"Audit failed: {e}")
        print(f"\n✗ Error: {e}")
        return 1

    print(f"\n✓ Audit report written: {path}\n")
    return 0


def run_scheduler(services: AppServices, run_now: bool) -> int:
    """Start the scheduler and block until SIGINT/SIGTERM."""
    stop = threading.Event()

    def _handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, stopping scheduler...")
        stop.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    scheduler = services.scheduler
    scheduler.start(run_immediately=run_now or services.config.scheduler.run_on_start)
    print(f"\nScheduler running jobs: {', '.join(scheduler.job_names)} (Ctrl+C to stop)\n")
    try:
        while not stop.wait(1.0):
            pass
    finally:
        scheduler.stop()
    return 0


def run_serve(config: AppConfig, host: str | None, port: int | None) -> int:
    import uvicorn

    from storefront_pricing.webapp.main import create_app

    host = host or config.web.host
    port = port or config.web.port
    print(f"\nServer running at: http://{host}:{port}\n")
    uvicorn.run(create_app(config=config), host=host, port=port)
    return 0


def run_command(args: argparse.Namespace, config: AppConfig) -> int:
    """
    Dispatch a parsed command.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    if args.command == "serve":
        return run_serve(config, args.host, args.port)

    services = build_services(config)
    if args.command == "refresh-fx":
        return run_refresh_fx(services)
    if args.command == "reprice":
        return run_reprice(services)
    if args.command == "normalize-prices":
        return run_normalize(services, args.threshold, args.dry_run)
    if args.command == "audit-prices":
        return run_audit(services, args.output, args.currency, args.threshold)
    if args.command == "run-scheduler":
        return run_scheduler(services, args.run_now)

    logger.error(f"Unknown command: {args.command}")
    return 2


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point.

    Returns:
        int: Exit code.
    """
    load_env()
    args = parse_args(argv)
    config = load_config(args.config)

    level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(level=level, log_format=config.logging.format, log_file=config.logging.log_file)

    logger.info(f"Storefront Pricing starting: {args.command}")

    try:
        return run_command(args, config)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 130
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        print(f"\n✗ Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
