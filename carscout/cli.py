"""
Command-line entry point: run one aggregated search and print the top results.
"""
import argparse
import asyncio
import os
from dataclasses import replace

from .config import DEFAULT_PLATFORMS, settings
from .core import SearchService
from .export import save_output_rows
from .insights import summarize
from .models import InvalidFiltersError, SearchFilters
from .utils import init_logger, now_iso

logger = None


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Aggregate, match and rank used-car listings from several marketplaces")
    ap.add_argument("--model", type=str, required=True, help="Car model, e.g. 'Corolla'")
    ap.add_argument("--brand", type=str, default=None, help="Brand, e.g. 'Toyota'")
    ap.add_argument("--year", type=int, default=None, help="Model year")
    ap.add_argument("--color", type=str, default=None, help="Color")
    ap.add_argument("--location", type=str, default=None, help="Location, e.g. 'Dhaka'")
    ap.add_argument("--min-price", type=float, default=None, help="Minimum price (BDT)")
    ap.add_argument("--max-price", type=float, default=None, help="Maximum price (BDT)")
    ap.add_argument("--platforms", type=str, default=",".join(settings.enabled_platforms),
                    help=f"Comma-separated platforms (default: {','.join(DEFAULT_PLATFORMS)})")
    ap.add_argument("--headful", action="store_true", help="Show the browser window")
    ap.add_argument("--top", type=int, default=10, help="Number of results to print")
    ap.add_argument("--out", type=str, default="", help="CSV/XLSX to export ranked results to")
    # Logging
    lvl_choices = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    ap.add_argument("--log-level", choices=lvl_choices, default=None,
                    help="Global log level for both console and file (overrides --log-console/--log-file).")
    ap.add_argument("--log-console", choices=lvl_choices, default=os.getenv("LOG_CONSOLE", "INFO"),
                    help="Console log level (default from env LOG_CONSOLE or INFO).")
    ap.add_argument("--log-file", choices=lvl_choices, default=os.getenv("LOG_FILE", "DEBUG"),
                    help="File log level (default from env LOG_FILE or DEBUG).")
    ap.add_argument("--log-file-path", default=os.getenv("LOG_FILE_PATH", "carscout.log"),
                    help="Path to log file (default from env LOG_FILE_PATH or carscout.log).")
    ap.add_argument("--no-file-log", action="store_true",
                    help="Disable file logging (only console output).")

    return ap.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    eff_console = args.log_level or args.log_console
    eff_file = args.log_level or args.log_file
    global logger
    logger = init_logger(
        console_level=eff_console,
        file_level=eff_file,
        log_file=None if args.no_file_log else args.log_file_path
    )
    logger.info(
        f"Logger initialized: console={eff_console}, "
        f"file={'DISABLED' if args.no_file_log else eff_file}, "
        f"path={'N/A' if args.no_file_log else args.log_file_path}"
    )
    logger.info(f">>> Run started at {now_iso()}")

    run_settings = replace(
        settings,
        enabled_platforms=tuple(p.strip() for p in args.platforms.split(",") if p.strip()),
        headless=not args.headful,
    )
    try:
        run_settings.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        raise SystemExit(2)

    filters = SearchFilters(
        model=args.model,
        brand=args.brand,
        year=args.year,
        color=args.color,
        location=args.location,
        min_price=args.min_price,
        max_price=args.max_price,
    )

    service = SearchService(run_settings)
    try:
        response = asyncio.run(service.search(filters))
    except InvalidFiltersError as e:
        logger.error(f"Invalid search filters: {e}")
        raise SystemExit(2)

    analysis = response.analysis
    logger.info(f">>> Found {analysis.total_found} listings, {analysis.after_filtering} after filtering")

    for i, r in enumerate(response.results[: args.top], start=1):
        tag = " [sample]" if r.synthetic else ""
        print(f"{i:>2}. [{r.platform}] {r.title} | {r.price_text} | score={r.rank_score}{tag}")
        print(f"    {r.link}")

    insights = summarize(response.results, response.recommendations, analysis.price_prediction)
    if insights is None:
        print(">>> No listings matched")
    else:
        if insights.price_range:
            pr = insights.price_range
            print(f">>> Price range: {pr.min:,.0f} - {pr.max:,.0f} (avg {pr.average:,.0f})")
        print(f">>> Platforms: {insights.platform_distribution}")
        for line in insights.recommendations:
            print(f">>> Recommended: {line}")

    if args.out:
        save_output_rows(response.results, args.out, logger=logger)

    logger.info(">>> Done.")


if __name__ == "__main__":
    main()
