"""
Command-line entry point.

Extracts every URL given on the command line concurrently using
asyncio.gather, running each through: classify -> normalize -> resolve
redirects -> fetch -> extract. With --serve, starts the HTTP API instead.
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

import orjson

from config import get_settings
from errors import ScraperError
from extractor import PRODUCT_FIELDS
from pipeline import PipelineResult, assemble_response, extract_url

logger = logging.getLogger(__name__)


async def process_url(url: str) -> tuple[PipelineResult, float]:
    """Run one URL through the pipeline. Returns (result, elapsed_seconds)."""
    logger.info(f"Processing {url}...")
    t0 = time.monotonic()
    result = await extract_url(url)
    elapsed = time.monotonic() - t0

    record = result.record
    logger.info(
        f"  Result: {record.title[:60]} | {record.formatted_price} | "
        f"id={record.id} | seller={record.seller} | {elapsed:.2f}s"
    )
    return result, elapsed


async def process_all(urls: list[str]) -> tuple[list[PipelineResult], list[float], dict[str, Exception]]:
    """Process all URLs concurrently.

    Returns (results, timings, failures keyed by URL).
    """
    outcomes = await asyncio.gather(*[process_url(u) for u in urls], return_exceptions=True)

    results: list[PipelineResult] = []
    timings: list[float] = []
    failures: dict[str, Exception] = {}

    for url, outcome in zip(urls, outcomes):
        if isinstance(outcome, ScraperError):
            logger.error(f"Failed to extract {url}: {outcome.message}")
            failures[url] = outcome
        elif isinstance(outcome, Exception):
            logger.error(f"Failed to extract {url}: {outcome}", exc_info=outcome)
            failures[url] = outcome
        else:
            result, elapsed = outcome
            results.append(result)
            timings.append(elapsed)

    return results, timings, failures


def print_report(
    results: list[PipelineResult],
    timings: list[float],
    failures: dict[str, Exception],
    wall_clock: float,
) -> None:
    """Print an extraction report with per-field provenance."""
    total = len(results) + len(failures)
    n = len(results)

    print(f"\n{'='*70}")
    print("EXTRACTION REPORT")
    print(f"{'='*70}")

    # ── Reliability ──────────────────────────────────────────────────
    print(f"\n── Reliability ──")
    print(f"  URLs attempted:   {total}")
    print(f"  Succeeded:        {n}")
    print(f"  Failed:           {len(failures)}")
    print(f"  Success rate:     {n/total*100:.0f}%" if total else "  N/A")
    for url, err in failures.items():
        message = err.message if isinstance(err, ScraperError) else str(err)
        print(f"    {url[:50]:<52} {message}")

    if not results:
        print("\n  No successful extractions to report on.")
        return

    # ── Field sources ────────────────────────────────────────────────
    print(f"\n── Field sources ──")
    for result in results:
        record = result.record
        print(f"\n  {record.title[:60]}")
        print(f"    {'Field':<12} {'Source':<40}")
        print(f"    {'-'*52}")
        for field in PRODUCT_FIELDS:
            print(f"    {field:<12} {record.field_sources.get(field, '-'):<40}")

    filled = {f: sum(1 for r in results if r.record.field_sources.get(f) != "not_found") for f in PRODUCT_FIELDS}
    print(f"\n  Coverage across {n} product(s):")
    for field in PRODUCT_FIELDS:
        print(f"    {field:<12} {filled[field]:>3}/{n}")

    # ── Redirects ────────────────────────────────────────────────────
    print(f"\n── Redirects ──")
    for result in results:
        trace = result.trace
        if trace is None:
            print(f"  {result.normalized.original_url[:50]:<52} not resolved")
            continue
        flag = " (truncated)" if trace.truncated else ""
        print(f"  {result.normalized.original_url[:50]:<52} {trace.hop_count} hop(s), {trace.stop_reason.value}{flag}")

    # ── Timing ───────────────────────────────────────────────────────
    print(f"\n── Timing ──")
    print(f"  Wall clock (total):  {wall_clock:.2f}s")
    print(f"  Sum of requests:     {sum(timings):.2f}s")
    print(f"  Avg per URL (seq):   {sum(timings)/n:.2f}s")

    print(f"\n{'='*70}")


async def run(urls: list[str], output: Path | None, report: bool) -> int:
    t_wall_start = time.monotonic()
    results, timings, failures = await process_all(urls)
    wall_clock = time.monotonic() - t_wall_start

    payload = [assemble_response(r).model_dump(by_alias=True) for r in results]
    data = orjson.dumps(payload, option=orjson.OPT_INDENT_2)
    if output:
        output.write_bytes(data)
        logger.info(f"Wrote {len(payload)} products to {output}")
    else:
        sys.stdout.write(data.decode() + "\n")

    if report:
        print_report(results, timings, failures, wall_clock)
    return 1 if failures else 0


def serve() -> None:
    import uvicorn

    settings = get_settings()
    logger.info(f"Starting server on {settings.host}:{settings.port}")
    uvicorn.run("server:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract MercadoLivre / Amazon product data from URLs")
    parser.add_argument("urls", nargs="*", help="product URLs (short links are followed)")
    parser.add_argument("--serve", action="store_true", help="start the HTTP API instead")
    parser.add_argument("-o", "--output", type=Path, help="write the JSON payloads to this file")
    parser.add_argument("--no-report", action="store_true", help="skip the provenance report")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.serve:
        serve()
        return 0
    if not args.urls:
        parser.error("at least one URL is required (or use --serve)")
    return asyncio.run(run(args.urls, args.output, not args.no_report))


if __name__ == "__main__":
    sys.exit(main())
