"""
Diagnostic: run the field chains over saved HTML pages, offline.
Reports which fields are filled vs missing and every strategy attempted.
"""

import argparse
from pathlib import Path

from extractor import PRODUCT_FIELDS
from models import Retailer
from parser import parse_html
from sites import get_adapter

DATA_DIR = Path(__file__).parent / "data"


def diagnose_file(filepath: Path, retailer: Retailer) -> dict:
    html = filepath.read_text(encoding="utf-8")
    parsed = parse_html(html)

    parser_stats = {
        "json_ld_blocks": len(parsed.json_ld),
        "json_ld_errors": sum(1 for b in parsed.json_ld if b.error),
        "og_tags": len(parsed.og_tags),
        "meta_tags": len(parsed.meta_tags),
    }

    fields = get_adapter(retailer).extract_fields(parsed)

    report = {"file": filepath.name, "parser": parser_stats, "fields": {}, "missing": [], "filled": []}
    for name in PRODUCT_FIELDS:
        field = fields[name]
        report["fields"][name] = field
        if field.found:
            report["filled"].append(name)
        else:
            report["missing"].append(name)
    return report


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Run extraction chains over saved product pages")
    parser.add_argument("directory", nargs="?", type=Path, default=DATA_DIR)
    parser.add_argument("--retailer", choices=["mercadolivre", "amazon"], default="mercadolivre")
    args = parser.parse_args(argv)

    retailer = Retailer(args.retailer)
    html_files = sorted(args.directory.glob("*.html"))
    print(f"Diagnosing {len(html_files)} files as {retailer.value} (no network)\n")

    all_reports = []
    for filepath in html_files:
        report = diagnose_file(filepath, retailer)
        all_reports.append(report)

        print(f"{'=' * 70}")
        print(f"  {report['file']}")
        print(f"{'=' * 70}")

        p = report["parser"]
        print(
            f"  Parser: {p['json_ld_blocks']} JSON-LD ({p['json_ld_errors']} broken) | "
            f"{p['og_tags']} OG tags | {p['meta_tags']} meta tags"
        )

        print(f"\n  Filled ({len(report['filled'])}/{len(PRODUCT_FIELDS)}):")
        for name in report["filled"]:
            field = report["fields"][name]
            print(f"    {name}: {str(field.value)[:120]}  [{field.source}]")

        if report["missing"]:
            print(f"\n  MISSING ({len(report['missing'])}): {report['missing']}")
        else:
            print("\n  All fields filled!")

        print("\n  Attempts:")
        for name in PRODUCT_FIELDS:
            tried = ", ".join(f"{s}={outcome}" for s, outcome in report["fields"][name].attempts)
            print(f"    {name:<10} {tried}")
        print()

    # Summary table
    print(f"\n{'=' * 70}")
    print("SUMMARY: Field coverage across all files")
    print(f"{'=' * 70}")
    print(f"{'Field':<20} ", end="")
    for r in all_reports:
        print(f"{r['file'][:12]:<14}", end="")
    print()
    print("-" * 90)

    for name in PRODUCT_FIELDS:
        print(f"{name:<20} ", end="")
        for r in all_reports:
            print(f"{'OK' if name in r['filled'] else 'MISSING':<14}", end="")
        print()


if __name__ == "__main__":
    main()
