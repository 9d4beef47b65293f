"""
cli.py - Command line entry point.

Usage:
    a11y-scanner init [--output-dir DIR]
    a11y-scanner scan page https://example.com/
    a11y-scanner scan list urls.txt --workers 4
    a11y-scanner scan xml /sitemap.xml --base-url https://example.com
    a11y-scanner audit list urls.txt --level AA
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import config
from batch import run_audit, scan_batch
from compliance import NOT_RUN_POLICIES, issue_type_counts
from ui import console
from url_sources import SitemapError, read_url_list, urls_from_sitemap, write_url_list
from wcag_criteria import LEVELS, SCAN_STANDARDS

logger = logging.getLogger("a11y_scanner")

MODES = ("page", "list", "xml")
URL_LIST_DIR = ".a11y-scanner"


def _add_scan_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("mode", choices=MODES, help="page: one URL, list: URL-list file, xml: sitemap")
    p.add_argument("target", help="URL, URL-list path or sitemap path/URL")
    p.add_argument("--output-dir", default=None, help="Report directory (default from config)")
    p.add_argument("--base-url", default="", help="Base URL for a site-relative sitemap path (xml mode)")
    p.add_argument("--workers", type=int, default=None, help="Pages scanned in parallel, one browser each")
    p.add_argument("--detector", choices=config.DETECTORS, default=None,
                   help="rendered: in-browser detector, static: fetched HTML only")
    p.add_argument("--no-linter", dest="use_linter", action="store_const", const=False, default=None,
                   help="Skip the pa11y run")
    p.add_argument("--standard", choices=SCAN_STANDARDS, default=None, help="pa11y standard (scan depth)")
    p.add_argument("--include-notices", action="store_const", const=True, default=None,
                   help="Also report pa11y notices")
    p.add_argument("--timeout", type=int, default=None, help="Page load timeout in ms")


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="a11y-scanner", description="WCAG accessibility scanner and compliance auditor")
    sub = p.add_subparsers(dest="command", required=True)

    init_p = sub.add_parser("init", help=f"Write {config.CONFIG_NAME} in the current directory")
    init_p.add_argument("--output-dir", default=None, help="Report directory to store in the config")

    scan_p = sub.add_parser("scan", help="Scan pages and write issue reports")
    _add_scan_options(scan_p)

    audit_p = sub.add_parser("audit", help="Scan pages and score them against the WCAG criteria")
    _add_scan_options(audit_p)
    audit_p.add_argument("--level", type=str.upper, choices=LEVELS, default="AA", help="Target conformance level")
    audit_p.add_argument("--not-run-policy", choices=NOT_RUN_POLICIES, default=None,
                         help="When unresolved criteria count as NOT RUN")

    return p.parse_args(argv)


def _cli_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "workers": args.workers,
        "detector": args.detector,
        "useLinter": args.use_linter,
        "standard": args.standard,
        "includeNotices": args.include_notices,
        "timeout": args.timeout,
    }
    if args.command == "audit":
        overrides["auditOutputDir"] = args.output_dir
        overrides["notRunPolicy"] = args.not_run_policy
    else:
        overrides["outputDir"] = args.output_dir
    return overrides


def resolve_targets(args: argparse.Namespace, cwd: str) -> tuple[list[str], str]:
    """URLs to scan and the label recorded as their source."""
    if args.mode == "page":
        return [args.target], args.target

    if args.mode == "list":
        urls = read_url_list(os.path.abspath(args.target))
        if not urls:
            raise ValueError(f"No URLs found in {args.target}")
        return urls, args.target

    with console.Status(f"Reading sitemap {args.target}"):
        urls = urls_from_sitemap(args.target, args.base_url)
    if not urls:
        raise ValueError(f"No URLs discovered from sitemap: {args.target}")
    url_list_file = write_url_list(urls, os.path.join(cwd, URL_LIST_DIR))
    console.info(f"Saved URL list: {url_list_file} ({len(urls)} URL(s))")
    return urls, os.path.relpath(url_list_file, cwd)


def cmd_init(args: argparse.Namespace, cwd: str) -> int:
    path = config.write_init_config(cwd, {"outputDir": args.output_dir})
    console.success(f"Created {path}")
    console.info("Next run: a11y-scanner scan page https://example.local")
    return 0


def cmd_scan(args: argparse.Namespace, cwd: str) -> int:
    cfg = config.load_config(cwd, _cli_overrides(args))
    urls, source = resolve_targets(args, cwd)
    console.title(f"scan {args.mode} · {len(urls)} page(s)")

    result = scan_batch(urls, cfg, source, cwd=cwd)
    counts = issue_type_counts(issue for page in result.pages for issue in page.issues)
    errors = sum(1 for page in result.pages if not page.ok)
    console.print_panel("Scan complete", [
        f"Pages: {len(result.pages)} (scan errors: {errors})",
        f"Issues: {sum(counts.values())}",
        f"error={counts['error']} warning={counts['warning']} notice={counts['notice']} unknown={counts['unknown']}",
    ])
    console.success(f"Saved batch reports to: {result.report_root}")
    console.success(f"Saved summary: {result.summary_file}")
    return 0


def cmd_audit(args: argparse.Namespace, cwd: str) -> int:
    cfg = config.load_config(cwd, _cli_overrides(args))
    urls, source = resolve_targets(args, cwd)
    console.title(f"audit {args.mode} · level {args.level} · {len(urls)} page(s)")

    result = run_audit(urls, cfg, source, target_level=args.level, cwd=cwd)
    summary = result.summary
    console.verdict(f"Audit complete ({summary.target.get('standard')}):", summary.status)
    console.print_panel("Levels", [
        f"{card.level}: {card.status} · {card.failed_criteria_count} failed, "
        f"{card.passed_criteria_count}/{card.total_criteria} passed"
        for card in summary.levels
    ] + [
        f"Pages scanned: {summary.pages.get('scanned', 0)} · scan errors: {summary.pages.get('scanErrors', 0)}",
        f"Unmapped rules: {summary.unknown.get('codeCount', 0)}",
    ])
    console.success(f"Saved audit JSON: {result.audit_json_file}")
    console.success(f"Saved audit PDF: {result.audit_pdf_file}")
    return 0


COMMANDS = {
    "init": cmd_init,
    "scan": cmd_scan,
    "audit": cmd_audit,
}


def main(argv=None) -> int:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )
    args = parse_args(argv)
    cwd = os.getcwd()

    try:
        return COMMANDS[args.command](args, cwd)
    except (ValueError, SitemapError, OSError) as e:
        logger.error(str(e))
        console.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Unhandled error: {e}")
        console.error(f"Unhandled error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
