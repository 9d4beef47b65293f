# batch.py
from __future__ import annotations

import datetime as dt
import json
import logging
import os
import queue
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Optional

from a11y_models import STATUS_ERROR, AuditSummary, PageResult, runner_error_issue, SCANNER_RUNNER
from compliance import build_audit, summarize_rules
from page_scanner import PageScanner
from report_pdf import export_audit_pdf, export_batch_pdf, export_page_pdf
from wcag_criteria import DEFAULT_SCAN_STANDARD

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
SUMMARY_NAME = "summary.pdf"
AUDIT_JSON_NAME = "audit.json"
AUDIT_PDF_NAME = "audit.pdf"

MAX_SLUG_LEN = 120


@dataclass
class BatchResult:
    report_root: str
    manifest_file: str
    summary_file: str
    manifest: dict
    pages: list[PageResult] = field(default_factory=list)


@dataclass
class AuditResult:
    report_root: str
    audit_json_file: str
    audit_pdf_file: str
    summary: AuditSummary
    batch: BatchResult


def now_iso(now: Optional[dt.datetime] = None) -> str:
    now = now or dt.datetime.now(dt.timezone.utc)
    return now.astimezone(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def timestamp_folder(now: Optional[dt.datetime] = None) -> str:
    now = now or dt.datetime.now()
    return now.strftime("%Y-%m-%d-%H%M%S")


def slugify(url: str) -> str:
    s = re.sub(r"^https?://", "", (url or "").strip(), flags=re.I)
    s = re.sub(r"[^a-zA-Z0-9]+", "-", s)
    s = s.strip("-").lower()[:MAX_SLUG_LEN]
    return s or "page"


def unique_slug(url: str, used: set[str]) -> str:
    base = slugify(url)
    slug = base
    n = 2
    while slug in used:
        slug = f"{base}-{n}"
        n += 1
    used.add(slug)
    return slug


def _failed_page(url: str, exc: Exception) -> PageResult:
    sentinel = runner_error_issue(
        f"{type(exc).__name__}: {exc}",
        context=f"Scan failed for {url}",
        runner=SCANNER_RUNNER,
    )
    return PageResult(url=url, status=STATUS_ERROR, issues=[sentinel])


def _scan_one(scanner, url: str) -> PageResult:
    try:
        return scanner.scan(url)
    except Exception as e:
        logger.warning(f"Scan crashed for {url}: {e}")
        return _failed_page(url, e)


def scan_pages(
    urls: list[str],
    cfg: dict,
    scanner_factory: Callable = PageScanner,
    workers: int = 1,
    on_result: Optional[Callable[[int, PageResult], None]] = None,
) -> list[PageResult]:
    """
    Scans ``urls`` with up to ``workers`` scanners and returns results in list order.
    One worker runs in the calling thread. A failure on one page never stops the batch.
    """
    results: list[Optional[PageResult]] = [None] * len(urls)
    workers = max(1, min(int(workers or 1), len(urls) or 1))

    def _fill_missing(exc: Exception) -> None:
        for index, page in enumerate(results):
            if page is None:
                results[index] = _failed_page(urls[index], exc)
                if on_result:
                    on_result(index, results[index])

    if workers == 1:
        try:
            with scanner_factory(cfg) as scanner:
                for index, url in enumerate(urls):
                    results[index] = _scan_one(scanner, url)
                    if on_result:
                        on_result(index, results[index])
        except Exception as e:
            logger.warning(f"Scanner could not start: {e}")
            _fill_missing(e)
        return results  # type: ignore[return-value]

    jobs: queue.Queue = queue.Queue()
    for item in enumerate(urls):
        jobs.put(item)

    def _worker() -> int:
        done = 0
        with scanner_factory(cfg) as scanner:
            while True:
                try:
                    index, url = jobs.get_nowait()
                except queue.Empty:
                    return done
                results[index] = _scan_one(scanner, url)
                done += 1
                if on_result:
                    on_result(index, results[index])

    start_errors: list[Exception] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="a11y-scan") as executor:
        futures = [executor.submit(_worker) for _ in range(workers)]
        for future in futures:
            try:
                future.result()
            except Exception as e:
                logger.warning(f"Scan worker stopped: {e}")
                start_errors.append(e)

    _fill_missing(start_errors[0] if start_errors else RuntimeError("not scanned"))
    return results  # type: ignore[return-value]


def write_page_artifacts(report_root: str, slug: str, page: PageResult) -> tuple[str, Optional[str]]:
    """Writes the issue JSON and the page PDF. The PDF path is None when rendering failed."""
    json_file = os.path.join(report_root, f"{slug}.json")
    pdf_file = os.path.join(report_root, f"{slug}.pdf")
    with open(json_file, "w", encoding="utf-8") as f:
        json.dump([issue.to_dict() for issue in page.issues], f, ensure_ascii=False)
        f.write("\n")
    try:
        export_page_pdf(page, pdf_file)
    except Exception as e:
        logger.error(f"PDF export failed for {page.url}: {e}")
        return json_file, None
    return json_file, pdf_file


def scan_batch(
    urls: list[str],
    cfg: dict,
    source_label: str = "urls.txt",
    cwd: Optional[str] = None,
    scanner_factory: Optional[Callable] = None,
    now: Optional[dt.datetime] = None,
) -> BatchResult:
    if not urls:
        raise ValueError("No URLs to scan")

    cwd = os.path.abspath(cwd or os.getcwd())
    report_root = os.path.join(cwd, cfg.get("outputDir") or "a11y/reports", timestamp_folder(now))
    os.makedirs(report_root, exist_ok=True)
    factory = scanner_factory or partial(PageScanner, cwd=cwd)

    total = len(urls)
    done = {"n": 0}
    lock = threading.Lock()

    def _progress(index: int, page: PageResult) -> None:
        with lock:
            done["n"] += 1
            logger.info(f"[{done['n']}/{total}] {page.url} -> {len(page.issues)} issue(s)")

    pages = scan_pages(urls, cfg, scanner_factory=factory, workers=cfg.get("workers", 1), on_result=_progress)

    used: set[str] = set()
    results = []
    for url, page in zip(urls, pages):
        slug = unique_slug(url, used)
        json_file, pdf_file = write_page_artifacts(report_root, slug, page)
        results.append({
            "url": url,
            "slug": slug,
            "status": page.status,
            "issueCount": len(page.issues),
            "jsonFile": os.path.relpath(json_file, report_root),
            "reportFile": os.path.relpath(pdf_file, report_root) if pdf_file else None,
        })

    rules = summarize_rules(pages)
    manifest = {
        "generatedAt": now_iso(),
        "target": cfg.get("standard") or DEFAULT_SCAN_STANDARD,
        "sourceUrlList": source_label,
        "pageCount": total,
        "results": results,
        "rules": rules,
    }
    manifest_file = os.path.join(report_root, MANIFEST_NAME)
    with open(manifest_file, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)
        f.write("\n")

    summary_file = export_batch_pdf(manifest, rules, os.path.join(report_root, SUMMARY_NAME))
    logger.info(f"Batch report written to {report_root}")
    return BatchResult(
        report_root=report_root,
        manifest_file=manifest_file,
        summary_file=summary_file,
        manifest=manifest,
        pages=pages,
    )


def load_pages(report_root: str) -> list[PageResult]:
    """Rebuilds page results of a finished run from its manifest and issue files."""
    with open(os.path.join(report_root, MANIFEST_NAME), "r", encoding="utf-8") as f:
        manifest = json.load(f)

    pages = []
    for entry in manifest.get("results", []):
        issues = []
        try:
            with open(os.path.join(report_root, entry["jsonFile"]), "r", encoding="utf-8") as f:
                raw = json.load(f)
            if isinstance(raw, list):
                issues = raw
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Could not read issues for {entry.get('url')}: {e}")
        pages.append(PageResult.from_dict({
            "url": entry.get("url", ""),
            "status": entry.get("status"),
            "issues": issues,
        }))
    return pages


def write_audit(report_root: str, summary: AuditSummary) -> tuple[str, str]:
    json_file = os.path.join(report_root, AUDIT_JSON_NAME)
    with open(json_file, "w", encoding="utf-8") as f:
        json.dump(summary.to_dict(), f, indent=2, ensure_ascii=False)
        f.write("\n")
    pdf_file = export_audit_pdf(summary, os.path.join(report_root, AUDIT_PDF_NAME))
    return json_file, pdf_file


def run_audit(
    urls: list[str],
    cfg: dict,
    source_label: str = "urls.txt",
    target_level: str = "AA",
    cwd: Optional[str] = None,
    scanner_factory: Optional[Callable] = None,
    now: Optional[dt.datetime] = None,
) -> AuditResult:
    scan_standard = cfg.get("standard") or DEFAULT_SCAN_STANDARD
    run_cfg = dict(cfg)
    run_cfg["standard"] = scan_standard
    run_cfg["outputDir"] = cfg.get("auditOutputDir") or "a11y/audits"

    batch = scan_batch(urls, run_cfg, source_label, cwd=cwd, scanner_factory=scanner_factory, now=now)
    summary = build_audit(
        batch.pages,
        generated_at=now_iso(),
        source=source_label,
        target_level=target_level,
        scan_standard=scan_standard,
        not_run_policy=cfg.get("notRunPolicy"),
    )
    audit_json_file, audit_pdf_file = write_audit(batch.report_root, summary)
    logger.info(f"Audit {summary.target.get('standard')}: {summary.status}")
    return AuditResult(
        report_root=batch.report_root,
        audit_json_file=audit_json_file,
        audit_pdf_file=audit_pdf_file,
        summary=summary,
        batch=batch,
    )
