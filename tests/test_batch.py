from __future__ import annotations

import datetime as dt
import json
import time
from pathlib import Path

import pytest

import batch
from a11y_models import FAIL, NOT_RUN, RUNNER_ERROR_CODE, STATUS_ERROR, Issue, PageResult, runner_error_issue
from batch import load_pages, now_iso, run_audit, scan_batch, scan_pages, slugify, unique_slug
from compliance import build_audit

BYPASS_CODE = "WCAG2AA.Principle2.Guideline2_4.2_4_1.H64.1"
NOW = dt.datetime(2026, 1, 2, 3, 4, 5)


class FakeScanner:
    """Scans without a browser. URL keywords pick the outcome."""

    opened = 0

    def __init__(self, cfg: dict):
        self.cfg = cfg

    def __enter__(self) -> "FakeScanner":
        FakeScanner.opened += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return None

    def scan(self, url: str) -> PageResult:
        if "slow" in url:
            time.sleep(0.05)
        if "crash" in url:
            raise RuntimeError("renderer crashed")
        if "broken" in url:
            return PageResult(url=url, status=STATUS_ERROR, issues=[
                runner_error_issue("net::ERR_NAME_NOT_RESOLVED", context=f"Scan failed for {url}"),
            ])
        issues = []
        if "bad" in url:
            issues.append(Issue(code=BYPASS_CODE, type="error", type_code=1, message="Skip link missing", selector="body"))
        return PageResult(url=url, issues=issues)


class BrokenScanner(FakeScanner):
    def __enter__(self):
        raise RuntimeError("Executable doesn't exist")


def test_slugs() -> None:
    assert slugify("https://Example.com/About Us/?x=1") == "example-com-about-us-x-1"
    assert slugify("https://") == "page"
    assert len(slugify("https://a.test/" + "x" * 300)) == 120
    used: set[str] = set()
    assert unique_slug("https://a.test/", used) == "a-test"
    assert unique_slug("http://a.test", used) == "a-test-2"


def test_now_iso_format() -> None:
    stamp = now_iso(dt.datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=dt.timezone.utc))
    assert stamp == "2026-01-02T03:04:05.678Z"


def test_results_keep_input_order_with_parallel_workers() -> None:
    urls = [f"https://a.test/{'slow-' if i % 2 == 0 else ''}{i}" for i in range(9)]
    seen = []
    pages = scan_pages(urls, {}, scanner_factory=FakeScanner, workers=3, on_result=lambda i, p: seen.append(i))
    assert [page.url for page in pages] == urls
    assert sorted(seen) == list(range(9))


def test_one_page_failure_does_not_stop_the_batch() -> None:
    urls = ["https://a.test/1", "https://a.test/crash", "https://a.test/3"]
    pages = scan_pages(urls, {}, scanner_factory=FakeScanner, workers=2)
    assert [page.ok for page in pages] == [True, False, True]
    assert pages[1].issues[0].code == RUNNER_ERROR_CODE
    assert "renderer crashed" in pages[1].issues[0].message


def test_workers_capped_by_page_count() -> None:
    FakeScanner.opened = 0
    scan_pages(["https://a.test/1", "https://a.test/2"], {}, scanner_factory=FakeScanner, workers=8)
    assert FakeScanner.opened == 2


@pytest.mark.parametrize("workers", [1, 2])
def test_scanner_start_failure_marks_every_page_as_error(workers: int) -> None:
    urls = ["https://a.test/1", "https://a.test/2"]
    seen = []
    pages = scan_pages(urls, {}, scanner_factory=BrokenScanner, workers=workers, on_result=lambda i, p: seen.append(i))
    assert [page.url for page in pages] == urls
    assert [page.status for page in pages] == [STATUS_ERROR, STATUS_ERROR]
    assert all(page.issues[0].code == RUNNER_ERROR_CODE for page in pages)
    assert "Executable doesn't exist" in pages[0].issues[0].message
    assert sorted(seen) == [0, 1]


def test_audit_without_browser_is_not_run(tmp_path: Path) -> None:
    urls = ["https://a.test/", "https://a.test/about"]
    result = run_audit(urls, {"auditOutputDir": "audits", "workers": 1}, cwd=str(tmp_path),
                       scanner_factory=BrokenScanner, now=NOW)

    assert result.summary.status == NOT_RUN
    assert result.summary.pages["scanErrors"] == 2
    assert Path(result.audit_json_file).exists()
    assert Path(result.audit_pdf_file).read_bytes().startswith(b"%PDF")


def test_huge_error_message_does_not_stop_the_audit(tmp_path: Path) -> None:
    trace = "\n".join(f"    at frame_{i} (/srv/app/node_modules/pa11y/lib/runner.js:{i}:17)" for i in range(120))

    class TracebackScanner(FakeScanner):
        def scan(self, url: str) -> PageResult:
            if "trace" in url:
                return PageResult(url=url, status=STATUS_ERROR, issues=[
                    runner_error_issue(f"Error: Navigation failed\n{trace}", context=f"Scan failed for {url}"),
                ])
            return super().scan(url)

    urls = ["https://a.test/", "https://a.test/trace", "https://a.test/bad"]
    result = run_audit(urls, {"auditOutputDir": "audits", "workers": 1}, cwd=str(tmp_path),
                       scanner_factory=TracebackScanner, now=NOW)

    root = Path(result.report_root)
    assert (root / "manifest.json").exists()
    assert Path(result.audit_pdf_file).read_bytes().startswith(b"%PDF")
    assert (root / "a-test-trace.pdf").read_bytes().startswith(b"%PDF")
    issues = json.loads((root / "a-test-trace.json").read_text(encoding="utf-8"))
    assert len(issues[0]["message"]) > 5000
    assert issues[0]["message"].endswith("runner.js:119:17)")
    assert result.summary.pages["scanErrors"] == 1


def test_page_pdf_failure_is_logged_not_raised(tmp_path: Path, monkeypatch, caplog) -> None:
    def fail_export(page, out_path):
        raise ValueError("layout")

    monkeypatch.setattr(batch, "export_page_pdf", fail_export)
    result = scan_batch(["https://a.test/"], {"outputDir": "reports"}, cwd=str(tmp_path),
                        scanner_factory=FakeScanner, now=NOW)

    (entry,) = result.manifest["results"]
    assert entry["reportFile"] is None
    assert (Path(result.report_root) / entry["jsonFile"]).exists()
    assert Path(result.summary_file).exists()
    assert "PDF export failed for https://a.test/" in caplog.text


def test_scan_batch_writes_reports(tmp_path: Path) -> None:
    urls = ["https://a.test/", "https://a.test/bad", "https://a.test/broken"]
    cfg = {"outputDir": "reports", "workers": 2, "standard": "WCAG2AA"}
    result = scan_batch(urls, cfg, "urls.txt", cwd=str(tmp_path), scanner_factory=FakeScanner, now=NOW)

    root = tmp_path / "reports" / "2026-01-02-030405"
    assert Path(result.report_root) == root
    assert (root / "summary.pdf").read_bytes().startswith(b"%PDF")

    manifest = json.loads((root / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["pageCount"] == 3
    assert manifest["target"] == "WCAG2AA"
    assert [item["slug"] for item in manifest["results"]] == ["a-test", "a-test-bad", "a-test-broken"]
    assert [item["status"] for item in manifest["results"]] == ["ok", "ok", "error"]
    assert [rule["code"] for rule in manifest["rules"]] == [BYPASS_CODE]

    issues = json.loads((root / "a-test-bad.json").read_text(encoding="utf-8"))
    assert issues[0]["code"] == BYPASS_CODE
    assert (root / "a-test-bad.pdf").exists()


def test_scan_batch_rejects_empty_list(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        scan_batch([], {}, cwd=str(tmp_path), scanner_factory=FakeScanner)


def test_run_audit_and_rebuild_from_disk(tmp_path: Path) -> None:
    urls = ["https://a.test/", "https://a.test/bad", "https://a.test/broken"]
    cfg = {"auditOutputDir": "audits", "workers": 1, "notRunPolicy": "any_error"}
    result = run_audit(urls, cfg, "urls.txt", target_level="AA", cwd=str(tmp_path), scanner_factory=FakeScanner, now=NOW)

    assert result.summary.status == FAIL
    assert result.summary.row("2.4.1").status == FAIL
    assert result.summary.row("1.1.1").status == NOT_RUN
    assert result.summary.target["scanStandard"] == "WCAG2AAA"
    assert Path(result.report_root).parent == tmp_path / "audits"

    written = json.loads(Path(result.audit_json_file).read_text(encoding="utf-8"))
    assert written["overall"]["status"] == FAIL
    assert Path(result.audit_pdf_file).read_bytes().startswith(b"%PDF")

    pages = load_pages(result.report_root)
    assert [page.url for page in pages] == urls
    rebuilt = build_audit(pages, generated_at=written["generatedAt"], source="urls.txt", target_level="AA")
    assert rebuilt.to_dict() == written
