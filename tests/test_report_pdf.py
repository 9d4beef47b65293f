from __future__ import annotations

from pathlib import Path

from pypdf import PdfReader

from a11y_models import Issue, PageResult, runner_error_issue
from compliance import build_audit
from report_pdf import MAX_CELL_CHARS, clip_text, criterion_sort_key, export_audit_pdf, export_batch_pdf, export_page_pdf

BYPASS_CODE = "WCAG2AA.Principle2.Guideline2_4.2_4_1.H64.1"


def _text(path: str) -> str:
    reader = PdfReader(path)
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def test_criterion_sort_key_is_numeric() -> None:
    assert sorted(["1.4.10", "1.4.9", "1.1.1"], key=criterion_sort_key) == ["1.1.1", "1.4.9", "1.4.10"]


def test_page_report(tmp_path: Path) -> None:
    page = PageResult(url="https://a.test/about", issues=[
        Issue(code=BYPASS_CODE, type="error", type_code=1, message="Skip link missing", selector="body"),
    ])
    out = export_page_pdf(page, str(tmp_path / "about"))
    assert out.endswith("about.pdf")
    text = _text(out)
    assert "Accessibility Scan" in text
    assert "https://a.test/about" in text


def test_audit_report(tmp_path: Path) -> None:
    pages = [PageResult(url="https://a.test/", issues=[
        Issue(code=BYPASS_CODE, type="error", type_code=1, message="Skip link missing", selector="body"),
        Issue(code="color-contrast", type="warning", type_code=2, message="Low contrast", selector="p"),
    ])]
    summary = build_audit(pages, generated_at="2026-01-01T00:00:00.000Z", source="urls.txt")
    out = export_audit_pdf(summary, str(tmp_path / "audit.pdf"))
    reader = PdfReader(out)
    assert len(reader.pages) >= 2
    text = _text(out)
    assert "WCAG Compliance Audit" in text
    assert "FAIL" in text
    assert "2.4.1" in text
    assert "color-contrast" in text


def test_batch_report(tmp_path: Path) -> None:
    manifest = {
        "generatedAt": "2026-01-01T00:00:00.000Z",
        "target": "WCAG2AAA",
        "sourceUrlList": "urls.txt",
        "pageCount": 2,
        "results": [
            {"url": "https://a.test/", "status": "ok", "issueCount": 0, "reportFile": "a-test.pdf"},
            {"url": "https://b.test/", "status": "error", "issueCount": 1, "reportFile": "b-test.pdf"},
        ],
    }
    out = export_batch_pdf(manifest, [], str(tmp_path / "summary.pdf"))
    text = _text(out)
    assert "Batch Accessibility Scan" in text
    assert "https://b.test/" in text


def test_clip_text() -> None:
    assert clip_text("short") == "short"
    assert clip_text(None) == ""
    clipped = clip_text("x" * 2000)
    assert len(clipped) <= MAX_CELL_CHARS + 2
    assert clipped.endswith("…")


def test_page_report_with_multi_kb_error_message(tmp_path: Path) -> None:
    trace = " ".join(f"at frame_{i} (/srv/app/node_modules/pa11y/lib/runner.js:{i}:17)" for i in range(150))
    page = PageResult(url="https://a.test/down", status="error", issues=[
        runner_error_issue(f"Error: Navigation failed {trace}", context="Scan failed for https://a.test/down"),
    ])
    out = export_page_pdf(page, str(tmp_path / "down.pdf"))
    text = _text(out)
    assert "Navigation" in text
    assert "frame_149" not in text
