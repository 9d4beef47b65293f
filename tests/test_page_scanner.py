from __future__ import annotations

from pathlib import Path

import pytest
from playwright.sync_api import Error as PlaywrightError

import page_scanner
from a11y_models import DETECTOR_RUNNER, RUNNER_ERROR_CODE, SCANNER_RUNNER, STATIC_RUNNER, Issue, runner_error_issue
from net_guardrails import FetchError
from page_scanner import PageScanner
from pa11y_runner import LinterResult

STATIC_CFG = {"detector": "static", "useLinter": True, "strictKeyboard": True, "earlyFocusWindow": 8}
LINTER_ISSUE = Issue(
    code="WCAG2AA.Principle1.Guideline1_1.1_1_1.H37",
    type="error",
    type_code=1,
    message="Img element missing an alt attribute.",
    selector="html > body > img",
)


class FakeLinter:
    def __init__(self, result: LinterResult):
        self.result = result
        self.urls = []

    def __call__(self, url, cfg, cwd=None):
        self.urls.append(url)
        return self.result


def test_static_scan_merges_linter_and_detector(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(page_scanner, "fetch_text", lambda url, allow_private=True: ("<html><body><img src='a.png'></body></html>", url))
    linter = FakeLinter(LinterResult(issues=[LINTER_ISSUE], used_url="http://a.test/", ok=True))

    with PageScanner(STATIC_CFG, cwd=str(tmp_path), linter=linter) as scanner:
        page = scanner.scan("https://a.test/")

    assert page.ok
    assert page.url == "https://a.test/"
    assert page.issues[0] == LINTER_ISSUE
    assert {issue.runner for issue in page.issues[1:]} == {STATIC_RUNNER}
    assert any(issue.code.endswith("ImageAltMissing") for issue in page.issues)


def test_linter_failure_marks_page_as_error(monkeypatch, tmp_path: Path) -> None:
    def fail_fetch(url, allow_private=True):
        raise AssertionError("detector must not run after a linter failure")

    monkeypatch.setattr(page_scanner, "fetch_text", fail_fetch)
    sentinel = runner_error_issue("Pa11y did not return JSON output.", context="Scan failed for https://a.test/")
    linter = FakeLinter(LinterResult(issues=[sentinel], used_url="https://a.test/", ok=False))

    with PageScanner(STATIC_CFG, cwd=str(tmp_path), linter=linter) as scanner:
        page = scanner.scan("https://a.test/")

    assert not page.ok
    assert page.issues == [sentinel]


def test_fetch_failure_becomes_sentinel(monkeypatch, tmp_path: Path) -> None:
    def fail_fetch(url, allow_private=True):
        raise FetchError("http_error", url, "HTTP 503")

    monkeypatch.setattr(page_scanner, "fetch_text", fail_fetch)
    cfg = dict(STATIC_CFG, useLinter=False)

    with PageScanner(cfg, cwd=str(tmp_path)) as scanner:
        page = scanner.scan("https://a.test/")

    assert not page.ok
    (issue,) = page.issues
    assert issue.code == RUNNER_ERROR_CODE
    assert issue.runner == SCANNER_RUNNER
    assert "HTTP 503" in issue.message


def test_rendered_detector_sees_registered_listeners(tmp_path: Path) -> None:
    html = tmp_path / "page.html"
    html.write_text(
        "<html><body>"
        "<div id='card' style='width:200px;height:40px'>Open card</div>"
        "<script>document.getElementById('card').addEventListener('click', () => {});</script>"
        "</body></html>",
        encoding="utf-8",
    )
    cfg = {"detector": "rendered", "useLinter": False, "strictKeyboard": False, "timeout": 15000, "wait": 0}
    try:
        scanner = PageScanner(cfg, cwd=str(tmp_path)).__enter__()
    except PlaywrightError as e:
        pytest.skip(f"Chromium is not available: {e}")

    try:
        page = scanner.scan(html.as_uri())
    finally:
        scanner.__exit__(None, None, None)

    assert page.ok
    keyboard = [issue for issue in page.issues if issue.code.endswith("KeyboardOnly")]
    assert [issue.selector for issue in keyboard] == ["div#card"]
    assert keyboard[0].runner == DETECTOR_RUNNER
    assert any(issue.code.endswith("SkipLinkMissing") for issue in page.issues)
