"""Page scanning: linter run plus heuristic detector, in a headless Chromium via Playwright."""

from __future__ import annotations

import logging
import os
from typing import Optional

from playwright.sync_api import Browser, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from a11y_models import SCANNER_RUNNER, STATUS_ERROR, STATUS_OK, PageResult, runner_error_issue
from accessibility_heuristic import audit_a11y
from keyboard_audit import install_listener_probe, merge_issues, run_keyboard_audit
from net_guardrails import FetchError, fetch_text
from pa11y_runner import run_pa11y

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--font-render-hinting=none",
]
VIEWPORT = {"width": 1280, "height": 720}
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) HeadlessChrome a11y-scanner/1.0"


class PageScanner:
    """
    One scanner per thread. The browser is launched on enter (rendered
    detector only) and reused for every page; each page gets a fresh context.
    """

    def __init__(self, cfg: dict, cwd: str | None = None, linter=run_pa11y):
        self.cfg = cfg
        self.cwd = cwd or os.getcwd()
        self._linter = linter
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def rendered(self) -> bool:
        return self.cfg.get("detector", "rendered") == "rendered"

    def __enter__(self) -> "PageScanner":
        if self.rendered:
            self._playwright = sync_playwright().start()
            try:
                self._browser = self._playwright.chromium.launch(headless=True, args=CHROMIUM_ARGS)
            except PlaywrightError:
                self._playwright.stop()
                self._playwright = None
                raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._browser:
            self._browser.close()
            self._browser = None
        if self._playwright:
            self._playwright.stop()
            self._playwright = None

    def scan(self, url: str) -> PageResult:
        issues = []
        used_url = url

        if self.cfg.get("useLinter", True):
            linted = self._linter(url, self.cfg, cwd=self.cwd)
            if not linted.ok:
                return PageResult(url=url, status=STATUS_ERROR, issues=linted.issues)
            issues = linted.issues
            used_url = linted.used_url or url

        if self.rendered:
            detected = self._detect_rendered(used_url)
        else:
            detected = self._detect_static(used_url)

        if isinstance(detected, PageResult):
            detected.url = url
            detected.issues = merge_issues(issues, detected.issues)
            return detected

        return PageResult(url=url, status=STATUS_OK, issues=merge_issues(issues, detected))

    def _detect_rendered(self, url: str):
        if not self._browser:
            raise RuntimeError("PageScanner must be used as a context manager")

        timeout_ms = int(self.cfg.get("timeout", 120000))
        context = self._browser.new_context(
            viewport=VIEWPORT,
            user_agent=USER_AGENT,
            ignore_https_errors=True,
            locale="en-US",
            timezone_id="UTC",
        )
        try:
            page = context.new_page()
            install_listener_probe(page)
            try:
                page.goto(url, wait_until="networkidle", timeout=timeout_ms)
            except PlaywrightTimeout:
                logger.warning(f"Timeout loading {url} after {timeout_ms}ms")
                return self._navigation_error(url, f"Navigation timed out after {timeout_ms}ms")
            except PlaywrightError as e:
                logger.warning(f"Navigation failed for {url}: {e}")
                return self._navigation_error(url, str(e))

            wait_ms = int(self.cfg.get("wait", 0))
            if wait_ms > 0:
                page.wait_for_timeout(wait_ms)

            return run_keyboard_audit(
                page,
                strict_keyboard=self.cfg.get("strictKeyboard", True),
                early_focus_window=self.cfg.get("earlyFocusWindow", 8),
            )
        finally:
            context.close()

    def _detect_static(self, url: str):
        try:
            html, _ = fetch_text(url, allow_private=self.cfg.get("allowPrivateHosts", True))
        except FetchError as e:
            logger.warning(f"Fetch failed for {url}: {e}")
            return self._navigation_error(url, str(e))
        return audit_a11y(
            html,
            strict_keyboard=self.cfg.get("strictKeyboard", True),
            early_focus_window=self.cfg.get("earlyFocusWindow", 8),
        )

    @staticmethod
    def _navigation_error(url: str, message: str) -> PageResult:
        sentinel = runner_error_issue(message, context=f"Scan failed for {url}", runner=SCANNER_RUNNER)
        return PageResult(url=url, status=STATUS_ERROR, issues=[sentinel])
