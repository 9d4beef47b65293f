"""
pa11y_runner.py - Runs the pa11y linter for one URL and parses its JSON report.

Usage:
    result = run_pa11y("https://example.com/", cfg)
    if not result.ok:
        ...  # result.issues holds a single A11Y.RUNNER.ERROR issue
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from dataclasses import dataclass, field

from a11y_models import LINTER_RUNNER, Issue, runner_error_issue
from wcag_criteria import DEFAULT_SCAN_STANDARD

logger = logging.getLogger(__name__)

PA11Y_PACKAGE = "pa11y@9.0.1"

CERT_ERROR_RE = re.compile(r"ERR_CERT_AUTHORITY_INVALID", re.I)

# Extra seconds granted to the linter process on top of its own page timeout
PROCESS_GRACE_SECONDS = 60


@dataclass
class LinterResult:
    issues: list[Issue] = field(default_factory=list)
    used_url: str = ""
    ok: bool = True


def pa11y_command(cwd: str) -> list[str]:
    """Project-local pa11y when installed, otherwise a pinned npx invocation."""
    local = os.path.join(cwd, "node_modules", ".bin", "pa11y.cmd" if os.name == "nt" else "pa11y")
    if os.path.exists(local):
        return [local]
    return ["npx.cmd" if os.name == "nt" else "npx", "--yes", PA11Y_PACKAGE]


def build_pa11y_args(url: str, cfg: dict) -> list[str]:
    args = [
        url,
        "--reporter", "json",
        "--standard", cfg.get("standard") or DEFAULT_SCAN_STANDARD,
        "--timeout", str(cfg.get("timeout", 120000)),
        "--wait", str(cfg.get("wait", 1000)),
    ]
    if cfg.get("includeAll") or cfg.get("includeWarnings"):
        args.append("--include-warnings")
    if cfg.get("includeAll") or cfg.get("includeNotices"):
        args.append("--include-notices")
    for selector in cfg.get("hideElements") or []:
        args.extend(["--hide-elements", selector])
    return args


def _invoke(url: str, cfg: dict, cwd: str, runner) -> tuple[str, str, int]:
    cmd = pa11y_command(cwd) + build_pa11y_args(url, cfg)
    timeout_s = (int(cfg.get("timeout", 120000)) + int(cfg.get("wait", 1000))) / 1000 + PROCESS_GRACE_SECONDS
    logger.debug(f"Running {' '.join(cmd)}")
    try:
        proc = runner(cmd, cwd=cwd, capture_output=True, text=True, timeout=timeout_s)
    except subprocess.TimeoutExpired:
        return "", f"pa11y timed out after {timeout_s:.0f}s", 1
    except OSError as e:
        return "", f"Could not start pa11y: {e}", 1
    return (proc.stdout or "").strip(), proc.stderr or "", proc.returncode


def parse_pa11y_output(stdout: str) -> list[Issue] | None:
    """Issues from a pa11y JSON report, or None when stdout is not a JSON array."""
    if not stdout.startswith("["):
        return None
    try:
        data = json.loads(stdout)
    except ValueError:
        return None
    if not isinstance(data, list):
        return None
    return [Issue.from_dict(item) for item in data if isinstance(item, dict)]


def run_pa11y(url: str, cfg: dict, runner=subprocess.run, cwd: str | None = None) -> LinterResult:
    cwd = cwd or os.getcwd()
    used_url = url

    stdout, stderr, status = _invoke(used_url, cfg, cwd, runner)
    issues = parse_pa11y_output(stdout)

    if issues is None and status != 0 and CERT_ERROR_RE.search(stderr) and url.lower().startswith("https://"):
        used_url = "http://" + url[len("https://"):]
        logger.warning(f"Certificate rejected for {url}, retrying over {used_url}")
        stdout, stderr, status = _invoke(used_url, cfg, cwd, runner)
        issues = parse_pa11y_output(stdout)

    if issues is None:
        message = stderr.strip() or "Pa11y did not return JSON output."
        logger.warning(f"pa11y failed for {used_url} (exit {status})")
        sentinel = runner_error_issue(
            message,
            context=f"Scan failed for {used_url}",
            runner=LINTER_RUNNER,
            exitStatus=status if status is not None else 1,
        )
        return LinterResult(issues=[sentinel], used_url=used_url, ok=False)

    return LinterResult(issues=issues, used_url=used_url, ok=True)
