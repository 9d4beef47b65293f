"""
compliance.py - Turns scanned pages into a WCAG pass/fail matrix.

Usage:
    summary = build_audit(pages, generated_at=now_iso, source="urls.txt", target_level="AA")
    summary.status  # "PASS" | "FAIL" | "NOT RUN"
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable

from a11y_models import (
    FAIL,
    NOT_RUN,
    PASS,
    RUNNER_ERROR_CODE,
    AuditSummary,
    CriterionRow,
    Issue,
    LevelCard,
    PageResult,
)
from wcag_criteria import (
    DEFAULT_SCAN_STANDARD,
    LEVELS,
    UNKNOWN_LEVEL,
    criteria_by_level,
    criterion_from_code,
    level_of_criterion,
    normalize_level,
    required_levels,
    target_standard_from_level,
)

logger = logging.getLogger(__name__)

# NOT RUN whenever at least one page errored
POLICY_ANY_ERROR = "any_error"
# NOT RUN only when no page scanned successfully
POLICY_ALL_ERRORED = "all_errored"
NOT_RUN_POLICIES = (POLICY_ANY_ERROR, POLICY_ALL_ERRORED)
DEFAULT_NOT_RUN_POLICY = POLICY_ANY_ERROR

NOT_RUN_MESSAGE = "Not evaluated due to scan errors."


class _Failure:
    __slots__ = ("issue_count", "pages", "messages")

    def __init__(self):
        self.issue_count = 0
        self.pages: set[str] = set()
        # dict keeps first-seen order for the sample message
        self.messages: dict[str, None] = {}


def _scored_issues(pages: list[PageResult]) -> Iterable[tuple[PageResult, Issue]]:
    """
    Issues that count toward the audit: everything on ok pages, plus the
    runner-error sentinel wherever it appears.
    """
    for page in pages:
        for issue in page.issues:
            if page.ok or issue.code == RUNNER_ERROR_CODE:
                yield page, issue


def is_not_run(scanned: int, scan_errors: int, policy: str = DEFAULT_NOT_RUN_POLICY) -> bool:
    if scanned == 0:
        return True
    if policy == POLICY_ALL_ERRORED:
        return False
    return scan_errors > 0


def build_audit(
    pages: list[PageResult],
    generated_at: str,
    source: str,
    target_level: str = "AA",
    standard: str | None = None,
    scan_standard: str | None = None,
    not_run_policy: str | None = None,
) -> AuditSummary:
    policy = not_run_policy or DEFAULT_NOT_RUN_POLICY
    if policy not in NOT_RUN_POLICIES:
        raise ValueError(f"Unknown NOT RUN policy: {policy!r} (expected one of {', '.join(NOT_RUN_POLICIES)})")

    level = normalize_level(target_level)
    catalog = criteria_by_level()

    failures: dict[str, _Failure] = {}
    issues_by_level = {name: 0 for name in (*LEVELS, UNKNOWN_LEVEL)}
    unknown_by_code: Counter[str] = Counter()
    rule_codes: set[str] = set()
    total_issues = 0

    for page, issue in _scored_issues(pages):
        total_issues += 1
        rule_codes.add(issue.code)

        criterion = None if issue.code == RUNNER_ERROR_CODE else criterion_from_code(issue.code)
        issue_level = level_of_criterion(criterion)
        issues_by_level[issue_level] += 1

        if issue_level == UNKNOWN_LEVEL:
            unknown_by_code[issue.code] += 1
            continue

        record = failures.setdefault(criterion, _Failure())
        record.issue_count += 1
        record.pages.add(page.url)
        message = " ".join(issue.message.split())
        if message:
            record.messages.setdefault(message, None)

    scanned = sum(1 for page in pages if page.ok)
    scan_errors = len(pages) - scanned
    not_run = is_not_run(scanned, scan_errors, policy)
    if not_run:
        logger.info(f"Audit has {scan_errors} scan error(s) and {scanned} scanned page(s); unresolved criteria are NOT RUN.")

    rows: list[CriterionRow] = []
    for row_level in LEVELS:
        for criterion in catalog[row_level]:
            record = failures.get(criterion)
            if record is not None:
                rows.append(CriterionRow(
                    criterion=criterion,
                    level=row_level,
                    status=FAIL,
                    issue_count=record.issue_count,
                    page_count=len(record.pages),
                    sample_message=next(iter(record.messages), ""),
                ))
            else:
                rows.append(CriterionRow(
                    criterion=criterion,
                    level=row_level,
                    status=NOT_RUN if not_run else PASS,
                    sample_message=NOT_RUN_MESSAGE if not_run else "",
                ))

    failed_by_level = {
        row_level: sum(1 for row in rows if row.level == row_level and row.status == FAIL)
        for row_level in LEVELS
    }

    cards: list[LevelCard] = []
    for row_level in LEVELS:
        failed = failed_by_level[row_level]
        if failed:
            status = FAIL
        elif not_run:
            status = NOT_RUN
        else:
            status = PASS
        cards.append(LevelCard(
            level=row_level,
            status=status,
            issue_count=issues_by_level[row_level],
            failed_criteria_count=failed,
            total_criteria=len(catalog[row_level]),
            passed_criteria_count=sum(1 for row in rows if row.level == row_level and row.status == PASS),
        ))

    required = required_levels(level)
    if any(failed_by_level[row_level] for row_level in required):
        overall = FAIL
    elif not_run:
        overall = NOT_RUN
    else:
        overall = PASS

    by_code = sorted(unknown_by_code.items(), key=lambda item: (-item[1], item[0]))

    return AuditSummary(
        generated_at=generated_at,
        source=source,
        target={
            "standard": standard or target_standard_from_level(level),
            "level": level,
            "scanStandard": scan_standard or DEFAULT_SCAN_STANDARD,
            "notRunPolicy": policy,
        },
        pages={
            "requested": len(pages),
            "scanned": scanned,
            "scanErrors": scan_errors,
        },
        totals={
            "issues": total_issues,
            "issuesByLevel": issues_by_level,
            "failedCriteria": len(failures),
            "failedCriteriaByLevel": failed_by_level,
            "failedRuleCodes": len(rule_codes),
        },
        overall={"status": overall},
        levels=cards,
        criteria=rows,
        unknown={
            "issueCount": issues_by_level[UNKNOWN_LEVEL],
            "codeCount": len(unknown_by_code),
            "byCode": [{"code": code, "count": count} for code, count in by_code],
        },
    )


def summarize_rules(pages: list[PageResult], only_ok: bool = True) -> list[dict]:
    """Per-rule tally, busiest rules first. Error pages are skipped unless ``only_ok`` is False."""
    tally: dict[str, dict] = {}
    for page in pages:
        if only_ok and not page.ok:
            continue
        for issue in page.issues:
            entry = tally.get(issue.code)
            if entry is None:
                criterion = criterion_from_code(issue.code)
                entry = tally[issue.code] = {
                    "code": issue.code,
                    "criterion": criterion or "",
                    "level": level_of_criterion(criterion),
                    "message": " ".join(issue.message.split()),
                    "count": 0,
                    "pages": set(),
                }
            entry["count"] += 1
            entry["pages"].add(page.url)

    rows = []
    for entry in tally.values():
        pages_hit = entry.pop("pages")
        entry["pageCount"] = len(pages_hit)
        rows.append(entry)
    rows.sort(key=lambda row: (-row["count"], row["code"]))
    return rows


def issue_type_counts(issues: Iterable[Issue]) -> dict[str, int]:
    counts = {"error": 0, "warning": 0, "notice": 0, "unknown": 0}
    for issue in issues:
        key = issue.type if issue.type in counts else "unknown"
        counts[key] += 1
    return counts
