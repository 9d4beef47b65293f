"""
a11y_models.py - Issue / page / audit records shared by scanners, scorer and reports.

All records serialize to the JSON shape written to disk (camelCase keys) and
can be rebuilt from it without loss.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

RUNNER_ERROR_CODE = "A11Y.RUNNER.ERROR"

DETECTOR_RUNNER = "custom-keyboard-audit"
STATIC_RUNNER = "static-heuristic"
LINTER_RUNNER = "pa11y-runner"
SCANNER_RUNNER = "a11y-scanner"

ISSUE_TYPE_CODES = {"error": 1, "warning": 2, "notice": 3}

STATUS_OK = "ok"
STATUS_ERROR = "error"

PASS = "PASS"
FAIL = "FAIL"
NOT_RUN = "NOT RUN"


def _clean(value: Any) -> str:
    return " ".join(str(value or "").split())


@dataclass(frozen=True)
class Issue:
    code: str
    type: str
    type_code: int
    message: str
    selector: str = ""
    context: str = ""
    runner: str = ""
    runner_extras: dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.code, self.selector, self.message)

    @classmethod
    def from_dict(cls, raw: dict) -> "Issue":
        issue_type = str(raw.get("type") or "unknown").lower()
        type_code = raw.get("typeCode")
        if not isinstance(type_code, int):
            type_code = ISSUE_TYPE_CODES.get(issue_type, 0)
        extras = raw.get("runnerExtras")
        return cls(
            code=str(raw.get("code") or "unknown-code"),
            type=issue_type,
            type_code=type_code,
            message=str(raw.get("message") or ""),
            selector=str(raw.get("selector") or ""),
            context=str(raw.get("context") or ""),
            runner=str(raw.get("runner") or ""),
            runner_extras=dict(extras) if isinstance(extras, dict) else {},
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "type": self.type,
            "typeCode": self.type_code,
            "message": self.message,
            "context": self.context,
            "selector": self.selector,
            "runner": self.runner,
            "runnerExtras": dict(self.runner_extras),
        }


def runner_error_issue(message: str, context: str, runner: str = LINTER_RUNNER, **extras: Any) -> Issue:
    """The single issue recorded for a page that could not be scanned."""
    return Issue(
        code=RUNNER_ERROR_CODE,
        type="error",
        type_code=ISSUE_TYPE_CODES["error"],
        message=_clean(message) or "Scan failed.",
        selector="",
        context=context,
        runner=runner,
        runner_extras=extras,
    )


def dedupe_issues(issues: list[Issue]) -> list[Issue]:
    seen: set[tuple[str, str, str]] = set()
    out: list[Issue] = []
    for issue in issues:
        if issue.key in seen:
            continue
        seen.add(issue.key)
        out.append(issue)
    return out


@dataclass
class PageResult:
    url: str
    status: str = STATUS_OK
    issues: list[Issue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def has_runner_error(self) -> bool:
        return any(issue.code == RUNNER_ERROR_CODE for issue in self.issues)

    @classmethod
    def from_dict(cls, raw: dict) -> "PageResult":
        issues = raw.get("issues")
        return cls(
            url=str(raw.get("url") or ""),
            status=STATUS_OK if raw.get("status") == STATUS_OK else STATUS_ERROR,
            issues=[Issue.from_dict(i) for i in issues if isinstance(i, dict)] if isinstance(issues, list) else [],
        )

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "status": self.status,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class CriterionRow:
    criterion: str
    level: str
    status: str
    issue_count: int = 0
    page_count: int = 0
    sample_message: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> "CriterionRow":
        return cls(
            criterion=raw["criterion"],
            level=raw["level"],
            status=raw["status"],
            issue_count=int(raw.get("issueCount", 0)),
            page_count=int(raw.get("pageCount", 0)),
            sample_message=str(raw.get("sampleMessage") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "criterion": self.criterion,
            "level": self.level,
            "status": self.status,
            "issueCount": self.issue_count,
            "pageCount": self.page_count,
            "sampleMessage": self.sample_message,
        }


@dataclass(frozen=True)
class LevelCard:
    level: str
    status: str
    issue_count: int
    failed_criteria_count: int
    total_criteria: int
    passed_criteria_count: int

    @classmethod
    def from_dict(cls, raw: dict) -> "LevelCard":
        return cls(
            level=raw["level"],
            status=raw["status"],
            issue_count=int(raw.get("issueCount", 0)),
            failed_criteria_count=int(raw.get("failedCriteriaCount", 0)),
            total_criteria=int(raw.get("totalCriteria", 0)),
            passed_criteria_count=int(raw.get("passedCriteriaCount", 0)),
        )

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "status": self.status,
            "issueCount": self.issue_count,
            "failedCriteriaCount": self.failed_criteria_count,
            "totalCriteria": self.total_criteria,
            "passedCriteriaCount": self.passed_criteria_count,
        }


@dataclass
class AuditSummary:
    """Root object of an audit run. Derived only from the scanned pages."""

    generated_at: str
    source: str
    target: dict
    pages: dict
    totals: dict
    overall: dict
    levels: list[LevelCard]
    criteria: list[CriterionRow]
    unknown: dict

    @property
    def status(self) -> str:
        return self.overall.get("status", NOT_RUN)

    def level_card(self, level: str) -> LevelCard | None:
        for card in self.levels:
            if card.level == level:
                return card
        return None

    def row(self, criterion: str) -> CriterionRow | None:
        for row in self.criteria:
            if row.criterion == criterion:
                return row
        return None

    @classmethod
    def from_dict(cls, raw: dict) -> "AuditSummary":
        return cls(
            generated_at=str(raw.get("generatedAt") or ""),
            source=str(raw.get("source") or ""),
            target=dict(raw.get("target") or {}),
            pages=dict(raw.get("pages") or {}),
            totals=dict(raw.get("totals") or {}),
            overall=dict(raw.get("overall") or {}),
            levels=[LevelCard.from_dict(card) for card in raw.get("levels") or []],
            criteria=[CriterionRow.from_dict(row) for row in raw.get("criteria") or []],
            unknown=dict(raw.get("unknown") or {}),
        )

    def to_dict(self) -> dict:
        return {
            "generatedAt": self.generated_at,
            "source": self.source,
            "target": dict(self.target),
            "pages": dict(self.pages),
            "totals": dict(self.totals),
            "overall": dict(self.overall),
            "levels": [card.to_dict() for card in self.levels],
            "criteria": [row.to_dict() for row in self.criteria],
            "unknown": dict(self.unknown),
        }
