# report_pdf.py
import os
import datetime as dt
from typing import Any, TypeAlias
from urllib.parse import urlparse
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.platypus import (
    SimpleDocTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
    HRFlowable,
    Flowable,
)
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

import config
from a11y_models import AuditSummary, PageResult
from compliance import issue_type_counts, summarize_rules
from ui.theme import Theme
from ui.widgets import CriteriaGauge, StatusBadge, create_card_table

BODY_FONT = "DejaVuSans"
BOLD_FONT = "DejaVuSans-Bold"

# Long issue lists are cut in the PDF; the JSON file keeps everything.
MAX_ISSUE_ROWS = 300
MAX_RULE_ROWS = 60
MAX_UNKNOWN_ROWS = 25
MAX_CELL_CHARS = 500

TableData: TypeAlias = list[list[Any]]


def _register_fonts() -> tuple[str, str]:
    body_path = os.path.join(config.FONTS_DIR, "DejaVuSans.ttf")
    bold_path = os.path.join(config.FONTS_DIR, "DejaVuSans-Bold.ttf")

    if os.path.exists(body_path) and os.path.exists(bold_path):
        pdfmetrics.registerFont(TTFont(BODY_FONT, body_path))
        pdfmetrics.registerFont(TTFont(BOLD_FONT, bold_path))
        pdfmetrics.registerFontFamily(
            BODY_FONT,
            normal=BODY_FONT,
            bold=BOLD_FONT,
            italic=BODY_FONT,
            boldItalic=BOLD_FONT,
        )
        return BODY_FONT, BOLD_FONT

    return "Helvetica", "Helvetica-Bold"


def clip_text(text: Any, limit: int = MAX_CELL_CHARS) -> str:
    """Cuts long cell text (stack traces, call logs) so a table row fits on a page."""
    s = str(text if text is not None else "")
    if len(s) <= limit:
        return s
    return s[:limit].rstrip() + " …"


def criterion_sort_key(criterion: str) -> tuple[int, ...]:
    """'1.4.10' sorts after '1.4.9'."""
    parts = []
    for part in str(criterion or "").split("."):
        try:
            parts.append(int(part))
        except ValueError:
            parts.append(0)
    return tuple(parts)


class _Report:
    """Shared document scaffolding: fonts, styles, tables, header and footer."""

    def __init__(self, out_path: str, title: str, subject: str):
        self.body_font, self.bold_font = _register_fonts()
        self.styles = Theme.get_stylesheet(self.body_font, self.bold_font)
        self.out_path = out_path if out_path.lower().endswith(".pdf") else out_path + ".pdf"
        self.title = title
        self.subject = subject
        self.story: list[Flowable] = []
        self.date = dt.date.today().strftime("%d.%m.%Y")

    def p(self, text: Any, style: str = "Body") -> Paragraph:
        return Paragraph(escape(str(text if text is not None else "")), self.styles[style])

    def cell(self, text: Any) -> Paragraph:
        return self.p(clip_text(text), "Cell")

    def heading(self, text: str) -> None:
        self.story.append(Paragraph(escape(text), self.styles["H2"]))
        self.story.append(HRFlowable(color=Theme.BORDER, thickness=0.6, width="100%"))
        self.story.append(Spacer(1, 4))

    def table(self, rows: TableData, col_widths: list[float] | None = None, zebra: bool = True) -> Table:
        tbl = Table(rows, colWidths=col_widths, repeatRows=1)
        style = [
            ("FONTNAME", (0, 0), (-1, -1), self.body_font),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("GRID", (0, 0), (-1, -1), 0.2, Theme.BORDER),
            ("LEFTPADDING", (0, 0), (-1, -1), 5),
            ("RIGHTPADDING", (0, 0), (-1, -1), 5),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("BACKGROUND", (0, 0), (-1, 0), Theme.BG_HEADER),
            ("FONTNAME", (0, 0), (-1, 0), self.bold_font),
        ]
        if zebra and len(rows) > 2:
            for i in range(2, len(rows), 2):
                style.append(("BACKGROUND", (0, i), (-1, i), Theme.BG_LIGHT))
        tbl.setStyle(TableStyle(style))
        return tbl

    def status_cell(self, status: str, label: str | None = None) -> Paragraph:
        _, color = Theme.status_colors(status)
        return Paragraph(
            f'<font color="{color.hexval().replace("0x", "#")}"><b>{escape(label or status)}</b></font>',
            self.styles["Cell"],
        )

    def type_cell(self, issue_type: str) -> Paragraph:
        color = Theme.TYPE_COLORS.get(issue_type, Theme.TEXT_LIGHT)
        return Paragraph(
            f'<font color="{color.hexval().replace("0x", "#")}">{escape(issue_type)}</font>',
            self.styles["Cell"],
        )

    def build(self) -> str:
        os.makedirs(os.path.dirname(os.path.abspath(self.out_path)), exist_ok=True)
        doc = SimpleDocTemplate(
            self.out_path,
            pagesize=A4,
            leftMargin=16 * mm,
            rightMargin=16 * mm,
            topMargin=18 * mm,
            bottomMargin=16 * mm,
            title=self.title,
            author="a11y-scanner",
        )

        def draw_header_footer(canvas, doc_obj):
            canvas.saveState()
            width, height = A4
            left = doc_obj.leftMargin
            right = width - doc_obj.rightMargin
            header_y = height - 12 * mm
            footer_y = 10 * mm

            canvas.setFont(self.body_font, 8)
            canvas.setFillColor(Theme.TEXT_LIGHT)
            header_line = f"{self.subject} • {self.date}" if self.subject else self.date
            canvas.drawString(left, header_y, header_line[:110])

            canvas.setStrokeColor(Theme.BORDER)
            canvas.setLineWidth(0.5)
            canvas.line(left, footer_y + 4 * mm, right, footer_y + 4 * mm)
            canvas.drawRightString(right, footer_y, f"Page {canvas.getPageNumber()}")
            canvas.restoreState()

        doc.build(self.story, onFirstPage=draw_header_footer, onLaterPages=draw_header_footer)
        return self.out_path


def _domain(raw_url: str) -> str:
    parsed = urlparse(raw_url or "")
    return parsed.netloc or str(raw_url or "").split("/")[0]


def export_page_pdf(page: PageResult, out_path: str) -> str:
    r = _Report(out_path, "Accessibility Scan", _domain(page.url))
    r.story.append(r.p("Accessibility Scan", "Title"))
    r.story.append(r.p(page.url, "Small"))
    r.story.append(Spacer(1, 6))

    counts = issue_type_counts(page.issues)
    page_status = "PASS" if page.ok and not page.issues else ("FAIL" if page.ok else "NOT RUN")
    label = "Scanned" if page.ok else "Scan failed"
    r.story.append(StatusBadge(f"{label} · {len(page.issues)} issue(s)", page_status, font=r.bold_font))
    r.story.append(Spacer(1, 10))

    r.story.append(create_card_table(
        [["Errors", "Warnings", "Notices", "Other"],
         [counts["error"], counts["warning"], counts["notice"], counts["unknown"]]],
        col_widths=[44 * mm] * 4,
        body_font=r.body_font,
        bold_font=r.bold_font,
    ))

    r.heading("Rules")
    rules = summarize_rules([page], only_ok=False)
    rows: TableData = [["Count", "Level", "SC", "Rule", "Message"]]
    for rule in rules[:MAX_RULE_ROWS]:
        rows.append([
            rule["count"],
            rule["level"],
            rule["criterion"] or "-",
            r.cell(rule["code"]),
            r.cell(rule["message"]),
        ])
    if len(rows) == 1:
        rows.append(["", "", "", r.cell("No issues detected."), ""])
    r.story.append(r.table(rows, col_widths=[14 * mm, 14 * mm, 14 * mm, 62 * mm, 74 * mm]))

    if page.issues:
        r.heading("Issues")
        rows = [["Type", "Rule", "Element", "Message"]]
        for issue in page.issues[:MAX_ISSUE_ROWS]:
            rows.append([
                r.type_cell(issue.type),
                r.cell(issue.code),
                r.cell(issue.selector or "-"),
                r.cell(issue.message),
            ])
        r.story.append(r.table(rows, col_widths=[16 * mm, 54 * mm, 50 * mm, 58 * mm]))
        if len(page.issues) > MAX_ISSUE_ROWS:
            r.story.append(r.p(f"{len(page.issues) - MAX_ISSUE_ROWS} more issue(s) in the JSON report.", "Small"))

    return r.build()


def export_audit_pdf(summary: AuditSummary, out_path: str) -> str:
    r = _Report(out_path, "WCAG Compliance Audit", summary.source)
    target = summary.target
    totals = summary.totals
    by_level = totals.get("issuesByLevel", {})
    failed_by_level = totals.get("failedCriteriaByLevel", {})

    r.story.append(r.p("WCAG Compliance Audit", "Title"))
    r.story.append(r.p(f"Source: {summary.source} · Generated: {summary.generated_at}", "Small"))
    r.story.append(r.p(
        f"Target: {target.get('standard', '')} · Scan depth: {target.get('scanStandard', '')}"
        f" · NOT RUN policy: {target.get('notRunPolicy', '')}",
        "Small",
    ))
    r.story.append(Spacer(1, 6))
    r.story.append(StatusBadge(f"{target.get('standard', '')} {summary.status}", summary.status, font=r.bold_font))
    r.story.append(Spacer(1, 10))

    r.story.append(create_card_table(
        [["Total issues", "Failed criteria", "A / AA / AAA", "Pages scanned", "Scan errors"],
         [
             totals.get("issues", 0),
             totals.get("failedCriteria", 0),
             f"{by_level.get('A', 0)} / {by_level.get('AA', 0)} / {by_level.get('AAA', 0)}",
             summary.pages.get("scanned", 0),
             summary.pages.get("scanErrors", 0),
         ]],
        col_widths=[35 * mm] * 5,
        body_font=r.body_font,
        bold_font=r.bold_font,
    ))
    r.story.append(Spacer(1, 4))
    r.story.append(r.p(
        f"Issue totals: A ({by_level.get('A', 0)}), AA ({by_level.get('AA', 0)}), "
        f"AAA ({by_level.get('AAA', 0)}), Unknown ({by_level.get('Unknown', 0)})",
        "Small",
    ))
    r.story.append(r.p(
        f"Criteria failures: A ({failed_by_level.get('A', 0)}), AA ({failed_by_level.get('AA', 0)}), "
        f"AAA ({failed_by_level.get('AAA', 0)})",
        "Small",
    ))

    r.heading("Level status")
    gauges = [
        CriteriaGauge(card.passed_criteria_count, card.total_criteria, label=card.level,
                      body_font=r.body_font, bold_font=r.bold_font)
        for card in summary.levels
    ]
    if gauges:
        gauge_row = Table([gauges], colWidths=[58 * mm] * len(gauges))
        gauge_row.setStyle(TableStyle([("ALIGN", (0, 0), (-1, -1), "CENTER")]))
        r.story.append(gauge_row)
        r.story.append(Spacer(1, 6))

    rows: TableData = [["Level", "Status", "Issues", "Failed criteria", "Passed criteria"]]
    for card in summary.levels:
        rows.append([
            card.level,
            r.status_cell(card.status),
            card.issue_count,
            card.failed_criteria_count,
            f"{card.passed_criteria_count} / {card.total_criteria}",
        ])
    r.story.append(r.table(rows, col_widths=[24 * mm, 30 * mm, 30 * mm, 44 * mm, 44 * mm], zebra=False))

    r.heading("Criteria matrix")
    for level in ("A", "AA", "AAA"):
        level_rows = sorted(
            (row for row in summary.criteria if row.level == level),
            key=lambda row: criterion_sort_key(row.criterion),
        )
        r.story.append(r.p(f"{level} criteria", "H2"))
        rows = [["SC", "Status", "Issues", "Pages", "Sample"]]
        for row in level_rows:
            rows.append([
                row.criterion,
                r.status_cell(row.status),
                row.issue_count,
                row.page_count,
                r.cell(row.sample_message or "-"),
            ])
        if len(rows) == 1:
            rows.append(["", "", "", "", r.cell("No criteria.")])
        r.story.append(r.table(rows, col_widths=[16 * mm, 22 * mm, 16 * mm, 16 * mm, 108 * mm]))

    r.heading("Unmapped rules")
    rows = [["Rule", "Count"]]
    for entry in summary.unknown.get("byCode", [])[:MAX_UNKNOWN_ROWS]:
        rows.append([r.cell(entry.get("code", "")), entry.get("count", 0)])
    if len(rows) == 1:
        rows.append([r.cell("No unmapped rules."), ""])
    r.story.append(r.table(rows, col_widths=[150 * mm, 28 * mm]))

    r.story.append(Spacer(1, 8))
    r.story.append(r.p(
        "Automated checks cover part of WCAG only. A PASS here does not replace manual review.",
        "Small",
    ))
    return r.build()


def export_batch_pdf(manifest: dict, rules: list[dict], out_path: str) -> str:
    r = _Report(out_path, "Batch Accessibility Scan", str(manifest.get("sourceUrlList", "")))
    results = manifest.get("results", [])
    errors = sum(1 for item in results if item.get("status") != "ok")

    r.story.append(r.p("Batch Accessibility Scan", "Title"))
    r.story.append(r.p(
        f"Source: {manifest.get('sourceUrlList', '')} · Generated: {manifest.get('generatedAt', '')}"
        f" · Standard: {manifest.get('target', '')}",
        "Small",
    ))
    r.story.append(Spacer(1, 6))
    r.story.append(create_card_table(
        [["Pages", "Scanned", "Scan errors", "Distinct rules"],
         [manifest.get("pageCount", len(results)), len(results) - errors, errors, len(rules)]],
        col_widths=[44 * mm] * 4,
        body_font=r.body_font,
        bold_font=r.bold_font,
    ))

    r.heading("Top rules")
    rows: TableData = [["Count", "Pages", "Level", "SC", "Rule", "Message"]]
    for rule in rules[:MAX_RULE_ROWS]:
        rows.append([
            rule.get("count", 0),
            rule.get("pageCount", 0),
            rule.get("level", ""),
            rule.get("criterion") or "-",
            r.cell(rule.get("code", "")),
            r.cell(rule.get("message", "")),
        ])
    if len(rows) == 1:
        rows.append(["", "", "", "", r.cell("No issues detected."), ""])
    r.story.append(r.table(rows, col_widths=[13 * mm, 13 * mm, 13 * mm, 13 * mm, 58 * mm, 68 * mm]))

    r.heading("Pages")
    rows = [["#", "URL", "Status", "Issues", "Report"]]
    for i, item in enumerate(results, start=1):
        rows.append([
            i,
            r.cell(item.get("url", "")),
            r.status_cell("PASS" if item.get("status") == "ok" else "NOT RUN", label=item.get("status", "")),
            item.get("issueCount", 0),
            r.cell(item.get("reportFile") or "-"),
        ])
    r.story.append(r.table(rows, col_widths=[10 * mm, 86 * mm, 22 * mm, 16 * mm, 44 * mm]))
    return r.build()
