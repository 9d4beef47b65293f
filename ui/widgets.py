"""
widgets.py - Custom visual elements for reports.
"""

from reportlab.platypus import Flowable, Table, TableStyle
import math

from reportlab.lib import colors
from reportlab.pdfbase.pdfmetrics import stringWidth
from .theme import Theme


class CriteriaGauge(Flowable):
    """
    Draws a circular gauge of passed criteria out of the total for one level.
    """
    def __init__(self, passed: int, total: int, label: str = "A", size: int = 32,
                 body_font: str = "Helvetica", bold_font: str = "Helvetica-Bold"):
        super().__init__()
        self.passed = passed
        self.total = total
        self.label = label
        self.size = size
        self.body_font = body_font
        self.bold_font = bold_font
        self.width = size * 2
        self.height = size * 2

    def ratio(self) -> float:
        try:
            passed = float(self.passed)
            total = float(self.total)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(passed) or not math.isfinite(total) or total <= 0:
            return 0.0
        return max(0.0, min(1.0, passed / total))

    def draw(self):
        ratio = self.ratio()

        c = Theme.ERROR
        if ratio > 0.5:
            c = Theme.WARNING
        if ratio >= 1.0:
            c = Theme.SUCCESS

        cx, cy = self.size, self.size
        r_outer = self.size
        r_inner = self.size * 0.82

        bg_color = colors.Color(c.red, c.green, c.blue, alpha=0.15)
        self.canv.setFillColor(bg_color)
        self.canv.circle(cx, cy, r_outer, stroke=0, fill=1)

        # Wedge from 12 o'clock, clockwise; skipped when empty
        angle = 360.0 * ratio
        if angle > 0.001:
            self.canv.setFillColor(c)
            self.canv.saveState()
            p = self.canv.beginPath()
            p.moveTo(cx, cy)
            p.arc(cx - r_outer, cy - r_outer, cx + r_outer, cy + r_outer, 90, -angle)
            p.lineTo(cx, cy)
            p.close()
            self.canv.drawPath(p, fill=1, stroke=0)
            self.canv.restoreState()

        self.canv.setFillColor(colors.white)
        self.canv.circle(cx, cy, r_inner, stroke=0, fill=1)

        self.canv.setFillColor(Theme.PRIMARY)
        self.canv.setFont(self.bold_font, self.size * 0.36)
        self.canv.drawCentredString(cx, cy, f"{self.passed}/{self.total}")

        self.canv.setFillColor(Theme.TEXT_LIGHT)
        self.canv.setFont(self.body_font, self.size * 0.24)
        self.canv.drawCentredString(cx, cy - (self.size * 0.38), self.label)


class StatusBadge(Flowable):
    """Rounded PASS / FAIL / NOT RUN pill."""

    def __init__(self, text: str, status: str, font: str = "Helvetica-Bold", font_size: int = 11):
        super().__init__()
        self.text = text
        self.status = status
        self.font = font
        self.font_size = font_size
        self.width = 0
        self.height = font_size * 2

    def wrap(self, availWidth, availHeight):
        self.width = stringWidth(self.text, self.font, self.font_size) + self.font_size * 2
        return self.width, self.height

    def draw(self):
        fill, text_color = Theme.status_colors(self.status)
        self.canv.setFillColor(fill)
        self.canv.setStrokeColor(text_color)
        self.canv.roundRect(0, 0, self.width, self.height, self.height / 2, stroke=1, fill=1)
        self.canv.setFillColor(text_color)
        self.canv.setFont(self.font, self.font_size)
        self.canv.drawCentredString(self.width / 2, self.height / 2 - self.font_size * 0.35, self.text)


def create_card_table(data, col_widths=None, body_font="Helvetica", bold_font="Helvetica-Bold"):
    """
    Returns a Table formatted like a generic UI card.
    """
    t = Table(data, colWidths=col_widths)
    t.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), colors.white),
        ('FONTNAME', (0, 0), (-1, -1), body_font),
        ('FONTNAME', (0, 0), (-1, 0), bold_font), # Header
        ('TEXTCOLOR', (0, 0), (-1, 0), Theme.PRIMARY),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
        ('TOPPADDING', (0, 0), (-1, -1), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, Theme.BORDER),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))
    return t
