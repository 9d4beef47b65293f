"""
theme.py - Design system for the accessibility PDF reports.
"""

from reportlab.lib.colors import HexColor
from reportlab.lib.styles import StyleSheet1, ParagraphStyle


class Theme:
    # Color Palette (Slate/Blue)
    PRIMARY = HexColor("#0f172a")    # Slate 900
    SECONDARY = HexColor("#334155")  # Slate 700
    ACCENT = HexColor("#2563eb")     # Blue 600

    TEXT_MAIN = HexColor("#1e293b")  # Slate 800
    TEXT_LIGHT = HexColor("#64748b") # Slate 500

    BG_LIGHT = HexColor("#f8fafc")   # Slate 50
    BG_HEADER = HexColor("#f3f4f6")
    BORDER = HexColor("#e2e8f0")     # Slate 200

    SUCCESS = HexColor("#16a34a")
    WARNING = HexColor("#d97706")
    ERROR = HexColor("#dc2626")

    # Verdict pills: (fill, text)
    STATUS_COLORS = {
        "PASS": (HexColor("#dcfce7"), HexColor("#166534")),
        "FAIL": (HexColor("#fee2e2"), HexColor("#991b1b")),
        "NOT RUN": (HexColor("#fef3c7"), HexColor("#92400e")),
    }

    # Issue types
    TYPE_COLORS = {
        "error": ERROR,
        "warning": WARNING,
        "notice": ACCENT,
    }

    @classmethod
    def status_colors(cls, status: str):
        return cls.STATUS_COLORS.get(status, cls.STATUS_COLORS["NOT RUN"])

    @classmethod
    def get_stylesheet(cls, body_font: str = "Helvetica", bold_font: str = "Helvetica-Bold"):
        s = StyleSheet1()

        # Base Body
        s.add(ParagraphStyle(
            name='Body',
            fontName=body_font,
            fontSize=10,
            leading=14,
            textColor=cls.TEXT_MAIN,
            spaceAfter=6
        ))

        # Report title
        s.add(ParagraphStyle(
            name='Title',
            parent=s['Body'],
            fontName=bold_font,
            fontSize=20,
            leading=24,
            textColor=cls.PRIMARY,
            spaceAfter=8
        ))

        # Heading 1 (Section Title)
        s.add(ParagraphStyle(
            name='H1',
            parent=s['Body'],
            fontName=bold_font,
            fontSize=16,
            leading=20,
            textColor=cls.PRIMARY,
            spaceBefore=18,
            spaceAfter=12
        ))

        # Heading 2 (Subsection)
        s.add(ParagraphStyle(
            name='H2',
            parent=s['Body'],
            fontName=bold_font,
            fontSize=12,
            leading=16,
            textColor=cls.SECONDARY,
            spaceBefore=12,
            spaceAfter=6
        ))

        # Small Text
        s.add(ParagraphStyle(
            name='Small',
            parent=s['Body'],
            fontSize=8,
            leading=10,
            textColor=cls.TEXT_LIGHT
        ))

        # Table cells
        s.add(ParagraphStyle(
            name='Cell',
            parent=s['Body'],
            fontSize=8,
            leading=10,
            spaceAfter=0
        ))

        # Badge/Label
        s.add(ParagraphStyle(
            name='Label',
            parent=s['Body'],
            fontName=bold_font,
            fontSize=9,
            textColor=cls.ACCENT
        ))

        return s
