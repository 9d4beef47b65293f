from pathlib import Path

from reportlab.pdfgen import canvas

from ui.widgets import CriteriaGauge, StatusBadge


def test_criteria_gauge_zero_passed_does_not_crash(tmp_path: Path) -> None:
    pdf_path = tmp_path / "gauge.pdf"
    c = canvas.Canvas(str(pdf_path))
    for gauge in (CriteriaGauge(passed=0, total=33, label="A"), CriteriaGauge(passed=23, total=23, label="AA")):
        gauge.wrap(0, 0)
        gauge.canv = c
        gauge.draw()
    c.showPage()
    c.save()
    assert pdf_path.exists()
    assert pdf_path.stat().st_size > 0


def test_gauge_ratio_is_clamped() -> None:
    assert CriteriaGauge(passed=5, total=0).ratio() == 0.0
    assert CriteriaGauge(passed=40, total=33).ratio() == 1.0
    assert CriteriaGauge(passed="x", total=33).ratio() == 0.0


def test_status_badge_width_follows_text() -> None:
    short_w, _ = StatusBadge("PASS", "PASS").wrap(500, 100)
    long_w, _ = StatusBadge("NOT RUN · 3 scan errors", "NOT RUN").wrap(500, 100)
    assert long_w > short_w
