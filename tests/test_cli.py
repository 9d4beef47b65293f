from __future__ import annotations

import json
from pathlib import Path

import pytest

import cli
import config
from a11y_models import Issue, PageResult


class FakeScanner:
    def __init__(self, cfg: dict, cwd: str | None = None):
        self.cfg = cfg

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return None

    def scan(self, url: str) -> PageResult:
        issues = []
        if "bad" in url:
            issues.append(Issue(
                code="WCAG2AA.Principle1.Guideline1_4.1_4_3.G18.Fail",
                type="error",
                type_code=1,
                message="Insufficient contrast",
                selector="p",
            ))
        return PageResult(url=url, issues=issues)


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("batch.PageScanner", FakeScanner)
    return tmp_path


def test_init_writes_config(workspace: Path) -> None:
    assert cli.main(["init", "--output-dir", "reports"]) == 0
    data = json.loads((workspace / config.CONFIG_NAME).read_text(encoding="utf-8"))
    assert data["outputDir"] == "reports"


def test_scan_list(workspace: Path, capsys) -> None:
    (workspace / "urls.txt").write_text("https://a.test/\nhttps://a.test/bad\n", encoding="utf-8")
    assert cli.main(["scan", "list", "urls.txt", "--output-dir", "out", "--workers", "2"]) == 0

    (run_dir,) = (workspace / "out").iterdir()
    manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["sourceUrlList"] == "urls.txt"
    assert manifest["pageCount"] == 2
    assert "Scan complete" in capsys.readouterr().out


def test_audit_from_sitemap(workspace: Path, capsys) -> None:
    (workspace / "sitemap.xml").write_text(
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        "<url><loc>https://a.test/</loc></url><url><loc>https://a.test/bad</loc></url></urlset>",
        encoding="utf-8",
    )
    assert cli.main(["audit", "xml", "sitemap.xml", "--level", "a", "--output-dir", "audits"]) == 0

    (run_dir,) = (workspace / "audits").iterdir()
    audit = json.loads((run_dir / "audit.json").read_text(encoding="utf-8"))
    assert audit["target"]["level"] == "A"
    assert audit["overall"]["status"] == "PASS"
    assert audit["source"].startswith(".a11y-scanner")
    assert len(list((workspace / ".a11y-scanner").glob("urls-*.txt"))) == 1
    assert "PASS" in capsys.readouterr().out


def test_empty_list_exits_with_error(workspace: Path, capsys) -> None:
    (workspace / "urls.txt").write_text("# nothing yet\n", encoding="utf-8")
    assert cli.main(["scan", "list", "urls.txt"]) == 1
    assert "No URLs found" in capsys.readouterr().err


def test_usage_errors_exit_with_2(workspace: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 2
    with pytest.raises(SystemExit) as exc:
        cli.main(["audit", "page", "https://a.test/", "--level", "AAAA"])
    assert exc.value.code == 2
