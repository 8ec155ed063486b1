# tests/test_reports.py
"""
Findings report tests.

- Saves JSON/CSV/HTML side by side with a fixed scan time.
- Parses the HTML report with BeautifulSoup and checks rows and escaping.
- Captures the Rich console summary.
"""

import csv
import json
import os
from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup
from rich.console import Console

from analyzers import run_all
from exceptions import ArtifactWriteError
from models import (
    AnalysisBundle,
    ComplianceAnalysis,
    CostAnalysis,
    SecurityAnalysis,
    SecurityFinding,
    Severity,
    TaggingAnalysis,
)
from utils import ensure_reports_dir, load_json_file, print_summary, save_report

WHEN = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)


def test_save_report_writes_three_files(tmp_path, scenario):
    bundle = run_all(scenario)
    paths = save_report(bundle, out_dir=str(tmp_path), extra={"source": "test"}, now=WHEN)

    assert os.path.basename(paths["json"]) == "scan-2024-05-01T12-00-00Z.json"
    assert all(os.path.exists(p) for p in paths.values())

    with open(paths["json"], "r", encoding="utf-8") as fh:
        report = json.load(fh)
    assert report["scan_time"] == "2024-05-01T12:00:00Z"
    assert set(report["scores"]) == {"security", "cost", "tagging", "compliance"}
    assert len(report["findings"]) == len(bundle.all_findings())
    assert report["extra"] == {"source": "test"}

    with open(paths["csv"], "r", encoding="utf-8", newline="") as fh:
        rows = list(csv.DictReader(fh))
    assert len(rows) == len(bundle.all_findings())
    assert rows[0]["analyzer"] == "security"


def test_html_report_rows(tmp_path, scenario):
    bundle = run_all(scenario)
    paths = save_report(bundle, out_dir=str(tmp_path), extra={"source": "test"}, now=WHEN)

    with open(paths["html"], "r", encoding="utf-8") as fh:
        soup = BeautifulSoup(fh, "html.parser")

    assert "2024-05-01T12:00:00Z" in soup.find("h2").get_text(strip=True)
    score_rows = soup.find("table", id="scores").find_all("tr")[1:]
    assert [tr.find("td").get_text(strip=True) for tr in score_rows] == ["security", "cost", "tagging", "compliance"]

    found = False
    for tr in soup.find("table", id="findings").find_all("tr")[1:]:
        cols = [td.get_text(strip=True) for td in tr.find_all("td")]
        if cols[2] == "NSG":
            assert cols[0] == "security"
            assert cols[1] == "Critical"
            assert cols[3] == "nsg-mgmt"
            found = True
    assert found
    assert "source: test" in soup.get_text()


def test_html_escapes_finding_text(tmp_path):
    finding = SecurityFinding(Severity.HIGH, "NSG", ("<nsg>",), "<script>alert(1)</script>", "i", "r")
    bundle = AnalysisBundle(SecurityAnalysis(findings=(finding,)), CostAnalysis(), ComplianceAnalysis(),
                            TaggingAnalysis())
    paths = save_report(bundle, out_dir=str(tmp_path), now=WHEN)

    with open(paths["html"], "r", encoding="utf-8") as fh:
        raw = fh.read()
    assert "<script>" not in raw
    soup = BeautifulSoup(raw, "html.parser")
    assert soup.find("table", id="findings").find_all("td")[4].get_text() == "<script>alert(1)</script>"


def test_report_dir_failure(tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ArtifactWriteError):
        ensure_reports_dir(str(blocker / "reports"))


def test_load_json_file_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_json_file(str(tmp_path / "nope.json"))
    bad = tmp_path / "bad.json"
    bad.write_text('{\n  "a": }', encoding="utf-8")
    with pytest.raises(ValueError, match="line 2"):
        load_json_file(str(bad))


def test_print_summary(scenario):
    console = Console(record=True, width=200)
    bundle = run_all(scenario)
    print_summary(bundle, {"markdown": "docs/SUBSCRIPTION.md"}, show_top=2, console=console)

    out = console.export_text()
    assert "Analysis summary" in out
    assert "Security" in out
    assert "- markdown: docs/SUBSCRIPTION.md" in out
    # show_top limits the findings table; Critical sorts first
    assert "allows port 22" in out


def test_print_summary_shows_bracketed_names_verbatim():
    finding = SecurityFinding(Severity.HIGH, "VM Exposure", ("web[/b]-vm",), "VM [bold]web[/b]-vm[/] is exposed",
                              "i", "r")
    bundle = AnalysisBundle(SecurityAnalysis(findings=(finding,)), CostAnalysis(), ComplianceAnalysis(),
                            TaggingAnalysis())
    console = Console(record=True, width=200)

    print_summary(bundle, {"markdown": "docs/[b]SUBSCRIPTION.md"}, console=console)

    out = console.export_text()
    assert "web[/b]-vm" in out
    assert "VM [bold]web[/b]-vm[/] is exposed" in out
    assert "- markdown: docs/[b]SUBSCRIPTION.md" in out
