# utils.py
"""
Utility helpers: JSON loading, findings export, and console output.

- Saves JSON, CSV, and HTML findings reports side by side.
- Uses Rich for colored, wrapped summary tables in the terminal.
"""

import csv
import html
import json
import os
from datetime import datetime, timezone
from json import JSONDecodeError
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from exceptions import ArtifactWriteError
from models import AnalysisBundle, Finding

_console = Console()

SEVERITY_STYLES = {"Critical": "bold red", "High": "red", "Medium": "yellow", "Low": "green"}
CSV_FIELDS = ["analyzer", "severity", "category", "resources", "issue", "impact", "remediation"]


def load_json_file(path: str):
    """
    Load JSON from a file and return the parsed value.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input JSON file not found: {path}.")
    try:
        with open(path, "r", encoding="utf-8-sig") as fh:
            return json.load(fh)
    except JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno} column {e.colno})") from e


def ensure_reports_dir(path: str = "reports") -> str:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise ArtifactWriteError(path, e) from e
    return path


def finding_row(f: Finding) -> Dict[str, str]:
    """Flat, string-only view of a finding for CSV/HTML output."""
    data = f.to_dict()
    row = {k: str(data.get(k, "")) for k in CSV_FIELDS}
    row["resources"] = "; ".join(f.resources)
    return row


def scores(bundle: AnalysisBundle) -> Dict[str, int]:
    return {r.name: r.score for r in bundle.results()}


def _write(path: str, content: str) -> None:
    try:
        with open(path, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
    except OSError as e:
        raise ArtifactWriteError(path, e) from e


def render_html(bundle: AnalysisBundle, scan_time: str, extra: Optional[dict] = None) -> str:
    findings = bundle.all_findings()
    rows: List[str] = []
    rows.append("<!doctype html>")
    rows.append("<html><head><meta charset='utf-8'><title>Subscription Findings</title>")
    rows.append("<style>body{font-family:Arial,Helvetica,sans-serif;margin:20px}table{border-collapse:collapse;"
                "width:100%}th,td{border:1px solid #ddd;padding:8px}th{background:#f2f2f2;text-align:left}"
                "tr:nth-child(even){background:#fafafa}</style>")
    rows.append("</head><body>")
    rows.append(f"<h2>Subscription Findings - {html.escape(scan_time)}</h2>")
    rows.append(f"<p>Total findings: {len(findings)}</p>")
    rows.append("<table id='scores'><thead><tr><th>Analyzer</th><th>Score</th><th>Health</th></tr></thead><tbody>")
    for r in bundle.results():
        rows.append(f"<tr><td>{r.name}</td><td>{r.score}</td><td>{html.escape(r.health)}</td></tr>")
    rows.append("</tbody></table>")
    if extra:
        rows.append("<div><strong>Metadata:</strong><ul>")
        for k, v in extra.items():
            rows.append(f"<li>{html.escape(str(k))}: {html.escape(str(v))}</li>")
        rows.append("</ul></div>")
    rows.append("<table id='findings'><thead><tr><th>Analyzer</th><th>Severity</th><th>Category</th>"
                "<th>Resources</th><th>Issue</th><th>Remediation</th></tr></thead><tbody>")
    for f in findings:
        row = finding_row(f)
        cells = "".join(f"<td>{html.escape(row[k])}</td>"
                        for k in ("analyzer", "severity", "category", "resources", "issue", "remediation"))
        rows.append(f"<tr>{cells}</tr>")
    rows.append("</tbody></table></body></html>")
    return "\n".join(rows)


def save_report(bundle: AnalysisBundle, out_dir: str = "reports", extra: Optional[dict] = None,
                now: Optional[datetime] = None) -> Dict[str, str]:
    """
    Save JSON, CSV, and HTML findings reports and return their paths.
    """
    out_dir = ensure_reports_dir(out_dir)
    now = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    scan_time = now.strftime("%Y-%m-%dT%H:%M:%SZ")
    report = {
        "scan_time": scan_time,
        "scores": scores(bundle),
        "findings": [f.to_dict() for f in bundle.all_findings()],
    }
    if extra:
        report["extra"] = extra

    base_ts = scan_time.replace(":", "-")
    json_path = os.path.join(out_dir, f"scan-{base_ts}.json")
    csv_path = os.path.join(out_dir, f"scan-{base_ts}.csv")
    html_path = os.path.join(out_dir, f"scan-{base_ts}.html")

    # JSON
    _write(json_path, json.dumps(report, indent=2, ensure_ascii=False))

    # CSV
    try:
        with open(csv_path, "w", encoding="utf-8", newline="") as fh:
            writer = csv.DictWriter(fh, fieldnames=CSV_FIELDS)
            writer.writeheader()
            for f in bundle.all_findings():
                writer.writerow(finding_row(f))
    except OSError as e:
        raise ArtifactWriteError(csv_path, e) from e

    # HTML
    _write(html_path, render_html(bundle, scan_time, extra))

    return {"json": json_path, "csv": csv_path, "html": html_path}


# --- Console printing (Rich) ---

def _severity_text(severity: str) -> Text:
    return Text(severity, style=SEVERITY_STYLES.get(severity, ""))


def print_summary(bundle: AnalysisBundle, artifacts: Dict[str, str], show_top: int = 5,
                  print_full_table: bool = False, console: Optional[Console] = None) -> None:
    """
    Print analyzer scores, the top findings, and where artifacts were written.
    """
    console = console or _console
    scores_table = Table(title="Analysis summary", show_header=True, header_style="bold cyan")
    scores_table.add_column("Analyzer", style="cyan")
    scores_table.add_column("Score", justify="right")
    scores_table.add_column("Health")
    scores_table.add_column("Findings", justify="right")
    for r in bundle.results():
        scores_table.add_row(r.name.capitalize(), str(r.score), Text(r.health), str(len(r.findings)))
    console.print(scores_table)

    findings = sorted(bundle.all_findings(), key=lambda f: -f.severity.rank)
    if findings:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Analyzer", style="cyan")
        table.add_column("Severity")
        table.add_column("Resources", overflow="fold")
        table.add_column("Issue", style="magenta", overflow="fold")
        for f in (findings if print_full_table else findings[:show_top]):
            # resource names and issues are user data, never Rich markup
            table.add_row(Text(f.source), _severity_text(f.severity.value),
                          Text(", ".join(f.resources)), Text(f.issue))
        console.print(table)

    if artifacts:
        console.print("\nArtifacts:", markup=False)
        for label, path in artifacts.items():
            console.print(f"- {label}: {path}", markup=False, highlight=False)
