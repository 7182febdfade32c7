import html
import json
from datetime import datetime
from typing import Iterable, List, Optional
import click
from hpd.models import ReportRecord, ScenarioReport, Verdict
from hpd.session import ChecklistItem, VerificationTracker

VERDICT_COLORS = {
    Verdict.SUCCESS: "green",
    Verdict.INFO: "cyan",
    Verdict.WARNING: "yellow",
    Verdict.ERROR: "red",
}
VERDICT_ICONS = {
    Verdict.SUCCESS: "[+]",
    Verdict.INFO: "[i]",
    Verdict.WARNING: "[!]",
    Verdict.ERROR: "[x]",
}

HTML_STYLE = """
body { font-family: -apple-system, Segoe UI, sans-serif; margin: 2em; color: #222; }
.scenario { border: 1px solid #ddd; border-radius: 6px; margin-bottom: 1.5em; padding: 1em; }
.verdict { font-weight: bold; text-transform: uppercase; }
.success { color: #1a7f37; } .info { color: #0969da; } .warning { color: #9a6700; } .error { color: #cf222e; }
.status-2xx { color: #1a7f37; } .status-3xx { color: #0969da; }
.status-4xx { color: #9a6700; } .status-5xx { color: #cf222e; } .status-0xx { color: #57606a; }
pre { background: #f6f8fa; padding: 0.8em; overflow-x: auto; }
.checklist li.verified::before { content: "\\2713 "; color: #1a7f37; }
"""


class Reporter:
    @staticmethod
    def print_report(report: ScenarioReport, show_bodies: bool = False):
        color = VERDICT_COLORS[report.verdict]
        click.secho(f"\n{VERDICT_ICONS[report.verdict]} {report.title} [{report.verdict.value.upper()}]",
                    fg=color, bold=True)
        if report.error:
            click.secho(f"    {report.error}", fg="red")
        for line in report.summary:
            click.echo(f"    {line}")
        if show_bodies:
            for record in report.records:
                Reporter.print_record(record)

    @staticmethod
    def print_record(record: ReportRecord):
        # Records hold escaped text; the terminal gets it back verbatim
        click.echo(f"    --- {record.method} {html.unescape(record.url)} "
                   f"{record.status} {html.unescape(record.status_text)} ({record.duration_ms}ms)")
        click.echo(f"    Headers: {html.unescape(record.headers_display)}")
        click.echo(f"    Body ({record.body_format}):")
        click.echo(html.unescape(record.body_display))

    @staticmethod
    def print_checklist(tracker: VerificationTracker):
        click.secho("\nVerification checklist:", bold=True)
        for item in ChecklistItem:
            verified = tracker.is_verified(item)
            click.secho(f"    [{'x' if verified else ' '}] {item.value}", fg="green" if verified else None)

    @staticmethod
    def save_json(reports: Iterable[ScenarioReport], output_path: str,
                  tracker: Optional[VerificationTracker] = None):
        data = {"reports": [r.to_dict() for r in reports]}
        if tracker is not None:
            data["verified"] = sorted(tracker.verified)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    @staticmethod
    def _record_html(record: ReportRecord) -> str:
        # Record fields are already escaped by build_report
        truncated = " (truncated)" if record.truncated else ""
        return f"""
        <div class="record">
          <p><code>{record.method}</code> {record.url}
             <span class="status-{record.status_class}">{record.status} {record.status_text}</span>
             {record.duration_ms}ms</p>
          <details><summary>Headers</summary><pre>{record.headers_display}</pre></details>
          <p>Body ({record.body_format}{truncated}):</p>
          <pre>{record.body_display}</pre>
        </div>"""

    @staticmethod
    def generate_html_report(reports: List[ScenarioReport], output_path: str,
                             tracker: Optional[VerificationTracker] = None):
        """
        Write a standalone HTML page for the given scenario reports.
        Every piece of server-provided text is escaped.
        """
        sections = []
        for report in reports:
            verdict = report.verdict.value
            summary = "".join(f"<li>{html.escape(line)}</li>" for line in report.summary)
            error = f'<p class="error">{html.escape(report.error)}</p>' if report.error else ""
            records = "".join(Reporter._record_html(r) for r in report.records)
            sections.append(f"""
      <div class="scenario">
        <h2>{html.escape(report.title)} <span class="verdict {verdict}">{verdict}</span></h2>
        {error}
        <ul>{summary}</ul>
        {records}
      </div>""")

        checklist = ""
        if tracker is not None:
            items = "".join(
                f'<li class="{"verified" if tracker.is_verified(item) else "pending"}">{item.value}</li>'
                for item in ChecklistItem
            )
            checklist = f'<h2>Verification checklist</h2><ul class="checklist">{items}</ul>'

        generated = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        content = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>HPD Probe Report</title>
  <style>{HTML_STYLE}</style>
</head>
<body>
  <h1>HPD Probe Report</h1>
  <p>Generated {generated} - {len(reports)} scenarios</p>
  {"".join(sections)}
  {checklist}
</body>
</html>
"""
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(content)
