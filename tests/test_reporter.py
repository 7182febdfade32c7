"""
Test report rendering.
"""
import json
import os
import tempfile
from hpd.logic.report import build_report
from hpd.models import ScenarioReport, Verdict
from hpd.session import ChecklistItem, VerificationTracker
from hpd.utils.reporter import Reporter


def sample_reports(make_result):
    record = build_report("http://victim/api/status",
                          make_result(status=500, body=b"<script>alert('x')</script>"), 12)
    return [
        ScenarioReport(scenario="server-error", title="500 Internal Server Error test", verdict=Verdict.SUCCESS,
                       summary=["GET /api/error -> 500 <b>Internal</b>"], records=[record]),
        ScenarioReport(scenario="cache", title="cache failed", verdict=Verdict.ERROR,
                       error="NetworkError for http://victim/style.css: refused"),
    ]


def test_html_report_generation(make_result):
    tracker = VerificationTracker()
    tracker.mark_verified(ChecklistItem.SERVER_STATUS)

    with tempfile.NamedTemporaryFile(mode='w', suffix='.html', delete=False) as f:
        output_path = f.name

    try:
        Reporter.generate_html_report(sample_reports(make_result), output_path, tracker)

        with open(output_path, 'r', encoding='utf-8') as f:
            html_content = f.read()

        assert 'HPD Probe Report' in html_content
        assert '500 Internal Server Error test' in html_content
        assert 'status-5xx' in html_content
        assert '<script>alert' not in html_content
        assert '&lt;script&gt;' in html_content
        assert '&lt;b&gt;Internal&lt;/b&gt;' in html_content
        assert 'refused' in html_content
        assert '<li class="verified">server-status</li>' in html_content
        assert '<li class="pending">keep-alive</li>' in html_content
    finally:
        if os.path.exists(output_path):
            os.remove(output_path)


def test_json_output(make_result):
    tracker = VerificationTracker()
    tracker.mark_verified(ChecklistItem.KEEP_ALIVE)

    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        output_path = f.name

    try:
        Reporter.save_json(sample_reports(make_result), output_path, tracker)
        with open(output_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    finally:
        os.remove(output_path)

    assert [r["verdict"] for r in data["reports"]] == ["success", "error"]
    assert data["reports"][0]["records"][0]["status_class"] == "5xx"
    assert data["verified"] == ["keep-alive"]


def test_console_output(make_result, capsys):
    report = sample_reports(make_result)[0]

    Reporter.print_report(report, show_bodies=True)

    out = capsys.readouterr().out
    assert "500 Internal Server Error test [SUCCESS]" in out
    assert "<script>alert('x')</script>" in out
