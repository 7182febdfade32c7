import logging
import pytest
from click.testing import CliRunner
from unittest.mock import AsyncMock, patch
from hpd.cli import cli, parse_headers
from hpd.models import ScenarioReport, Verdict


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    # CliRunner closes the stream the handler was bound to
    hpd_logger = logging.getLogger("hpd")
    for handler in list(hpd_logger.handlers):
        hpd_logger.removeHandler(handler)


def test_parse_headers():
    assert parse_headers(("X-A: 1", "bogus", "Cookie: a=b:c")) == {"X-A": "1", "Cookie": "a=b:c"}


def test_run_selected_scenarios():
    report = ScenarioReport(scenario="keep-alive", title="Keep-Alive connection reuse test", verdict=Verdict.SUCCESS,
                            summary=["Requests: 5"])
    with patch('hpd.cli.Engine.run', new=AsyncMock(return_value=[report])) as run:
        result = CliRunner().invoke(cli, ['-q', 'run', '-u', 'http://example.com', '-s', 'keep-alive'])

    assert result.exit_code == 0, result.output
    assert "Keep-Alive connection reuse test [SUCCESS]" in result.output
    assert "Verification checklist" in result.output
    assert run.await_args.args[0] == ('keep-alive',)


def test_error_report_exits_nonzero():
    report = ScenarioReport(scenario="cache", title="cache failed", verdict=Verdict.ERROR, error="refused")
    with patch('hpd.cli.Engine.cache', new=AsyncMock(return_value=report)):
        result = CliRunner().invoke(cli, ['-q', 'cache', '-u', 'http://example.com'])

    assert result.exit_code == 1
    assert "refused" in result.output


def test_unknown_scenario_rejected():
    result = CliRunner().invoke(cli, ['run', '-s', 'teapot'])
    assert result.exit_code == 2


def test_bad_log_level():
    result = CliRunner().invoke(cli, ['-l', 'LOUD', 'mime'])
    assert result.exit_code == 2


def test_conflicting_bypass_header_is_usage_error():
    result = CliRunner().invoke(cli, ['-q', 'cache', '-u', 'http://example.com', '-H', 'If-None-Match: "abc"'])

    assert result.exit_code == 2
    assert "conditional header" in result.output
