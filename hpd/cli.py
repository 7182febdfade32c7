import click
import asyncio
from hpd import __version__
from hpd.config import ProbeConfig
from hpd.engine import Engine
from hpd.http_client import CacheBypassError
from hpd.logic.mime import MimeResource
from hpd.logic.scenarios import Scenario
from hpd.models import Verdict
from hpd.utils.logger import setup_logger, logger
from hpd.utils.reporter import Reporter

SCENARIO_NAMES = [s.value for s in Scenario]
MIME_KEYS = [r.key for r in MimeResource]


def parse_headers(header):
    custom_headers = {}
    for h in header or ():
        if ':' in h:
            key, value = h.split(':', 1)
            custom_headers[key.strip()] = value.strip()
        else:
            logger.warning(f"Invalid header format: {h}. Expected 'Key: Value'")
    return custom_headers


def target_options(f):
    f = click.option('--header', '-H', multiple=True,
                     help="Custom header (e.g. 'Cookie: foo=bar'). Can be used multiple times.")(f)
    f = click.option('--timeout', '-t', type=float, default=None, help="Request timeout in seconds.")(f)
    f = click.option('--base-url', '-u', envvar='HPD_BASE_URL', default=None,
                     help="Target server base URL (default: $HPD_BASE_URL or http://localhost:8080).")(f)
    return f


def build_config(base_url, timeout, header, **overrides) -> ProbeConfig:
    config = ProbeConfig(**overrides)
    if base_url:
        config.base_url = base_url.rstrip('/')
    if timeout is not None:
        config.timeout = timeout
    config.headers.update(parse_headers(header))
    return config


def _run(coro):
    try:
        return asyncio.run(coro)
    except CacheBypassError as e:
        raise click.UsageError(str(e))


def show(report, bodies=True):
    Reporter.print_report(report, show_bodies=bodies)
    if report.verdict is Verdict.ERROR:
        raise SystemExit(1)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help="Enable verbose logging.")
@click.option('--quiet', '-q', is_flag=True, help="Suppress informational output.")
@click.option('--log-level', '-l', help="Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). overrides -v and -q.")
def cli(verbose, quiet, log_level):
    """
    HPD (HTTP Protocol Diagnostics) - probe a server and report how it speaks HTTP.
    """
    try:
        setup_logger(verbose, quiet, log_level)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level")


@cli.command()
@target_options
@click.option('--scenario', '-s', multiple=True, type=click.Choice(SCENARIO_NAMES),
              help="Scenario to run. Can be used multiple times (default: all).")
@click.option('--bodies', is_flag=True, help="Print response headers and bodies.")
@click.option('--output', '-o', help="File to save JSON results to.")
@click.option('--html', 'html_output', help="File to save an HTML report to.")
def run(base_url, timeout, header, scenario, bodies, output, html_output):
    """
    Run probe scenarios against the target server.
    """
    config = build_config(base_url, timeout, header)
    engine = Engine(config)
    reports = _run(engine.run(scenario or None))

    for report in reports:
        Reporter.print_report(report, show_bodies=bodies)
    Reporter.print_checklist(engine.session.tracker)

    if output:
        try:
            Reporter.save_json(reports, output, engine.session.tracker)
            logger.info(f"Results saved to {output}")
        except IOError as e:
            logger.error(f"Failed to write results to {output}: {e}")
    if html_output:
        try:
            Reporter.generate_html_report(reports, html_output, engine.session.tracker)
            logger.info(f"HTML report saved to {html_output}")
        except IOError as e:
            logger.error(f"Failed to write HTML report to {html_output}: {e}")

    if any(r.verdict is Verdict.ERROR for r in reports):
        raise SystemExit(1)


@cli.command()
@target_options
@click.argument('path')
def get(base_url, timeout, header, path):
    """
    GET a single PATH and show the response. Redirect endpoints are traced.
    """
    engine = Engine(build_config(base_url, timeout, header))
    show(_run(engine.probe_endpoint(path)))


@cli.command()
@target_options
@click.option('--inferred', is_flag=True,
              help="Let the client follow redirects and infer statuses from path markers.")
@click.argument('path')
def trace(base_url, timeout, header, inferred, path):
    """
    Trace the redirect chain starting at PATH.
    """
    config = build_config(base_url, timeout, header, manual_redirects=not inferred)
    engine = Engine(config)
    show(_run(engine.trace(path)))


@cli.command()
@target_options
@click.argument('path', default='/style.css')
def cache(base_url, timeout, header, path):
    """
    Check conditional GET (Last-Modified / If-Modified-Since) on PATH.
    """
    engine = Engine(build_config(base_url, timeout, header))
    show(_run(engine.cache(path)))


@cli.command()
@target_options
@click.option('--kind', '-k', multiple=True, type=click.Choice(MIME_KEYS),
              help="Resource kind to check. Can be used multiple times (default: all).")
def mime(base_url, timeout, header, kind):
    """
    Check the Content-Type of the known static resources.
    """
    engine = Engine(build_config(base_url, timeout, header))
    show(_run(engine.mime(kind or None)), bodies=False)


if __name__ == "__main__":
    cli()
