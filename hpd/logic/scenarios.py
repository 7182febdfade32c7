import dataclasses
import time
import uuid
from enum import Enum
from typing import List, Optional
from hpd.config import ProbeConfig
from hpd.errors import ScenarioAborted
from hpd.http_client import HttpClient
from hpd.logic.auth import ApiReply, AuthClient
from hpd.logic.cache import CacheValidationProbe
from hpd.logic.mime import MimeValidator
from hpd.logic.redirect import RedirectChainTracer, RedirectMarker, normalized_path, reason_for
from hpd.logic.report import build_report
from hpd.models import CacheOutcome, ProbeFailure, ProbeResult, RedirectTrace, ScenarioReport, Verdict
from hpd.session import ChecklistItem, ProbeSession
from hpd.utils.logger import logger


class Scenario(str, Enum):
    CACHE = "cache"
    GET = "get"
    POST = "post"
    NOT_ALLOWED = "not-allowed"
    SERVER_ERROR = "server-error"
    REDIRECT = "redirect"
    MIME = "mime"
    KEEP_ALIVE = "keep-alive"


CACHE_TEST_PATH = "/style.css"
GET_TEST_PATHS = ("/api/status", "/index.html", "/style.css")
KEEP_ALIVE_PATHS = ("/api/status", "/style.css", "/app.js", "/index.html", "/data.json")
REDIRECT_TEST_PATHS = ("/permanent-redirect", "/temporary-redirect")
NOT_ALLOWED_PATH = "/index.html"
SERVER_ERROR_PATH = "/api/error"
GET_PREVIEW_LIMIT = 200
TEST_PASSWORD = "testpass123"


def require(outcome, step: Optional[str] = None):
    """Unwrap a probe outcome, aborting the scenario on failure."""
    if isinstance(outcome, ProbeFailure):
        raise ScenarioAborted(outcome, step)
    return outcome


def _line(result: ProbeResult, path: str) -> str:
    return f"{result.method} {path} -> {result.status} {result.status_text} ({result.duration_ms}ms)"


class ScenarioRunner:
    """One method per scenario; every request is awaited before the next is sent."""

    def __init__(self, config: ProbeConfig, session: ProbeSession):
        self.config = config
        self.session = session
        self.tracker = session.tracker

    async def cache(self, client: HttpClient, path: str = CACHE_TEST_PATH) -> ScenarioReport:
        url = self.config.url_for(path)
        probe = CacheValidationProbe(tracker=self.tracker)
        run = require(await probe.run(client, url), "cache validation")

        report = ScenarioReport(scenario=Scenario.CACHE.value, title=f"304 cache validation - {path}",
                                verdict=Verdict.INFO)
        report.records.append(build_report(url, run.initial, run.initial.duration_ms))
        report.summary.append(f"Step 1: {_line(run.initial, path)}")
        report.summary.append(f"Last-Modified: {run.last_modified or '(none)'}")
        report.summary.append(f"Content-Type: {run.initial.header('Content-Type')}")
        report.summary.append(f"Content-Length: {len(run.initial.body)} bytes")
        report.details.update({"outcome": run.outcome.value, "last_modified": run.last_modified,
                               "initial_bytes": len(run.initial.body), "saved_bytes": run.saved_bytes})

        if run.outcome is CacheOutcome.UNSUPPORTED:
            report.verdict = Verdict.WARNING
            report.summary.append("Conditional request not possible: server sent no Last-Modified header")
            return report

        conditional = run.conditional
        if run.outcome is CacheOutcome.NOT_MODIFIED:
            # A 304 carries no body whatever the transport read
            conditional = dataclasses.replace(conditional, body=b"")
        report.records.append(build_report(url, conditional, conditional.duration_ms))
        report.summary.append(f"Step 2: {_line(conditional, path)} with If-Modified-Since: {run.last_modified}")

        if run.outcome is CacheOutcome.NOT_MODIFIED:
            report.verdict = Verdict.SUCCESS
            report.summary.append(f"304 Not Modified: saved {run.saved_bytes} bytes -> 0 bytes")
        else:
            report.summary.append(f"Resource updated ({conditional.status}), "
                                  f"body size: {len(run.conditional_body)} bytes")
        return report

    async def get(self, client: HttpClient) -> ScenarioReport:
        report = ScenarioReport(scenario=Scenario.GET.value, title="GET request test", verdict=Verdict.SUCCESS)
        for path in GET_TEST_PATHS:
            url = self.config.url_for(path)
            resp = require(await client.get(url, bypass_cache=True), f"GET {path}")
            record = build_report(url, resp, resp.duration_ms)
            report.records.append(record)
            preview = resp.text[:GET_PREVIEW_LIMIT] + ("..." if len(resp.text) > GET_PREVIEW_LIMIT else "")
            report.summary.append(f"{_line(resp, path)} Content-Type: {resp.header('Content-Type')}")
            report.details.setdefault("previews", {})[path] = preview
        report.summary.append(f"Fetched {len(GET_TEST_PATHS)} resources of different types")
        self.tracker.mark_verified(ChecklistItem.SERVER_METHODS)
        self.tracker.mark_verified(ChecklistItem.CLIENT_REQUEST)
        return report

    async def post(self, client: HttpClient) -> ScenarioReport:
        username = f"testuser_{uuid.uuid4().hex[:8]}"
        auth = AuthClient(self.config, self.session)
        report = ScenarioReport(scenario=Scenario.POST.value, title="POST request test", verdict=Verdict.INFO)

        replies: List[ApiReply] = []
        for path, call in (("/api/register", auth.register), ("/api/login", auth.login)):
            reply = require(await call(client, username, TEST_PASSWORD), f"POST {path}")
            replies.append(reply)
            report.records.append(build_report(self.config.url_for(path), reply.result, reply.result.duration_ms))
            report.summary.append(_line(reply.result, path))

        register, login = replies
        login_note = "token received" if login.payload.get("token") else login.message
        report.summary.append(f"Register: {register.message}")
        report.summary.append(f"Login: {login_note}")
        report.details["username"] = username
        if register.ok and login.ok:
            report.verdict = Verdict.SUCCESS
        self.tracker.mark_verified(ChecklistItem.SERVER_METHODS)
        self.tracker.mark_verified(ChecklistItem.CLIENT_REQUEST)
        return report

    async def not_allowed(self, client: HttpClient) -> ScenarioReport:
        url = self.config.url_for(NOT_ALLOWED_PATH)
        resp = require(await client.post(url, body={"test": "data"}), f"POST {NOT_ALLOWED_PATH}")
        report = ScenarioReport(scenario=Scenario.NOT_ALLOWED.value, title="405 Method Not Allowed test",
                                verdict=Verdict.WARNING)
        report.records.append(build_report(url, resp, resp.duration_ms))
        report.summary.append(_line(resp, NOT_ALLOWED_PATH))
        if resp.status == 405:
            report.verdict = Verdict.SUCCESS
            report.summary.append("Static resource rejected POST with 405 Method Not Allowed")
            self.tracker.mark_verified(ChecklistItem.SERVER_STATUS)
        else:
            logger.warning(f"Expected 405 from POST {NOT_ALLOWED_PATH}, got {resp.status}")
            report.summary.append(f"Expected 405, got {resp.status}")
        return report

    async def server_error(self, client: HttpClient) -> ScenarioReport:
        url = self.config.url_for(SERVER_ERROR_PATH)
        resp = require(await client.get(url), f"GET {SERVER_ERROR_PATH}")
        report = ScenarioReport(scenario=Scenario.SERVER_ERROR.value, title="500 Internal Server Error test",
                                verdict=Verdict.INFO)
        report.records.append(build_report(url, resp, resp.duration_ms))
        report.summary.append(_line(resp, SERVER_ERROR_PATH))
        if resp.status == 500:
            report.verdict = Verdict.SUCCESS
            report.summary.append("Confirmed server-error demonstration: 500 Internal Server Error")
            self.tracker.mark_verified(ChecklistItem.SERVER_STATUS)
        elif resp.status == 404:
            report.verdict = Verdict.WARNING
            report.summary.append(f"{SERVER_ERROR_PATH} not found; the server lacks the error endpoint")
        else:
            report.summary.append(f"Returned status {resp.status}")
        return report

    async def redirect(self, client: HttpClient, paths=REDIRECT_TEST_PATHS) -> ScenarioReport:
        tracer = RedirectChainTracer(manual=self.config.manual_redirects, max_steps=self.config.max_redirects)
        report = ScenarioReport(scenario=Scenario.REDIRECT.value, title="Redirect chain trace", verdict=Verdict.SUCCESS)
        traces = []
        observed = False
        for path in paths:
            url = self.config.url_for(path)
            trace = require(await tracer.trace(client, url), f"trace {path}")
            observed = observed or trace.redirected
            traces.append(self._describe_trace(report, path, trace))
        report.details["traces"] = traces
        if report.verdict is Verdict.SUCCESS and observed:
            self.tracker.mark_verified(ChecklistItem.CLIENT_REDIRECT)
        return report

    def _describe_trace(self, report: ScenarioReport, path: str, trace: RedirectTrace) -> dict:
        expected = RedirectMarker.match(normalized_path(trace.url))
        for step in trace.steps:
            if step.is_redirect:
                status = step.inferred_status
                label = f"{status} {reason_for(status)}" if status is not None else "redirect (status unknown)"
                report.summary.append(f"Step {step.order}: GET {step.requested_url} -> {label} -> {step.inferred_location}")
            elif step.result is not None:
                report.summary.append(f"Step {step.order}: GET {step.requested_url} -> "
                                      f"{step.result.status} {step.result.status_text} ({step.result.duration_ms}ms)")
            if step.result is not None and not step.is_redirect:
                report.records.append(build_report(step.requested_url, step.result, step.result.duration_ms))

        first_status = trace.steps[0].inferred_status
        if expected is not None and first_status != expected.status:
            logger.warning(f"{path}: expected {expected.status}, observed {first_status}")
            report.summary.append(f"{path}: expected {expected.status} {expected.reason}, observed {first_status}")
            report.verdict = Verdict.WARNING
        if trace.cycle_detected:
            report.summary.append(f"{path}: redirect cycle detected")
            report.verdict = Verdict.WARNING
        if trace.truncated:
            report.summary.append(f"{path}: chain exceeded {len(trace.steps)} steps")
            report.verdict = Verdict.WARNING

        return {
            "url": trace.url,
            "mode": trace.mode.value,
            "cycle_detected": trace.cycle_detected,
            "truncated": trace.truncated,
            "steps": [
                {"order": s.order, "requested_url": s.requested_url, "resolved_url": s.resolved_url,
                 "inferred_status": s.inferred_status, "inferred_location": s.inferred_location,
                 "status": s.result.status if s.result is not None else None}
                for s in trace.steps
            ],
        }

    async def mime(self, client: HttpClient, resources=None) -> ScenarioReport:
        validator = MimeValidator(self.config)
        checks = require(await validator.check_all(client, resources), "MIME check")
        report = ScenarioReport(scenario=Scenario.MIME.value, title="MIME type test", verdict=Verdict.SUCCESS)
        for check in checks:
            mark = "OK" if check.matched else "MISMATCH"
            report.summary.append(f"[{mark}] {check.resource_key}: GET {check.url} -> {check.status}, "
                                  f"Content-Type: {check.observed_content_type or '(none)'} "
                                  f"(expected {check.expected_kind})")
            if not check.matched:
                report.verdict = Verdict.WARNING
        report.details["checks"] = [dataclasses.asdict(c) for c in checks]
        return report

    async def keep_alive(self, client: HttpClient, paths=KEEP_ALIVE_PATHS) -> ScenarioReport:
        report = ScenarioReport(scenario=Scenario.KEEP_ALIVE.value, title="Keep-Alive connection reuse test",
                                verdict=Verdict.SUCCESS)
        timeline = []
        overall_start = time.monotonic()
        for index, path in enumerate(paths, start=1):
            resp = require(await client.get(self.config.url_for(path), bypass_cache=True), f"GET {path}")
            elapsed_ms = int((time.monotonic() - overall_start) * 1000)
            entry = {
                "order": index,
                "url": path,
                "status": resp.status,
                "duration_ms": resp.duration_ms,
                "elapsed_ms": elapsed_ms,
                "connection": resp.header("Connection", "keep-alive"),
                "size": len(resp.body),
            }
            timeline.append(entry)
            report.summary.append(f"#{index} {path} {resp.status} {resp.duration_ms}ms {entry['size']}B")

        total_ms = int((time.monotonic() - overall_start) * 1000)
        average_ms = round(total_ms / len(paths)) if paths else 0
        connection = timeline[0]["connection"] if timeline else "keep-alive"
        report.summary.append(f"Requests: {len(paths)}, total: {total_ms}ms, average: {average_ms}ms/request, "
                              f"Connection: {connection}")
        report.details.update({"timeline": timeline, "total_ms": total_ms, "average_ms": average_ms,
                               "connection": connection})
        self.tracker.mark_verified(ChecklistItem.KEEP_ALIVE)
        return report

    async def endpoint(self, client: HttpClient, path: str) -> ScenarioReport:
        url = self.config.url_for(path)
        start = time.monotonic()
        resp: ProbeResult = require(await client.get(url), f"GET {path}")
        duration_ms = int((time.monotonic() - start) * 1000)
        verdict = Verdict.SUCCESS if resp.status < 400 else Verdict.WARNING
        report = ScenarioReport(scenario="endpoint", title=f"GET {path}", verdict=verdict)
        report.records.append(build_report(url, resp, duration_ms))
        report.summary.append(_line(resp, path))
        return report
