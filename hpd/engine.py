from typing import Iterable, List, Optional
from hpd.config import ProbeConfig
from hpd.errors import ScenarioAborted
from hpd.http_client import HttpClient
from hpd.logic.mime import MimeResource
from hpd.logic.redirect import looks_like_redirect
from hpd.logic.scenarios import Scenario, ScenarioRunner
from hpd.models import FailureKind, ScenarioReport, Verdict
from hpd.session import ProbeSession
from hpd.utils.logger import logger


class Engine:
    def __init__(self, config: Optional[ProbeConfig] = None, session: Optional[ProbeSession] = None):
        self.config = config or ProbeConfig()
        self.session = session or ProbeSession()
        self.runner = ScenarioRunner(self.config, self.session)
        self.stats = {
            'scenarios': 0,
            'success': 0,
            'warnings': 0,
            'errors': 0
        }

    def _client(self) -> HttpClient:
        return HttpClient(timeout=self.config.timeout, proxy=self.config.proxy,
                          headers=self.config.headers, user_agent=self.config.user_agent)

    async def run(self, scenarios: Optional[Iterable[Scenario]] = None) -> List[ScenarioReport]:
        """
        Main execution loop.
        Scenarios run one after another on a single client session.
        """
        selected = list(Scenario) if scenarios is None else [Scenario(s) for s in scenarios]
        logger.info(f"Running {len(selected)} scenarios against {self.config.base_url}")

        reports = []
        async with self._client() as client:
            for scenario in selected:
                reports.append(await self._guarded(scenario.value, self._dispatch(client, scenario)))

        logger.info(f"Run complete: {self.stats['success']}/{self.stats['scenarios']} passed, "
                    f"{self.stats['warnings']} warnings, {self.stats['errors']} errors, "
                    f"{len(self.session.tracker)} checklist items verified")
        return reports

    def _dispatch(self, client: HttpClient, scenario: Scenario):
        if scenario is Scenario.CACHE:
            return self.runner.cache(client)
        if scenario is Scenario.GET:
            return self.runner.get(client)
        if scenario is Scenario.POST:
            return self.runner.post(client)
        if scenario is Scenario.NOT_ALLOWED:
            return self.runner.not_allowed(client)
        if scenario is Scenario.SERVER_ERROR:
            return self.runner.server_error(client)
        if scenario is Scenario.REDIRECT:
            return self.runner.redirect(client)
        if scenario is Scenario.MIME:
            return self.runner.mime(client)
        return self.runner.keep_alive(client)

    async def _guarded(self, name: str, coro) -> ScenarioReport:
        self.stats['scenarios'] += 1
        logger.info(f"Scenario {name} started")
        try:
            report = await coro
        except ScenarioAborted as e:
            details = {"url": e.failure.url, "status": e.failure.status}
            if e.failure.kind is FailureKind.PROTOCOL_MISMATCH:
                logger.warning(f"Scenario {name} stopped: {e}")
                self.stats['warnings'] += 1
                return ScenarioReport(scenario=name, title=f"{name} incomplete", verdict=Verdict.WARNING,
                                      summary=[str(e)], details=details)
            logger.error(f"Scenario {name} aborted: {e}")
            self.stats['errors'] += 1
            return ScenarioReport(scenario=name, title=f"{name} failed", verdict=Verdict.ERROR,
                                  error=str(e), details=details)

        if report.verdict is Verdict.SUCCESS:
            self.stats['success'] += 1
        elif report.verdict is Verdict.WARNING:
            self.stats['warnings'] += 1
        logger.info(f"Scenario {name} finished: {report.verdict.value}")
        return report

    async def probe_endpoint(self, path: str) -> ScenarioReport:
        """GET a single path; paths that look like redirect endpoints are traced."""
        async with self._client() as client:
            if looks_like_redirect(path):
                return await self._guarded("redirect", self.runner.redirect(client, paths=(path,)))
            return await self._guarded("endpoint", self.runner.endpoint(client, path))

    async def trace(self, path: str) -> ScenarioReport:
        async with self._client() as client:
            return await self._guarded("redirect", self.runner.redirect(client, paths=(path,)))

    async def cache(self, path: str) -> ScenarioReport:
        async with self._client() as client:
            return await self._guarded("cache", self.runner.cache(client, path))

    async def mime(self, keys: Optional[Iterable[str]] = None) -> ScenarioReport:
        resources = [MimeResource.from_key(k) for k in keys] if keys is not None else None
        async with self._client() as client:
            return await self._guarded("mime", self.runner.mime(client, resources))
