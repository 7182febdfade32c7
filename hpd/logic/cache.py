from typing import Optional, Union
from hpd.http_client import HttpClient
from hpd.models import CacheOutcome, CacheValidationRun, ProbeFailure
from hpd.session import ChecklistItem, VerificationTracker
from hpd.utils.logger import logger


class CacheValidationProbe:
    """
    Conditional GET in two requests: fetch the resource bypassing any cache,
    then replay its Last-Modified value as If-Modified-Since.
    """

    def __init__(self, tracker: Optional[VerificationTracker] = None):
        self.tracker = tracker

    async def run(self, client: HttpClient, url: str) -> Union[CacheValidationRun, ProbeFailure]:
        logger.info(f"Checking conditional GET support on {url}")

        # 1. Unconditional request
        initial = await client.execute(url, bypass_cache=True)
        if isinstance(initial, ProbeFailure):
            return initial

        last_modified = initial.header("Last-Modified")
        logger.debug(f"Initial response: {initial.status}, {len(initial.body)} bytes, Last-Modified: {last_modified}")
        if not last_modified:
            logger.warning(f"No Last-Modified header on {url}; conditional request not possible")
            return CacheValidationRun(initial=initial, last_modified=None, conditional=None,
                                      outcome=CacheOutcome.UNSUPPORTED)

        # 2. Conditional request with the exact validator
        conditional = await client.execute(url, headers={"If-Modified-Since": last_modified})
        if isinstance(conditional, ProbeFailure):
            return conditional

        if conditional.status == 304:
            outcome = CacheOutcome.NOT_MODIFIED
            if self.tracker is not None:
                self.tracker.mark_verified(ChecklistItem.CLIENT_REDIRECT)
                self.tracker.mark_verified(ChecklistItem.SERVER_STATUS)
            logger.info(f"304 Not Modified for {url}, saved {len(initial.body)} bytes")
        else:
            outcome = CacheOutcome.UPDATED
            logger.info(f"Resource {url} returned {conditional.status} to conditional request")

        return CacheValidationRun(initial=initial, last_modified=last_modified,
                                  conditional=conditional, outcome=outcome)
