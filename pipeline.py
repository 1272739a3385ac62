import asyncio
import logging

from errors import VerificationTimeout
from models import VerificationRequest, VerificationResult

log = logging.getLogger(__name__)


class VerificationPipeline:
    """Runs one callback end to end: collect, notify, then hand out roles.

    Collection and notification share one deadline and either of them can
    fail the request. Role provisioning only runs after the notification went
    out and never fails the request.
    """

    def __init__(self, aggregator, notifier, provisioner, deadline: float = 30.0):
        self.aggregator = aggregator
        self.notifier = notifier
        self.provisioner = provisioner
        self.deadline = deadline

    async def _verify(self, request: VerificationRequest):
        record = await self.aggregator.aggregate(request)
        await self.notifier.deliver(record)
        return record

    async def run(self, request: VerificationRequest) -> VerificationResult:
        try:
            record = await asyncio.wait_for(self._verify(request), timeout=self.deadline)
        except asyncio.TimeoutError:
            raise VerificationTimeout(f"verification exceeded {self.deadline:g}s") from None

        report = await self.provisioner.provision(record.identity.id)
        log.info(
            "Verified %s: %d guild(s) granted, %d skipped, %d failed",
            record.identity.id,
            len(report.assigned),
            len(report.skipped),
            len(report.failed),
        )
        return VerificationResult(record=record, report=report)
