"""
Daily reconciliation sweep.

Four independent passes, each safe to re-run. Subscriptions linked to a
processor subscription are left to webhooks in the first two passes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.lifecycle_service import (
    SubscriptionLifecycleService,
)

logger = get_logger(__name__)


@dataclass
class PassResult:
    processed: int = 0
    failed: int = 0


@dataclass
class SweepReport:
    started_at: datetime
    passes: Dict[str, PassResult] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return sum(result.failed for result in self.passes.values())

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "passes": {
                name: {"processed": result.processed, "failed": result.failed}
                for name, result in self.passes.items()
            },
        }


class SweepService:
    """Runs the scheduled correction passes."""

    def __init__(
        self,
        lifecycle: SubscriptionLifecycleService,
        subscription_repo: Optional[SubscriptionRepository] = None,
    ):
        self.lifecycle = lifecycle
        self.subscription_repo = subscription_repo or lifecycle.subscription_repo

    async def _run_pass(
        self,
        name: str,
        candidates: List[Subscription],
        action: Callable[[Subscription], Awaitable[bool]],
    ) -> PassResult:
        result = PassResult()
        for subscription in candidates:
            try:
                if await action(subscription):
                    result.processed += 1
            except Exception as e:
                result.failed += 1
                logger.error(
                    f"Sweep pass {name} failed for subscription {subscription.id}: {str(e)}",
                    extra={
                        "sweep_pass": name,
                        "subscription_id": subscription.id,
                        "error": str(e),
                    },
                    exc_info=True,
                )
        return result

    @trace_span
    async def run(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or datetime.now(timezone.utc)
        report = SweepReport(started_at=now)
        repo = self.subscription_repo

        async def expire(subscription: Subscription) -> bool:
            result = await self.lifecycle.expire_missed_renewal(subscription.id, now=now)
            return result.changed

        async def expire_trial(subscription: Subscription) -> bool:
            result = await self.lifecycle.expire_trial(subscription.id, now=now)
            return result.changed

        async def end(subscription: Subscription) -> bool:
            result = await self.lifecycle.end(subscription.id, now=now)
            return result.changed

        report.passes["missed_renewals"] = await self._run_pass(
            "missed_renewals", await repo.find_missed_renewals(now), expire
        )
        report.passes["expired_trials"] = await self._run_pass(
            "expired_trials", await repo.find_expired_trials(now), expire_trial
        )
        report.passes["matured_cancellations"] = await self._run_pass(
            "matured_cancellations", await repo.find_matured_cancellations(now), end
        )
        report.passes["renewal_reminders"] = await self._run_pass(
            "renewal_reminders",
            await repo.find_upcoming_renewals(
                now, days=settings.renewal_reminder_days
            ),
            self.lifecycle.send_renewal_reminder,
        )

        logger.info(
            "Subscription sweep finished",
            extra={"report": report.to_dict(), "failed": report.failed},
        )
        return report
