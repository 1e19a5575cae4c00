"""Usage accounting: quota views over stored records and the two mutation paths."""

from genquota.models import BillingStatus, UsageRecord, UsageView
from genquota.services.usage_store import UsageStore


def build_usage_view(record: UsageRecord, free_limit: int) -> UsageView:
    """Derive the admission decision for a record. Pure, no I/O."""
    remaining_free = max(0, free_limit - record.generated_count)
    has_active_subscription = record.billing_status == BillingStatus.ACTIVE

    return UsageView(
        user_id=record.user_id,
        generated_count=record.generated_count,
        free_limit=free_limit,
        remaining_free=remaining_free,
        billing_status=record.billing_status,
        has_active_subscription=has_active_subscription,
        can_generate=has_active_subscription or remaining_free > 0,
    )


class UsageService:
    """
    Reads and mutates usage through the store.

    ``generated_count`` only grows through ``record_generation`` and
    ``billing_status`` only changes through ``set_billing_status``. The free
    allowance never resets.
    """

    def __init__(self, store: UsageStore, free_limit: int) -> None:
        self.store = store
        self.free_limit = free_limit

    def view(self, record: UsageRecord) -> UsageView:
        return build_usage_view(record, self.free_limit)

    async def get_view(self, user_id: str) -> UsageView:
        record = await self.store.get(user_id)
        return self.view(record)

    async def record_generation(self, user_id: str) -> UsageRecord:
        return await self.store.update(
            user_id,
            lambda record: record.model_copy(
                update={"generated_count": record.generated_count + 1}
            ),
        )

    async def set_billing_status(
        self,
        user_id: str,
        status: BillingStatus,
        customer_id: str | None = None,
        subscription_id: str | None = None,
    ) -> UsageRecord:
        """Set (not toggle) the billing status; replays leave the same state."""
        changes: dict = {"billing_status": status}
        if customer_id:
            changes["provider_customer_id"] = customer_id
        if subscription_id:
            changes["provider_subscription_id"] = subscription_id

        return await self.store.update(
            user_id, lambda record: record.model_copy(update=changes)
        )
