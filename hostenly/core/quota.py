"""Per-account message quota admission and consumption.

Policy: admit iff the account exists, has a positive limit and
`message_count < message_limit`. Each persisted message (guest turn, reply,
or manual host message) consumes one unit. Consumption is an atomic
increment at the store; the gate never writes a value it read.
"""

import asyncio
from uuid import UUID

from hostenly.core.logging import get_logger
from hostenly.core.schemas_messaging import Account
from hostenly.db.accounts import AccountStore

logger = get_logger(__name__)

LIMIT_REACHED_NOTICE = (
    "I apologize, but this property has reached its message limit. "
    "Please contact the host directly."
)


class QuotaGate:
    """Admission control over an account's message counter."""

    def __init__(self, accounts: AccountStore):
        self.accounts = accounts

    @staticmethod
    def admit(account: Account | None) -> bool:
        """True if the account may process one more inbound message."""
        if account is None:
            return False
        if account.message_limit <= 0:
            return False
        return account.message_count < account.message_limit

    def check(self, account_id: UUID) -> bool:
        """Load the account and apply the admission policy."""
        account = self.accounts.get_account(account_id)
        admitted = self.admit(account)
        if not admitted:
            logger.info(
                f"Quota denied for account {account_id}",
                extra={
                    "extra_data": {
                        "message_count": account.message_count if account else None,
                        "message_limit": account.message_limit if account else None,
                    }
                },
            )
        return admitted

    def consume(self, account_id: UUID, n: int = 1) -> int:
        """Atomically add `n` units to the account's counter; returns the new count."""
        if n <= 0:
            raise ValueError(f"Quota consumption must be positive, got {n}")
        return self.accounts.increment_message_count(account_id, n)

    async def check_async(self, account_id: UUID) -> bool:
        return await asyncio.to_thread(self.check, account_id)

    async def consume_async(self, account_id: UUID, n: int = 1) -> int:
        return await asyncio.to_thread(self.consume, account_id, n)
