"""Account reads and atomic quota counter updates."""

from uuid import UUID

from supabase import Client

from hostenly.core.errors import PersistenceError
from hostenly.core.logging import get_logger
from hostenly.core.schemas_messaging import Account

logger = get_logger(__name__)


class AccountStore:
    """Access to the `accounts` table."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_account(self, account_id: UUID) -> Account | None:
        """Fetch an account by id, or None if it does not exist."""
        try:
            response = (
                self.supabase.table("accounts")
                .select("id, email, message_count, message_limit")
                .eq("id", str(account_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch account {account_id}: {e}")
            raise PersistenceError(f"Account fetch failed: {e}") from e

        if not response.data:
            return None
        return Account.model_validate(response.data[0])

    def increment_message_count(self, account_id: UUID, amount: int = 1) -> int:
        """
        Atomically add `amount` to the account's message counter.

        Runs as a single UPDATE ... SET message_count = message_count + n in the
        `increment_message_count` SQL function.

        Returns:
            The counter value after the increment
        """
        try:
            response = self.supabase.rpc(
                "increment_message_count",
                {"p_account_id": str(account_id), "p_amount": amount},
            ).execute()
        except Exception as e:
            logger.error(f"Failed to increment message count for account {account_id}: {e}")
            raise PersistenceError(f"Quota increment failed: {e}") from e

        new_count = response.data
        if isinstance(new_count, list):
            new_count = new_count[0] if new_count else None
        if isinstance(new_count, dict):
            new_count = new_count.get("message_count")
        if new_count is None:
            raise PersistenceError(f"Account not found for quota increment: {account_id}")

        logger.debug(f"Account {account_id} message_count is now {new_count}")
        return int(new_count)
