"""Property and property detail persistence."""

from typing import Any
from uuid import UUID

from supabase import Client

from hostenly.core.errors import PersistenceError, PropertyNotFoundError
from hostenly.core.logging import get_logger
from hostenly.core.schemas_messaging import Property, PropertyDetails
from hostenly.db.supabase_client import is_unique_violation

logger = get_logger(__name__)

PROPERTY_COLUMNS = "*, property_details(*)"


def _to_property(row: dict[str, Any]) -> Property:
    """Build a Property from a row with an embedded `property_details` relation."""
    row = dict(row)
    details = row.pop("property_details", None)
    # One-to-one embeds come back as an object, older PostgREST returns a list
    if isinstance(details, list):
        details = details[0] if details else None
    row["details"] = PropertyDetails.model_validate(details or {})
    return Property.model_validate(row)


class PropertyStore:
    """Access to `properties` and `property_details`."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_by_channel_address(self, channel_address: str) -> Property | None:
        """Resolve the property registered on a channel address."""
        try:
            response = (
                self.supabase.table("properties")
                .select(PROPERTY_COLUMNS)
                .eq("channel_address", channel_address)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to resolve property for {channel_address}: {e}")
            raise PersistenceError(f"Property lookup failed: {e}") from e

        if not response.data:
            return None
        return _to_property(response.data[0])

    def get_property(self, property_id: UUID) -> Property:
        """
        Fetch a property by id.

        Raises:
            PropertyNotFoundError: If no such property exists
        """
        try:
            response = (
                self.supabase.table("properties")
                .select(PROPERTY_COLUMNS)
                .eq("id", str(property_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch property {property_id}: {e}")
            raise PersistenceError(f"Property fetch failed: {e}") from e

        if not response.data:
            raise PropertyNotFoundError(f"Property not found: {property_id}")
        return _to_property(response.data[0])

    def list_properties(self, account_id: UUID) -> list[Property]:
        """List every property owned by an account."""
        try:
            response = (
                self.supabase.table("properties")
                .select(PROPERTY_COLUMNS)
                .eq("account_id", str(account_id))
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list properties for account {account_id}: {e}")
            raise PersistenceError(f"Property list failed: {e}") from e

        return [_to_property(row) for row in response.data or []]

    def create_property(self, account_id: UUID, name: str, channel_address: str) -> Property:
        """
        Register a new property on a channel address.

        Raises:
            ValueError: If the channel address is already registered
        """
        try:
            response = (
                self.supabase.table("properties")
                .insert(
                    {
                        "account_id": str(account_id),
                        "name": name,
                        "channel_address": channel_address,
                    }
                )
                .execute()
            )
        except Exception as e:
            if is_unique_violation(e):
                raise ValueError(f"Channel address already registered: {channel_address}") from e
            logger.error(f"Failed to create property for account {account_id}: {e}")
            raise PersistenceError(f"Property insert failed: {e}") from e

        if not response.data:
            raise PersistenceError("No data returned from create_property")

        prop = _to_property(response.data[0])
        logger.info(f"Created property {prop.id} on {channel_address}")
        return prop

    def upsert_details(self, property_id: UUID, details: PropertyDetails) -> PropertyDetails:
        """Create or replace the detail record of a property."""
        row = {"property_id": str(property_id), **details.model_dump()}
        try:
            response = (
                self.supabase.table("property_details")
                .upsert(row, on_conflict="property_id")
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to upsert details for property {property_id}: {e}")
            raise PersistenceError(f"Property details upsert failed: {e}") from e

        if not response.data:
            raise PersistenceError("No data returned from upsert_details")

        logger.info(f"Updated details for property {property_id}")
        return PropertyDetails.model_validate(response.data[0])

    def set_active(self, property_id: UUID, is_active: bool) -> Property:
        """Enable or disable automated replies for a property."""
        try:
            (
                self.supabase.table("properties")
                .update({"is_active": is_active})
                .eq("id", str(property_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to update status of property {property_id}: {e}")
            raise PersistenceError(f"Property status update failed: {e}") from e

        logger.info(f"Property {property_id} is_active={is_active}")
        return self.get_property(property_id)

    def delete_property(self, property_id: UUID) -> None:
        """Delete a property; details, documents, chunks and conversations cascade."""
        try:
            self.supabase.table("properties").delete().eq("id", str(property_id)).execute()
        except Exception as e:
            logger.error(f"Failed to delete property {property_id}: {e}")
            raise PersistenceError(f"Property delete failed: {e}") from e

        logger.info(f"Deleted property {property_id}")
