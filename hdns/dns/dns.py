from ..logger import logger
from .types import ProviderRecord, Zone


class ProviderClient:
    """
    abstract class for DNS provider clients

    A client is bound to one API token. Transport failures raise
    ProviderTransportError, errors reported by the provider raise
    ProviderAPIError.
    """

    async def find_record(self, zone_id: str, name: str) -> ProviderRecord | None:
        """
        Look up a record by zone and name.

        Returns:
            The provider record, or None if the zone has no such record
        """
        ...

    async def create_record(self, record: ProviderRecord) -> None: ...

    async def update_record(self, record: ProviderRecord) -> None: ...

    async def list_zones(self) -> list[Zone]: ...

    async def close(self) -> None: ...

    async def upsert_record(
        self, zone_id: str, record_type: str, name: str, value: str, ttl: int
    ) -> ProviderRecord:
        """
        Point a host record at a value, creating it when missing.

        This is the common find-then-create-or-update protocol; the lookup
        and the write are separate calls so each step can be observed.

        Args:
            zone_id: Provider zone identifier
            record_type: Record type, e.g. "A"
            name: Host label relative to the zone
            value: New record value
            ttl: New time to live

        Returns:
            The record as written
        """
        existing = await self.find_record(zone_id, name)
        if existing is None:
            record = ProviderRecord(
                zone_id=zone_id, type=record_type, name=name, value=value, ttl=ttl
            )
            logger.info(f"creating {record_type} record {name} in zone {zone_id}")
            await self.create_record(record)
            return record

        existing.value = value
        existing.ttl = ttl
        logger.info(f"updating {existing.type} record {name} in zone {zone_id}")
        await self.update_record(existing)
        return existing
