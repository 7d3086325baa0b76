"""
Record reconciliation

Keeps every managed record pointed at the current public address. One
cycle resolves the public IP, then checks each record against what DNS
currently serves and pushes an update to the provider when needed.
"""

import asyncio
from datetime import timedelta
from typing import Callable, Dict, List, Optional, assert_never

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import ComparisonPolicy, DNSSettings, settings
from ..db.crud.address import get_address
from ..db.crud.history import track_resolutions
from ..db.crud.record import get_record, link_record_address, list_records
from ..db.database import get_async_session
from ..errors import (
    NoConsensus,
    NoServersConfigured,
    RecordNotFoundError,
    ResolutionFailure,
    StorageError,
)
from ..logger import logger
from ..models import Address, Record, utcnow
from .address import PublicIPResolver, parse_ipv4, update_address
from .consensus import reduce
from .dns import ProviderClient
from .hetzner import HetznerClient
from .resolver import MultiServerDNSResolver, build_domain
from .types import RecordOutcome, Resolution

ProviderFactory = Callable[[str], ProviderClient]
SessionFactory = Callable[[], AsyncSession]


class ReconciliationEngine:
    """
    Drives refresh cycles over all managed records.

    Cycles never overlap: a run requested while another is in flight is
    skipped. Records are processed one after another, and a failing record
    is logged without stopping the cycle.
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_async_session,
        ip_resolver: Optional[PublicIPResolver] = None,
        dns_resolver: Optional[MultiServerDNSResolver] = None,
        provider_factory: ProviderFactory = HetznerClient,
        policy: Optional[ComparisonPolicy] = None,
        dedup_window: Optional[timedelta] = None,
    ) -> None:
        self._session_factory = session_factory
        self._ip_resolver = ip_resolver or PublicIPResolver()
        self._dns_resolver = dns_resolver or MultiServerDNSResolver()
        self._provider_factory = provider_factory
        self._policy: ComparisonPolicy = policy or settings.dns.comparison_policy
        self._dedup_window = dedup_window or timedelta(
            seconds=settings.dns.history_dedup_window
        )
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def policy(self) -> ComparisonPolicy:
        return self._policy

    async def reconfigure(self, dns: DNSSettings) -> None:
        """
        Apply new DNS settings to the following cycles.

        Waits for a running cycle to finish first.
        """
        async with self._lock:
            self._ip_resolver = PublicIPResolver(dns.ip_resolvers, dns.http_timeout)
            self._dns_resolver = MultiServerDNSResolver(
                dns.servers, dns.query_timeout, dns.dial_timeout
            )
            self._policy = dns.comparison_policy
            self._dedup_window = timedelta(seconds=dns.history_dedup_window)

    async def run(self) -> Optional[Dict[int, RecordOutcome]]:
        """
        Run one refresh cycle.

        Returns:
            Outcome per record ID, or None when the cycle was skipped because
            another one is still running
        """
        if self._lock.locked():
            logger.warning("refresh cycle already in progress, skipping this trigger")
            return None

        async with self._lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> Dict[int, RecordOutcome]:
        outcomes: Dict[int, RecordOutcome] = {}

        try:
            async with self._session_factory() as session:
                current = await update_address(session, self._ip_resolver)
                records = await list_records(session)
        except ResolutionFailure as e:
            logger.error(f"failed to update public IP address: {e}")
            return outcomes
        except SQLAlchemyError as e:
            logger.error(f"failed to load addresses or records: {e}", exc_info=True)
            return outcomes

        logger.info(f"refreshing {len(records)} records against {current.ip}")

        for record in records:
            try:
                outcomes[record.id] = await self.refresh_record(record, current)
            except NoServersConfigured as e:
                # Configuration problem, every remaining lookup would fail too
                logger.error(f"skipping DNS lookups for this cycle: {e}")
                for remaining in records:
                    outcomes.setdefault(remaining.id, RecordOutcome.FAILED)
                break
            except Exception as e:
                logger.error(
                    f"failed to refresh DNS record {record.fqdn}: {type(e).__name__}: {e}",
                    exc_info=not isinstance(e, NoConsensus),
                )
                outcomes[record.id] = RecordOutcome.FAILED

        return outcomes

    async def lookup(self, record: Record) -> List[str]:
        """
        Determine the IPs DNS currently serves for a record.

        Raises:
            NoServersConfigured: If no DNS server is configured
            NoConsensus: If no server returned a usable answer
            InvalidAddress: If a server returned something that is not IPv4
        """
        domain = build_domain(record.name, record.domain)
        results = await self._dns_resolver.resolve(domain)
        ips = reduce(results)
        if not ips:
            raise NoConsensus(f"no successful DNS resolution for domain {domain}")

        return sorted(str(parse_ipv4(ip)) for ip in ips)

    async def resolve_record(self, record: Record) -> List[Resolution]:
        """Raw per-server resolutions for a record, for diagnostics."""
        return await self._dns_resolver.resolve(
            build_domain(record.name, record.domain)
        )

    async def refresh_record(self, record: Record, current: Address) -> RecordOutcome:
        """
        Reconcile one record with the current address.

        Args:
            record: Record to reconcile
            current: The current public address

        Returns:
            UP_TO_DATE when no provider write was needed, UPDATED otherwise

        Raises:
            NoConsensus: If DNS gave no usable answer, nothing is updated
            InvalidAddress: If DNS returned a malformed IP
            ProviderError: If the provider rejected the update
            StorageError: If history or the record link could not be stored
        """
        client = self._provider_factory(record.token)
        try:
            async with self._session_factory() as session:
                linked = None
                if record.address_id is not None:
                    linked = await get_address(session, record.address_id)

                believed = await self.lookup(record)
                await self._track(session, record, believed)

                if await self._is_up_to_date(client, record, linked, believed, current):
                    logger.info(
                        f"DNS record {record.fqdn} is already up to date with {current.ip}"
                    )
                    return RecordOutcome.UP_TO_DATE

                await self._push(session, client, record, current)
                return RecordOutcome.UPDATED
        except SQLAlchemyError as e:
            raise StorageError(f"failed to store DNS record {record.fqdn}: {e}") from e
        finally:
            await client.close()

    async def force_update(self, record_id: int) -> Record:
        """
        Push the current address to the provider for one record.

        Waits for a running cycle to finish so writes for the same record
        never race.

        Raises:
            RecordNotFoundError: If the record does not exist
            ResolutionFailure: If the public IP cannot be resolved
            ProviderError: If the provider rejected the update
        """
        async with self._lock:
            async with self._session_factory() as session:
                record = await get_record(session, record_id)
                if record is None:
                    raise RecordNotFoundError(record_id)

                current = await update_address(session, self._ip_resolver)
                client = self._provider_factory(record.token)
                try:
                    return await self._push(session, client, record, current)
                finally:
                    await client.close()

    async def _track(
        self, session: AsyncSession, record: Record, believed: List[str]
    ) -> None:
        try:
            entries = await track_resolutions(
                session,
                record.id,
                believed,
                resolved_at=utcnow(),
                window=self._dedup_window,
            )
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                f"failed to track DNS record resolution for {record.fqdn} -> {believed}: {e}"
            )
            return

        for entry in entries:
            logger.info(
                f"tracked DNS record resolution: {record.fqdn} -> {entry.resolved_ip}"
            )

    async def _is_up_to_date(
        self,
        client: ProviderClient,
        record: Record,
        linked: Optional[Address],
        believed: List[str],
        current: Address,
    ) -> bool:
        match self._policy:
            case "linked":
                return linked is not None and linked.ip == current.ip
            case "consensus":
                return linked is not None and current.ip in believed
            case "provider":
                existing = await client.find_record(record.zone_id, record.name)
                return existing is not None and existing.value == current.ip
            case _:
                assert_never(self._policy)

    async def _push(
        self,
        session: AsyncSession,
        client: ProviderClient,
        record: Record,
        address: Address,
    ) -> Record:
        await client.upsert_record(
            record.zone_id, record.type.value, record.name, address.ip, record.ttl
        )
        record = await link_record_address(session, record, address, utcnow())
        logger.info(f"DNS record {record.fqdn} updated to {address.ip}")
        return record


# Global instance
reconciliation_engine = ReconciliationEngine()
