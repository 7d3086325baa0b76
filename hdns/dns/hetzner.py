"""
Hetzner DNS API client
"""

import json as jsonlib
from typing import Any, Literal, Optional

import aiohttp

from ..config import settings
from ..errors import ProviderAPIError, ProviderTransportError
from ..logger import logger
from .address import USER_AGENT
from .dns import ProviderClient
from .types import ProviderRecord, Zone


def _error_message(payload: Any) -> Optional[str]:
    """Extract the provider error from a response body, if any."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        return error.get("message") or jsonlib.dumps(error)
    return str(error)


def _record_from_payload(data: dict) -> ProviderRecord:
    return ProviderRecord(
        id=str(data.get("id", "")),
        zone_id=data.get("zone_id", ""),
        type=data.get("type", ""),
        name=data.get("name", ""),
        value=data.get("value", ""),
        ttl=int(data.get("ttl") or 0),
    )


class HetznerClient(ProviderClient):
    """
    Client for the Hetzner DNS API, bound to one API token.
    """

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._token = token
        self._base_url = (base_url or settings.dns.hetzner_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.dns.http_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HetznerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={
                    "User-Agent": USER_AGENT,
                    "Content-Type": "application/json",
                    "Auth-API-Token": self._token,
                },
            )
        return self._session

    async def _send_request(
        self,
        method: Literal["GET", "POST", "PUT"],
        path: str,
        action: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict] = None,
    ) -> dict:
        try:
            async with self._get_session().request(
                method,
                self._base_url + path,
                params=params,
                json=json,
            ) as response:
                status = response.status
                response_str = await response.text()
        except (aiohttp.ClientError, TimeoutError) as e:
            raise ProviderTransportError(
                f"{action} request to Hetzner failed: {type(e).__name__}: {e}"
            ) from e

        try:
            payload = jsonlib.loads(response_str) if response_str else {}
        except ValueError:
            payload = None

        message = _error_message(payload)
        if message:
            raise ProviderAPIError(action, message)

        if not 200 <= status < 300:
            raise ProviderTransportError(
                f"{action} request to Hetzner failed with status {status}",
                status=status,
            )

        if not isinstance(payload, dict):
            raise ProviderTransportError(
                f"{action} request to Hetzner returned an invalid body", status=status
            )
        return payload

    async def list_zones(self) -> list[Zone]:
        """List the zones the token can manage"""
        payload = await self._send_request("GET", "/zones", "list zones")
        return [
            Zone(
                id=zone["id"],
                name=zone["name"],
                records_count=int(zone.get("records_count") or 0),
            )
            for zone in payload.get("zones") or []
        ]

    async def find_record(self, zone_id: str, name: str) -> ProviderRecord | None:
        """Find the A record with the given name in a zone"""
        payload = await self._send_request(
            "GET",
            "/records",
            "find record",
            params={"zone_id": zone_id, "name": name},
        )
        # The name parameter is not honoured by every API version
        for data in payload.get("records") or []:
            if data.get("name") == name and data.get("type") == "A":
                return _record_from_payload(data)
        return None

    async def create_record(self, record: ProviderRecord) -> None:
        _validate_record(record)
        await self._send_request(
            "POST", "/records", "create record", json=record.to_payload()
        )
        logger.debug(f"created Hetzner record {record.name} in zone {record.zone_id}")

    async def update_record(self, record: ProviderRecord) -> None:
        if not record.id:
            raise ValueError("record ID is required to update a record")
        _validate_record(record)
        await self._send_request(
            "PUT", f"/records/{record.id}", "update record", json=record.to_payload()
        )
        logger.debug(f"updated Hetzner record {record.name} in zone {record.zone_id}")

    async def close(self) -> None:
        """Clean up the session"""
        if self._session is not None:
            await self._session.close()
            self._session = None


def _validate_record(record: ProviderRecord) -> None:
    if not record.zone_id:
        raise ValueError("zone ID is required")
    if not record.type:
        raise ValueError("record type is required")
    if not record.name:
        raise ValueError("record name is required")
    if not record.value:
        raise ValueError("record value is required")
