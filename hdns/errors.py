"""
Exception hierarchy shared by the resolvers, the reconciliation engine,
the stores and the API layer.
"""


class HDNSError(Exception):
    """Base class for all errors raised by hdns."""


class ResolutionFailure(HDNSError):
    """The public IP address could not be determined."""


class NoResolverAvailable(ResolutionFailure):
    """Every configured IP echo service failed or returned an unusable value."""


class NoServersConfigured(HDNSError):
    """The multi-server DNS resolver was constructed without any servers."""


class NoConsensus(HDNSError):
    """No DNS server produced a usable answer for a domain."""


class InvalidAddress(HDNSError):
    """A malformed or disallowed IP literal."""

    def __init__(self, ip: str, reason: str = "invalid IPv4 address"):
        super().__init__(f"{reason}: {ip!r}")
        self.ip = ip


class ProviderError(HDNSError):
    """The DNS provider could not complete a request."""


class ProviderTransportError(ProviderError):
    """HTTP level failure talking to the DNS provider."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ProviderAPIError(ProviderError):
    """The DNS provider answered with an error payload."""

    def __init__(self, action: str, detail: str):
        super().__init__(f"provider rejected {action}: {detail}")
        self.action = action
        self.detail = detail


class StorageError(HDNSError):
    """A persistence operation failed."""


class RecordNotFoundError(HDNSError):
    def __init__(self, record_id: int):
        super().__init__(f"record {record_id} not found")
        self.record_id = record_id


class DuplicateRecordError(HDNSError):
    """A record with the same name, zone and type already exists."""

    def __init__(self, name: str, zone_id: str, record_type: str):
        super().__init__(
            f"a record with name '{name}', zone '{zone_id}' and type "
            f"'{record_type}' already exists"
        )
