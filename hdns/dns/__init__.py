"""
DNS reconciliation

Resolves the public IP, checks what DNS serves for each managed record
through several DNS servers and updates the Hetzner DNS records that are
out of date.
"""

from .address import PublicIPResolver, update_address, validate_address
from .consensus import consensus, fastest, reduce
from .dns import ProviderClient
from .hetzner import HetznerClient
from .resolver import MultiServerDNSResolver, build_domain
from .service import ReconciliationEngine, reconciliation_engine
from .types import ProviderRecord, RecordOutcome, Resolution, Zone

__all__ = [
    "PublicIPResolver",
    "update_address",
    "validate_address",
    "MultiServerDNSResolver",
    "build_domain",
    "consensus",
    "fastest",
    "reduce",
    "ProviderClient",
    "HetznerClient",
    "ReconciliationEngine",
    "reconciliation_engine",
    "ProviderRecord",
    "RecordOutcome",
    "Resolution",
    "Zone",
]
