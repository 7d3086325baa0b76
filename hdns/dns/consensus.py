"""
Consensus over per-server DNS resolutions
"""

from collections import Counter
from typing import Iterable, Optional

from .types import Resolution


def minimum_agreement(results: Iterable[Resolution]) -> int:
    """Number of servers that must agree on an IP before it is trusted.

    A lone successful server is trusted on its own.
    """
    successful = sum(1 for result in results if result.succeeded)
    return 2 if successful >= 2 else 1


def consensus(results: list[Resolution]) -> list[str]:
    """IPs returned by at least the minimum number of successful servers."""
    counts = Counter(
        ip for result in results if result.succeeded for ip in set(result.addresses)
    )
    threshold = minimum_agreement(results)
    return [ip for ip, count in counts.items() if count >= threshold]


def fastest(results: list[Resolution]) -> Optional[Resolution]:
    """The quickest successful resolution that returned at least one address."""
    candidates = [r for r in results if r.succeeded and r.addresses]
    if not candidates:
        return None
    return min(candidates, key=lambda r: r.response_time_ms)


def reduce(results: list[Resolution]) -> list[str]:
    """
    Reduce per-server resolutions to the believed-current IPs.

    Returns the consensus IPs, or the full answer of the fastest successful
    server when no IP reaches the agreement threshold. An empty list means
    no server produced a usable answer.
    """
    ips = consensus(results)
    if ips:
        return ips

    fallback = fastest(results)
    if fallback is None:
        return []
    return list(fallback.addresses)
