from __future__ import annotations

import ipaddress
import time
from typing import Iterable, List, Optional, Union

Address = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]


def now_ms() -> int:
    return int(time.time() * 1000)


def is_ip(s: str) -> bool:
    try:
        ipaddress.ip_address(s)
        return True
    except ValueError:
        return False


def uniq(seq: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for x in seq:
        if x not in seen:
            seen.add(x)
            out.append(x)
    return out


def ipv6_only(addr: Address) -> Optional[str]:
    """Return the IPv6 text of ``addr`` if it has no IPv4 form, else None.

    IPv4 literals and IPv4-mapped IPv6 addresses (``::ffff:a.b.c.d``) both have
    an IPv4 form and do not qualify. Unparseable input does not qualify either.
    A ``%zone`` suffix (scoped link-local from getaddrinfo) is dropped.
    """
    if isinstance(addr, str):
        addr = addr.split("%", 1)[0]
    try:
        ip = ipaddress.ip_address(addr)
    except ValueError:
        return None
    if ip.version != 6 or ip.ipv4_mapped is not None:
        return None
    return str(ip)


def first_ipv6_only(addrs: Iterable[Address]) -> Optional[str]:
    for addr in addrs:
        text = ipv6_only(addr)
        if text:
            return text
    return None
