from __future__ import annotations

import logging
import socket
from typing import List, Optional, Protocol, Sequence

import dns.exception
import dns.flags
import dns.message
import dns.query
import dns.rcode
import dns.rdatatype

from .errors import ResolutionError
from .utils import is_ip, now_ms, uniq

logger = logging.getLogger(__name__)

DEFAULT_SERVERS = ["1.1.1.1", "8.8.8.8", "9.9.9.9"]


class Resolver(Protocol):
    """Anything that can turn a hostname into its IP addresses.

    Implementations return every address in resolver order and raise
    ResolutionError (or any other exception) when the host cannot be resolved.
    """

    def resolve_addresses(self, host: str) -> List[str]:
        ...


class SystemResolver:
    """Resolves through the operating system (getaddrinfo)."""

    def resolve_addresses(self, host: str) -> List[str]:
        try:
            info = socket.getaddrinfo(host, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ResolutionError(host, e) from e
        return uniq(str(sockaddr[0]) for _, _, _, _, sockaddr in info)


class DNSResolver:
    """Queries nameservers directly for AAAA and A records.

    Each query goes over UDP first, retried ``tries`` times, and falls back to
    TCP when the answer is truncated or UDP keeps failing. Servers are tried in
    order until one answers.
    """

    QTYPES = ("AAAA", "A")

    def __init__(
        self,
        servers: Optional[Sequence[str]] = None,
        timeout: float = 2.0,
        tries: int = 2,
        udp_payload: int = 1232,
        use_tcp_fallback: bool = True,
    ):
        self.servers = list(servers or DEFAULT_SERVERS)
        if not self.servers:
            raise ValueError("at least one nameserver is required")
        self.timeout = timeout
        self.tries = max(1, tries)
        self.udp_payload = udp_payload
        self.use_tcp_fallback = use_tcp_fallback

    def resolve_addresses(self, host: str) -> List[str]:
        addresses: List[str] = []
        answered = False
        last_exc: Optional[Exception] = None

        for qtype in self.QTYPES:
            try:
                addresses.extend(self.query(host, qtype))
                answered = True
            except ResolutionError:
                raise
            except Exception as e:
                last_exc = e

        if not answered:
            raise ResolutionError(host, last_exc)
        return uniq(addresses)

    def query(self, host: str, qtype: str) -> List[str]:
        """Return the address answers for one record type, trying each server."""
        last_exc: Optional[Exception] = None
        for server in self.servers:
            try:
                resp = self._exchange(host, qtype, server)
                return self._parse_response(host, qtype, resp)
            except ResolutionError:
                # NXDOMAIN is authoritative, other servers would agree
                raise
            except Exception as e:
                logger.debug("%s %s via %s failed: %s", host, qtype, server, e)
                last_exc = e
        raise last_exc or dns.exception.DNSException(f"{qtype} query for {host} failed")

    def _make_query(self, host: str, qtype: str) -> dns.message.Message:
        return dns.message.make_query(host, qtype, use_edns=True, payload=self.udp_payload)

    def _exchange(self, host: str, qtype: str, server: str) -> dns.message.Message:
        q = self._make_query(host, qtype)
        last_exc: Optional[Exception] = None

        # UDP first
        for attempt in range(self.tries):
            t0 = now_ms()
            try:
                r = dns.query.udp(q, server, timeout=self.timeout)
            except Exception as e:
                last_exc = e
                continue
            logger.debug("%s %s via %s: %dms (udp, attempt %d)", host, qtype, server, now_ms() - t0, attempt + 1)
            if r.flags & dns.flags.TC and self.use_tcp_fallback:
                return self._exchange_tcp(q, host, qtype, server)
            return r

        # TCP fallback if UDP failed
        if self.use_tcp_fallback:
            return self._exchange_tcp(q, host, qtype, server)

        raise last_exc or dns.exception.Timeout()

    def _exchange_tcp(self, q: dns.message.Message, host: str, qtype: str, server: str) -> dns.message.Message:
        t0 = now_ms()
        r = dns.query.tcp(q, server, timeout=self.timeout)
        logger.debug("%s %s via %s: %dms (tcp)", host, qtype, server, now_ms() - t0)
        return r

    def _parse_response(self, host: str, qtype: str, resp: dns.message.Message) -> List[str]:
        rcode = resp.rcode()
        if rcode == dns.rcode.NXDOMAIN:
            raise ResolutionError(host, "no such host")
        if rcode != dns.rcode.NOERROR:
            raise dns.exception.DNSException(f"{qtype} query for {host} returned {dns.rcode.to_text(rcode)}")

        wanted = dns.rdatatype.from_text(qtype)
        answers: List[str] = []
        for rrset in resp.answer:
            # CNAME and other records in the chain are skipped
            if rrset.rdtype != wanted:
                continue
            for item in rrset:
                t = item.to_text()
                if is_ip(t):
                    answers.append(t)
        return answers
