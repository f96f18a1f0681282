import socket

import dns.exception
import dns.flags
import dns.message
import dns.query
import dns.rcode
import dns.rdatatype
import dns.rrset
import pytest

from aaaacache.core.cache import AAAACache
from aaaacache.core.errors import ResolutionError
from aaaacache.core.resolver import DNSResolver, SystemResolver

ZONE = {
    ("example.com.", "AAAA"): [("AAAA", "2001:db8::10"), ("AAAA", "2001:db8::11")],
    ("example.com.", "A"): [("A", "192.0.2.10")],
    ("www.example.com.", "AAAA"): [("CNAME", "example.com."), ("AAAA", "2001:db8::10")],
    ("www.example.com.", "A"): [],
}


def _answer(q, rcode=dns.rcode.NOERROR, truncated=False):
    question = q.question[0]
    resp = dns.message.make_response(q)
    resp.set_rcode(rcode)
    if truncated:
        resp.flags |= dns.flags.TC
        return resp
    qtype = dns.rdatatype.to_text(question.rdtype)
    for rtype, value in ZONE.get((question.name.to_text(), qtype), []):
        resp.answer.append(dns.rrset.from_text(question.name, 300, "IN", rtype, value))
    return resp


def test_dns_resolver_collects_aaaa_then_a(monkeypatch):
    monkeypatch.setattr(dns.query, "udp", lambda q, where, timeout=None: _answer(q))
    r = DNSResolver(servers=["192.0.2.53"])

    assert r.resolve_addresses("example.com") == ["2001:db8::10", "2001:db8::11", "192.0.2.10"]


def test_dns_resolver_skips_cname_records(monkeypatch):
    monkeypatch.setattr(dns.query, "udp", lambda q, where, timeout=None: _answer(q))
    r = DNSResolver(servers=["192.0.2.53"])

    assert r.resolve_addresses("www.example.com") == ["2001:db8::10"]


def test_dns_resolver_truncated_falls_back_to_tcp(monkeypatch):
    used = []

    def udp(q, where, timeout=None):
        used.append("udp")
        return _answer(q, truncated=True)

    def tcp(q, where, timeout=None):
        used.append("tcp")
        return _answer(q)

    monkeypatch.setattr(dns.query, "udp", udp)
    monkeypatch.setattr(dns.query, "tcp", tcp)
    r = DNSResolver(servers=["192.0.2.53"])

    assert r.resolve_addresses("example.com")[0] == "2001:db8::10"
    assert used == ["udp", "tcp", "udp", "tcp"]


def test_dns_resolver_tries_next_server(monkeypatch):
    seen = []

    def udp(q, where, timeout=None):
        seen.append(where)
        if where == "192.0.2.1":
            raise dns.exception.Timeout()
        return _answer(q)

    def tcp(q, where, timeout=None):
        raise ConnectionRefusedError()

    monkeypatch.setattr(dns.query, "udp", udp)
    monkeypatch.setattr(dns.query, "tcp", tcp)
    r = DNSResolver(servers=["192.0.2.1", "192.0.2.2"], tries=2)

    assert "2001:db8::10" in r.resolve_addresses("example.com")
    assert seen[:3] == ["192.0.2.1", "192.0.2.1", "192.0.2.2"]


def test_dns_resolver_servfail_tries_next_server(monkeypatch):
    seen = []

    def udp(q, where, timeout=None):
        seen.append(where)
        if where == "192.0.2.1":
            return _answer(q, rcode=dns.rcode.SERVFAIL)
        return _answer(q)

    monkeypatch.setattr(dns.query, "udp", udp)
    r = DNSResolver(servers=["192.0.2.1", "192.0.2.2"])

    assert r.resolve_addresses("example.com") == ["2001:db8::10", "2001:db8::11", "192.0.2.10"]
    assert seen == ["192.0.2.1", "192.0.2.2", "192.0.2.1", "192.0.2.2"]


def test_dns_resolver_nxdomain_stops_at_first_server(monkeypatch):
    seen = []

    def udp(q, where, timeout=None):
        seen.append(where)
        return _answer(q, rcode=dns.rcode.NXDOMAIN)

    monkeypatch.setattr(dns.query, "udp", udp)
    r = DNSResolver(servers=["192.0.2.1", "192.0.2.2"])

    with pytest.raises(ResolutionError):
        r.resolve_addresses("missing.example")
    assert seen == ["192.0.2.1"]


def test_dns_resolver_nxdomain(monkeypatch):
    monkeypatch.setattr(dns.query, "udp", lambda q, where, timeout=None: _answer(q, rcode=dns.rcode.NXDOMAIN))
    r = DNSResolver(servers=["192.0.2.53"])

    with pytest.raises(ResolutionError) as exc:
        r.resolve_addresses("missing.example")
    assert "no such host" in str(exc.value)


def test_dns_resolver_all_servers_down(monkeypatch):
    def fail(q, where, timeout=None):
        raise dns.exception.Timeout()

    monkeypatch.setattr(dns.query, "udp", fail)
    monkeypatch.setattr(dns.query, "tcp", fail)
    r = DNSResolver(servers=["192.0.2.53"], tries=1)

    with pytest.raises(ResolutionError):
        r.resolve_addresses("example.com")


def test_cache_over_dns_resolver(monkeypatch):
    monkeypatch.setattr(dns.query, "udp", lambda q, where, timeout=None: _answer(q))
    cache = AAAACache(DNSResolver(servers=["192.0.2.53"]), ttl=30)

    assert cache.lookup("example.com") == "2001:db8::10"


def test_system_resolver(monkeypatch):
    def getaddrinfo(host, port, family=0, type=0):
        return [
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("192.0.2.1", 0)),
            (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2001:db8::1", 0, 0, 0)),
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("192.0.2.1", 0)),
        ]

    monkeypatch.setattr(socket, "getaddrinfo", getaddrinfo)
    assert SystemResolver().resolve_addresses("example.com") == ["192.0.2.1", "2001:db8::1"]


def test_system_resolver_failure(monkeypatch):
    def getaddrinfo(host, port, family=0, type=0):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    monkeypatch.setattr(socket, "getaddrinfo", getaddrinfo)
    with pytest.raises(ResolutionError) as exc:
        SystemResolver().resolve_addresses("nope.invalid")
    assert exc.value.host == "nope.invalid"
