from __future__ import annotations

import ipaddress
import logging
import ssl
from dataclasses import dataclass
from typing import Optional, Tuple

import dns.asyncquery
import dns.exception
import dns.flags
import dns.message

logger = logging.getLogger("ubwrap.engine.transport")


@dataclass(frozen=True)
class Upstream:
    """Brief: One upstream server address.

    Inputs/fields:
      - host: IPv4 or IPv6 address.
      - port: Port number (53, or 853 for TLS when unspecified).
      - tls_name: Optional TLS authentication name.

    Outputs:
      - Upstream instances used by query_upstream().
    """

    host: str
    port: Optional[int] = None
    tls_name: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "Upstream":
        """Brief: Parse unbound address syntax ``ip[@port][#tls-name]``.

        Inputs:
          - text: e.g. '192.0.2.53', '2001:db8::53@5353', '9.9.9.9@853#dns.quad9.net'.

        Outputs:
          - Upstream.

        Raises:
          - ValueError for an invalid address or port.
        """

        raw = text.strip()
        tls_name: Optional[str] = None
        if "#" in raw:
            raw, _, tls_name = raw.partition("#")
            tls_name = tls_name or None
        port: Optional[int] = None
        if "@" in raw:
            raw, _, port_text = raw.partition("@")
            if not port_text.isdigit() or not 0 < int(port_text) < 65536:
                raise ValueError(f"invalid port in upstream address {text!r}")
            port = int(port_text)
        ipaddress.ip_address(raw)
        return cls(host=raw, port=port, tls_name=tls_name)

    @property
    def version(self) -> int:
        return ipaddress.ip_address(self.host).version

    @property
    def is_loopback(self) -> bool:
        return ipaddress.ip_address(self.host).is_loopback

    def port_for(self, transport: str) -> int:
        if self.port is not None:
            return self.port
        return 853 if transport == "tls" else 53

    def __str__(self) -> str:
        return f"{self.host}@{self.port_for('udp')}"


async def query_upstream(
    message: dns.message.Message,
    upstream: Upstream,
    *,
    transport: str,
    timeout: float,
    tcp_fallback: bool = True,
    ssl_context: Optional[ssl.SSLContext] = None,
) -> Tuple[Optional[dns.message.Message], Optional[str]]:
    """Brief: Send one query to one upstream and return (response, error).

    Inputs:
      - message: Query message.
      - upstream: Target server.
      - transport: 'udp', 'tcp' or 'tls'.
      - timeout: Seconds allowed for this attempt.
      - tcp_fallback: Retry over TCP when a UDP answer is truncated.
      - ssl_context: Optional TLS context for 'tls'.

    Outputs:
      - (response, error):
        * response: dns.message.Message on success, None otherwise.
        * error: None on success or one of 'timeout', 'network_error',
          'truncated', 'bad_response', 'unsupported_transport'.
    """

    port = upstream.port_for(transport)
    try:
        if transport == "udp":
            resp = await dns.asyncquery.udp(message, upstream.host, timeout=timeout, port=port)
            if resp.flags & dns.flags.TC:
                if not tcp_fallback:
                    return None, "truncated"
                logger.debug("truncated answer from %s, retrying over TCP", upstream)
                resp = await dns.asyncquery.tcp(message, upstream.host, timeout=timeout, port=port)
            return resp, None

        if transport == "tcp":
            resp = await dns.asyncquery.tcp(message, upstream.host, timeout=timeout, port=port)
            return resp, None

        if transport == "tls":
            resp = await dns.asyncquery.tls(
                message,
                upstream.host,
                timeout=timeout,
                port=port,
                ssl_context=ssl_context,
                server_hostname=upstream.tls_name,
            )
            return resp, None

        return None, "unsupported_transport"

    except dns.exception.Timeout:
        return None, "timeout"
    except OSError as exc:
        logger.debug("query to %s failed: %s", upstream, exc)
        return None, "network_error"
    except dns.exception.DNSException as exc:
        logger.debug("bad response from %s: %s", upstream, exc)
        return None, "bad_response"
