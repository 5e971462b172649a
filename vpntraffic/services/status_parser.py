"""Parse OpenVPN and WireGuard status dumps into per-client counter records."""
import logging
from typing import Protocol

from vpntraffic.config import VPNServerType
from vpntraffic.services.tracker import ClientCounterRecord

logger = logging.getLogger(__name__)

U64_MAX = 2**64 - 1

# OpenVPN status-version 2:
# CLIENT_LIST,Common Name,Real Address,Virtual Address,Virtual IPv6 Address,Bytes Received,Bytes Sent,...
OPENVPN_RECORD_PREFIX = "CLIENT_LIST"
OPENVPN_MIN_FIELDS = 7

# wg show all dump, peer line:
# interface  public-key  preshared-key  endpoint  allowed-ips  latest-handshake  transfer-rx  transfer-tx  keepalive
WIREGUARD_MIN_FIELDS = 8
WIREGUARD_NO_ENDPOINT = "(none)"


def parse_counter(value: str) -> int | None:
    """Decimal unsigned 64-bit counter, or None."""
    value = value.strip()
    if not value or not value.isascii() or not value.isdigit():
        return None
    n = int(value)
    if n > U64_MAX:
        return None
    return n


class StatusParser(Protocol):
    def parse(self, raw_text: str) -> list[ClientCounterRecord]: ...


class OpenVPNStatusParser:
    def parse(self, raw_text: str) -> list[ClientCounterRecord]:
        records: list[ClientCounterRecord] = []
        for line in raw_text.splitlines():
            if not line.startswith(OPENVPN_RECORD_PREFIX):
                continue
            parts = line.split(",")
            if len(parts) < OPENVPN_MIN_FIELDS:
                logger.debug("Skipping short CLIENT_LIST line: %r", line)
                continue
            bytes_in = parse_counter(parts[5])
            bytes_out = parse_counter(parts[6])
            if bytes_in is None or bytes_out is None:
                logger.debug("Skipping CLIENT_LIST line with bad counters: %r", line)
                continue
            records.append(
                ClientCounterRecord(
                    client_id=parts[1],
                    ip_address=parts[2].split(":")[0],
                    bytes_in=bytes_in,
                    bytes_out=bytes_out,
                )
            )
        return records


class WireGuardStatusParser:
    """Peer lines of ``wg show all dump``. Peers without an endpoint are not connected."""

    def __init__(self, peer_aliases: dict[str, str] | None = None):
        self.peer_aliases = dict(peer_aliases or {})

    def parse(self, raw_text: str) -> list[ClientCounterRecord]:
        records: list[ClientCounterRecord] = []
        for line in raw_text.splitlines():
            parts = line.split("\t")
            if len(parts) < WIREGUARD_MIN_FIELDS:
                if line.strip():
                    logger.debug("Skipping non-peer wg line with %d fields", len(parts))
                continue
            endpoint = parts[3].strip()
            if endpoint == WIREGUARD_NO_ENDPOINT:
                continue
            bytes_in = parse_counter(parts[6])
            bytes_out = parse_counter(parts[7])
            if bytes_in is None or bytes_out is None:
                logger.debug("Skipping wg peer %s with bad counters", parts[1])
                continue
            public_key = parts[1]
            records.append(
                ClientCounterRecord(
                    client_id=self.peer_aliases.get(public_key, public_key),
                    ip_address=endpoint_host(endpoint),
                    bytes_in=bytes_in,
                    bytes_out=bytes_out,
                )
            )
        return records


def endpoint_host(endpoint: str) -> str:
    """Host part of ``ip:port``; brackets around IPv6 hosts are dropped."""
    host = endpoint.rpartition(":")[0] if ":" in endpoint else endpoint
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host


def get_parser(server_type: VPNServerType | str, peer_aliases: dict[str, str] | None = None) -> StatusParser:
    server_type = VPNServerType(server_type)
    if server_type is VPNServerType.OPENVPN:
        return OpenVPNStatusParser()
    return WireGuardStatusParser(peer_aliases)
