"""Write a servers TOML file for the monitor."""
import os
import tempfile
from typing import Any

import tomli_w

from vpntraffic.config import VPNServerConfig


def _example_servers() -> list[dict[str, Any]]:
    return [
        {
            "name": "ovpn_main",
            "type": "openvpn",
            "address": "vpn1.example.com",
            "port": 22,
            "username": "monitor",
            "password": "change-me",
            "polling_interval_seconds": 10,
        },
        {
            "name": "wg_edge",
            "type": "wireguard",
            "address": "vpn2.example.com",
            "port": 22,
            "username": "monitor",
            "key_filename": "/etc/vpntraffic/id_ed25519",
            "polling_interval_seconds": 10,
            "peer_aliases": {"aGVsbG8gd29ybGQgcHVibGljIGtleSBleGFtcGxlPQ==": "alice-laptop"},
        },
    ]


def _server_to_table(server: VPNServerConfig) -> dict[str, Any]:
    # TOML has no null
    data = server.model_dump(mode="json", exclude_none=True)
    if not data.get("peer_aliases"):
        data.pop("peer_aliases", None)
    return data


def write_servers_file(path: str, servers: list[VPNServerConfig] | None = None) -> None:
    """Atomically replace ``path``; without servers an example file is written."""
    tables = [_server_to_table(s) for s in servers] if servers else _example_servers()
    dirpath = os.path.dirname(path)
    if dirpath:
        os.makedirs(dirpath, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=dirpath or None, prefix="vpntraffic_", suffix=".toml")
    try:
        with os.fdopen(fd, "wb") as f:
            tomli_w.dump({"servers": tables}, f)
        os.replace(tmp, path)
    except Exception:
        os.unlink(tmp)
        raise
