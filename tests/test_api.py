from datetime import datetime, timedelta, timezone

from vpntraffic.services.persistence import persist_samples
from vpntraffic.services.tracker import ThroughputSample


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_servers_empty_without_configuration(client):
    r = client.get("/api/servers")
    assert r.status_code == 200
    assert r.json() == {"servers": []}


def test_recent_throughput_filters(client, db):
    now = datetime.now(timezone.utc)
    persist_samples(db, "ovpn_main", [ThroughputSample("alice", "203.0.113.5", 10.0, 20.0)], now - timedelta(minutes=5))
    persist_samples(db, "ovpn_main", [ThroughputSample("alice", "203.0.113.5", 30.0, 40.0)], now)
    persist_samples(db, "wg_edge", [ThroughputSample("bob", "198.51.100.7", 1.0, 2.0)], now)
    persist_samples(db, "ovpn_main", [ThroughputSample("old", "192.0.2.1", 1.0, 1.0)], now - timedelta(hours=5))

    r = client.get("/api/throughput")
    assert r.status_code == 200
    assert r.json()["total"] == 3

    r = client.get("/api/throughput", params={"server": "ovpn_main", "client": "alice"})
    data = r.json()
    assert data["total"] == 2
    assert [s["bytes_in_per_sec"] for s in data["samples"]] == [30.0, 10.0]

    r = client.get("/api/throughput", params={"minutes": 600})
    assert r.json()["total"] == 4


def test_latest_throughput_per_client(client, db):
    now = datetime.now(timezone.utc)
    persist_samples(db, "ovpn_main", [ThroughputSample("alice", "203.0.113.5", 10.0, 20.0)], now - timedelta(seconds=10))
    persist_samples(db, "ovpn_main", [ThroughputSample("alice", "203.0.113.5", 30.0, 40.0)], now)
    persist_samples(db, "wg_edge", [ThroughputSample("bob", "198.51.100.7", 1.0, 2.0)], now)

    r = client.get("/api/throughput/latest")
    samples = r.json()["samples"]
    assert [(s["server_name"], s["client_name"], s["bytes_in_per_sec"]) for s in samples] == [
        ("ovpn_main", "alice", 30.0),
        ("wg_edge", "bob", 1.0),
    ]

    r = client.get("/api/throughput/latest", params={"server": "wg_edge"})
    assert [s["client_name"] for s in r.json()["samples"]] == ["bob"]


def test_rejects_bad_query(client):
    assert client.get("/api/throughput", params={"minutes": 0}).status_code == 422
