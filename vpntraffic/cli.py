"""CLI for the traffic monitor: run the service, poll a server, inspect status dumps."""
import argparse
import asyncio
import sys

from vpntraffic.config import ConfigError, VPNServerType, load_servers, settings
from vpntraffic.services.config_writer import write_servers_file
from vpntraffic.services.status_parser import get_parser


def cmd_run(args: argparse.Namespace) -> int:
    import uvicorn

    from vpntraffic.main import configure_logging

    configure_logging(settings.log_level)
    uvicorn.run(
        "vpntraffic.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return 0


def cmd_poll_once(args: argparse.Namespace) -> int:
    from vpntraffic.database import Base, SessionLocal, engine
    from vpntraffic.main import configure_logging
    from vpntraffic.services.monitor import ServerMonitor

    configure_logging(settings.log_level)
    try:
        servers = {s.name: s for s in load_servers(settings)}
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    config = servers.get(args.server)
    if config is None:
        print(f"error: server '{args.server}' not configured", file=sys.stderr)
        return 1

    Base.metadata.create_all(bind=engine)
    monitor = ServerMonitor(config, settings, SessionLocal)

    async def _two_cycles():
        try:
            await monitor.initialize()
            # first cycle only records baselines
            await monitor.poll_once()
            await asyncio.sleep(args.interval or config.polling_interval_seconds)
            return await monitor.poll_once()
        finally:
            monitor.close()

    samples = asyncio.run(_two_cycles())
    for s in sorted(samples.values(), key=lambda s: s.client_id):
        print(f"{s.client_id}\t{s.ip_address}\t{s.bytes_in_per_sec:.2f}\t{s.bytes_out_per_sec:.2f}")
    return 0


def cmd_parse(args: argparse.Namespace) -> int:
    with open(args.file, encoding="utf-8", errors="replace") as f:
        text = f.read()
    for r in get_parser(args.type).parse(text):
        print(f"{r.client_id}\t{r.ip_address}\t{r.bytes_in}\t{r.bytes_out}")
    return 0


def cmd_init_config(args: argparse.Namespace) -> int:
    if not args.current:
        write_servers_file(args.path)
        print(f"Example servers file written: {args.path}")
        return 0
    try:
        servers = load_servers(settings)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    if not servers:
        print("error: no servers configured", file=sys.stderr)
        return 1
    write_servers_file(args.path, servers)
    print(f"{len(servers)} configured servers written: {args.path}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="VPN Traffic Monitor CLI")
    sub = parser.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Serve the API and poll all configured servers")
    run.add_argument("--host", help="Bind address")
    run.add_argument("--port", type=int, help="Bind port")
    run.set_defaults(func=cmd_run)

    poll = sub.add_parser("poll-once", help="Poll one server twice and print throughput")
    poll.add_argument("--server", required=True, help="Server name")
    poll.add_argument("--interval", type=float, help="Seconds between the two polls")
    poll.set_defaults(func=cmd_poll_once)

    parse = sub.add_parser("parse", help="Print client counters from a saved status dump")
    parse.add_argument("--type", required=True, choices=[t.value for t in VPNServerType], help="Server type")
    parse.add_argument("file", help="Status dump file")
    parse.set_defaults(func=cmd_parse)

    init = sub.add_parser("init-config", help="Write an example servers TOML file")
    init.add_argument("path", help="Output path")
    init.add_argument("--current", action="store_true", help="Write the currently configured servers instead of the example")
    init.set_defaults(func=cmd_init_config)

    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
