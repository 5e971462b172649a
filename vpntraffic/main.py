import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from vpntraffic.config import ConfigError, load_servers, settings
from vpntraffic.database import Base, SessionLocal, engine
from vpntraffic.routers import system, throughput
from vpntraffic.services.monitor import MonitorSupervisor

logger = logging.getLogger(__name__)

PROJECT_DIR = Path(__file__).resolve().parent.parent


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # one line per SSH connect is plenty
    logging.getLogger("paramiko").setLevel(logging.WARNING)


def run_migrations() -> None:
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config(str(PROJECT_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_DIR / "alembic"))
    # keep the service logging setup
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.run_migrations:
        try:
            run_migrations()
        except Exception:
            logger.exception("Alembic upgrade failed")
    Base.metadata.create_all(bind=engine)

    try:
        servers = load_servers(settings)
    except ConfigError:
        logger.exception("Invalid server configuration, no servers will be monitored")
        servers = []
    if servers:
        logger.info("Found %d VPN server configurations:", len(servers))
        for s in servers:
            logger.info("  - %s at %s:%s of type: %s", s.name, s.address, s.port, s.type.value)
    else:
        logger.warning("No VPN server configurations found.")

    supervisor = MonitorSupervisor(servers, settings, SessionLocal)
    app.state.supervisor = supervisor
    supervisor.start()
    yield
    await supervisor.stop()


app = FastAPI(title="VPN Traffic Monitor", lifespan=lifespan)

app.include_router(system.router)
app.include_router(throughput.router)
