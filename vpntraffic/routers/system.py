from fastapi import APIRouter, Request

from vpntraffic.schemas.system import HealthResponse, ServersResponse, ServerStatus

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse()


@router.get("/api/servers", response_model=ServersResponse)
def servers(request: Request):
    supervisor = getattr(request.app.state, "supervisor", None)
    if supervisor is None:
        return ServersResponse()
    return ServersResponse(servers=[ServerStatus(**s) for s in supervisor.status()])
