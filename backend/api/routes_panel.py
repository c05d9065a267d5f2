"""
Panel API Routes

User-facing endpoints for viewing account state and creating the relay.
Both return the uniform {success, message, data} envelope with HTTP 200,
including for provisioning failures.
"""

import logging
from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from sqlalchemy.orm import Session

import settings
from db import get_db
from auth_dependencies import get_current_user_id
from schemas import ApiResponse, PanelInfo, ServiceResult
from services.panel_service import envelope, get_panel_info
from services.port_allocator import PortAllocator
from services.provisioning_errors import ProvisioningFailure
from services.relay_catalog import MethodCatalog
from services.service_provisioner import ServiceProvisioner
from services.user_store import UserStore

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/user/auth",
    tags=["Panel"],
    redirect_slashes=False
)


def get_method_catalog(request: Request) -> MethodCatalog:
    return request.app.state.method_catalog


def get_port_allocator(request: Request) -> PortAllocator:
    return request.app.state.port_allocator


def get_container_runtime(request: Request):
    runtime = getattr(request.app.state, "container_runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Container runtime unavailable"
        )
    return runtime


def get_service_provisioner(
    catalog: MethodCatalog = Depends(get_method_catalog),
    port_allocator: PortAllocator = Depends(get_port_allocator),
    runtime=Depends(get_container_runtime),
    db: Session = Depends(get_db)
) -> ServiceProvisioner:
    return ServiceProvisioner(
        catalog=catalog,
        port_allocator=port_allocator,
        runtime=runtime,
        store=UserStore(db),
        host=settings.HOST_ADDRESS,
    )


@router.get("/info", response_model=ApiResponse)
async def panel_info(
    user_id: int = Depends(get_current_user_id),
    catalog: MethodCatalog = Depends(get_method_catalog),
    db: Session = Depends(get_db)
):
    """
    Get current user info

    Returns account status, quota usage and relay connection details.
    A deleted account yields `success: false`.
    """
    body = get_panel_info(db, user_id, catalog, settings.HOST_ADDRESS)
    if body["success"]:
        body["data"] = PanelInfo(**body["data"])
    return ApiResponse(**body)


@router.post("/service/create", response_model=ApiResponse)
async def create_service(
    method: str = Form(""),
    server_type: str = Form("", alias="server-type"),
    user_id: int = Depends(get_current_user_id),
    provisioner: ServiceProvisioner = Depends(get_service_provisioner)
):
    """
    Create the user's relay service

    Form fields: `server-type` (SS or SSR) and `method` (cipher).
    """
    try:
        result = provisioner.create_service(user_id, server_type, method)
    except ProvisioningFailure as e:
        logger.info(f"Create service rejected for user {user_id}: {type(e).__name__}: {e.detail or e.message}")
        return ApiResponse(**envelope(False, e.message))

    return ApiResponse(**envelope(True, "Service created successfully!", ServiceResult(**result.to_dict())))
