"""
Session, discovery and pose API routes
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

# Response models
class DeviceResponse(BaseModel):
    host: str
    model: str
    radios: Dict[str, List[float]]

class SessionStatusResponse(BaseModel):
    connection_state: str
    discovery_state: str
    identity: Optional[str]
    ap_label: str
    device: Optional[DeviceResponse]
    round_count: int
    scanning: bool
    calibration_errors: Dict[str, str]

class ProgressStepResponse(BaseModel):
    step_id: str
    label: str
    status: str
    error: Optional[str] = None

class PoseRequest(BaseModel):
    x: float
    y: float
    z: float

def create_session_routes(controller, pose_tracker):
    """Create session monitoring and control routes"""
    router = APIRouter(prefix="/api", tags=["session"])

    @router.get("/session/status", response_model=SessionStatusResponse)
    async def get_session_status():
        """Connection, discovery and bound AP state"""
        return SessionStatusResponse(**controller.status())

    @router.get("/session/progress", response_model=List[ProgressStepResponse])
    async def get_session_progress():
        """Connection and calibration steps"""
        return [ProgressStepResponse(**step) for step in controller.progress.steps()]

    @router.post("/session/retry")
    async def retry_discovery():
        """Operator retry after discovery gave up"""
        try:
            controller.retry_discovery()
        except RuntimeError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return {"status": "retrying", "hosts": controller.last_hosts or [controller.default_host]}

    @router.post("/pose")
    async def update_pose(pose: PoseRequest):
        """Latest position from the spatial tracking subsystem"""
        pose_tracker.update(pose.x, pose.y, pose.z)
        return {"status": "ok"}

    @router.delete("/pose")
    async def clear_pose():
        pose_tracker.clear()
        return {"status": "ok"}

    return router
