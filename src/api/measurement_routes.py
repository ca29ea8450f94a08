"""
Scan and measurement API routes
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import logging

from errors import ScanBusyError

logger = logging.getLogger(__name__)

class RadioResultResponse(BaseModel):
    radio: str
    measurements: List[Any]
    duration_ms: float

class ScanResponse(BaseModel):
    started: bool
    reason: Optional[str] = None
    results: List[RadioResultResponse] = []
    failures: Dict[str, str] = {}

class BroadcastResponse(BaseModel):
    position: Dict[str, Any]
    measurements: List[Any]
    received_at: float

class HeatmapResponse(BaseModel):
    svg: str
    bounding_box: Any
    received_at: float

def create_measurement_routes(controller):
    """Create scan and measurement routes"""
    router = APIRouter(prefix="/api", tags=["measurements"])

    @router.post("/scan", response_model=ScanResponse)
    async def request_scan():
        """Scan every radio of the bound AP and submit the result"""
        try:
            report = await controller.request_measurement()
        except ScanBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))

        if report is None:
            return ScanResponse(started=False, reason=controller.skip_reason)

        return ScanResponse(
            started=True,
            results=[
                RadioResultResponse(radio=r.radio, measurements=r.measurements, duration_ms=r.duration_ms)
                for r in report.results
            ],
            failures={name: err.reason for name, err in report.failures.items()}
        )

    @router.get("/scan/progress")
    async def get_scan_progress():
        """Estimated progress per radio of the current (or last) scan"""
        return {"scanning": controller.scanning, "radios": dict(controller.scan_progress)}

    @router.get("/measurements", response_model=List[BroadcastResponse])
    async def get_measurements():
        """Measurements broadcast by the backend"""
        return [
            BroadcastResponse(position=m.position, measurements=m.measurements, received_at=m.received_at)
            for m in controller.measurements
        ]

    @router.get("/heatmap", response_model=HeatmapResponse)
    async def get_heatmap():
        """Latest heatmap overlay"""
        heatmap = controller.heatmap
        if heatmap is None:
            raise HTTPException(status_code=404, detail="No heatmap received yet")
        return HeatmapResponse(svg=heatmap.svg, bounding_box=heatmap.bounding_box,
                               received_at=heatmap.received_at)

    return router
