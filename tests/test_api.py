"""Tests for the local control API, calling route handlers directly"""

import pytest
from fastapi import HTTPException

from api.main_api import ApClientAPI
from api.session_routes import PoseRequest
from discovery import ApDiscovery
from scanning import ScanCoordinator
from services.ap_client import load_identity, save_identity
import services.pose
from services.pose import PoseTracker
from session import SessionController
from session.protocol import CMD_HEAT, CMD_SCAN, CMD_TRYL


def endpoint(api, path, method):
    for route in api.app.routes:
        if getattr(route, "path", None) == path and method in getattr(route, "methods", ()):
            return route.endpoint
    raise LookupError(f"{method} {path}")


@pytest.fixture
def pose():
    return PoseTracker()


@pytest.fixture
def controller(probe, channel, pose):
    return SessionController(
        channel, ApDiscovery(probe), ScanCoordinator(probe),
        pose_source=pose.current, config={"default_host": "http://ap.local"},
    )


@pytest.fixture
def api(controller, pose):
    return ApClientAPI(controller, pose, {})


class TestSessionRoutes:
    @pytest.mark.asyncio
    async def test_status_before_discovery(self, api):
        status = await endpoint(api, "/api/session/status", "GET")()
        assert status.connection_state == "connecting"
        assert status.discovery_state == "no_device"
        assert status.device is None

    @pytest.mark.asyncio
    async def test_retry_conflict_when_not_terminal(self, api):
        with pytest.raises(HTTPException) as exc_info:
            await endpoint(api, "/api/session/retry", "POST")()
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_progress_lists_discovery_steps(self, api, controller, probe, channel):
        probe.add_ap("http://ap1", "AX", {"5G": {}})
        await channel.deliver(CMD_TRYL, ["http://ap1"])
        await controller.discovery_task

        steps = await endpoint(api, "/api/session/progress", "GET")()
        assert [s.step_id for s in steps] == ["connect-ap-http://ap1", "list-radios", "calibrate-radio-5G"]
        assert all(s.status == "completed" for s in steps)

        status = await endpoint(api, "/api/session/status", "GET")()
        assert status.device.model == "AX"
        assert list(status.device.radios) == ["5G"]


class TestMeasurementRoutes:
    @pytest.mark.asyncio
    async def test_scan_requires_pose(self, api):
        response = await endpoint(api, "/api/scan", "POST")()
        assert response.started is False
        assert response.reason == "no position available"

    @pytest.mark.asyncio
    async def test_scan_without_bound_ap(self, api, pose, probe):
        pose.update(0, 0, 0)
        response = await endpoint(api, "/api/scan", "POST")()
        assert response.started is False
        assert response.reason == "no AP bound"
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_scan_after_pose_update(self, api, controller, probe, channel):
        probe.add_ap("http://ap1", "AX", {"5G": {"results": [{"rssi": -40}]}})
        await channel.deliver(CMD_TRYL, ["http://ap1"])
        await controller.discovery_task

        await endpoint(api, "/api/pose", "POST")(PoseRequest(x=1, y=2, z=3))
        response = await endpoint(api, "/api/scan", "POST")()

        assert response.started is True
        assert response.results[0].measurements == [{"rssi": -40}]
        assert channel.sent[-1][0] == CMD_SCAN
        assert channel.sent[-1][1]["position"] == {"x": 1.0, "y": 2.0, "z": 3.0}

    @pytest.mark.asyncio
    async def test_heatmap_missing_then_present(self, api, channel):
        with pytest.raises(HTTPException) as exc_info:
            await endpoint(api, "/api/heatmap", "GET")()
        assert exc_info.value.status_code == 404

        await channel.deliver(CMD_HEAT, ["<svg/>", [0, 0, 10, 10]])
        heatmap = await endpoint(api, "/api/heatmap", "GET")()
        assert heatmap.svg == "<svg/>"


class TestSupport:
    def test_identity_round_trip(self, tmp_path):
        path = str(tmp_path / "state" / "identity.json")
        assert load_identity(path) is None
        save_identity(path, "abc-123")
        assert load_identity(path) == "abc-123"

    def test_unreadable_identity_ignored(self, tmp_path):
        path = tmp_path / "identity.json"
        path.write_text("{not json")
        assert load_identity(str(path)) is None

    def test_stale_pose_is_unknown(self, monkeypatch):
        tracker = PoseTracker(max_age_seconds=1.0)
        tracker.update(1, 2, 3)
        assert tracker.current() == {"x": 1.0, "y": 2.0, "z": 3.0}

        real = services.pose.time.monotonic()
        monkeypatch.setattr(services.pose.time, "monotonic", lambda: real + 5)
        assert tracker.current() is None
