"""Tests for AP discovery, fallback and calibration"""

import pytest

from discovery import ApDiscovery, DiscoveryAttempt, StepStatus, display_host, normalize_host
from errors import AllHostsFailedError, HostUnreachableError, RadioListError, RadioProbeError


RADIOS = {"2.4G": {"delay": 0.01}, "5G": {"delay": 0.02}}


class TestHosts:
    def test_normalize_adds_scheme(self):
        assert normalize_host("ap.local") == "http://ap.local"
        assert normalize_host("https://ap.example/") == "https://ap.example"

    def test_display_host_strips_scheme(self):
        assert display_host("http://10.0.0.7:8080") == "10.0.0.7:8080"
        assert display_host("ap.local") == "ap.local"


class TestDiscover:
    @pytest.mark.asyncio
    async def test_handshake_and_calibration(self, probe):
        probe.add_ap("http://ap1", "AX-3000", RADIOS)
        discovery = ApDiscovery(probe)

        device = await discovery.discover("http://ap1")

        assert device.host == "http://ap1"
        assert device.model == "AX-3000"
        assert device.radio_names() == ["2.4G", "5G"]
        for name in ("2.4G", "5G"):
            history = device.radios[name]
            assert len(history) == 1
            assert history[0] > 0
        # info before list before any calibration probe
        assert probe.calls[:2] == ["http://ap1/cgi-bin/info", "http://ap1/cgi-bin/list"]
        assert sorted(probe.calls[2:]) == ["http://ap1/cgi-bin/scan/2.4G", "http://ap1/cgi-bin/scan/5G"]

    @pytest.mark.asyncio
    async def test_unreachable_host(self, probe):
        discovery = ApDiscovery(probe)
        with pytest.raises(HostUnreachableError) as exc_info:
            await discovery.discover("http://nowhere")
        assert exc_info.value.host == "http://nowhere"
        assert probe.calls == ["http://nowhere/cgi-bin/info"]

    @pytest.mark.asyncio
    async def test_info_without_model_is_unreachable(self, probe):
        probe.route("http://ap1/cgi-bin/info", {"name": "ap"})
        discovery = ApDiscovery(probe)
        with pytest.raises(HostUnreachableError):
            await discovery.discover("http://ap1")

    @pytest.mark.asyncio
    async def test_list_failure(self, probe):
        probe.route("http://ap1/cgi-bin/info", {"model": "AX"})
        probe.route("http://ap1/cgi-bin/list", fail="HTTP 500")
        discovery = ApDiscovery(probe)
        with pytest.raises(RadioListError) as exc_info:
            await discovery.discover("http://ap1")
        assert exc_info.value.host == "http://ap1"

    @pytest.mark.asyncio
    async def test_radio_calibration_failure_keeps_device(self, probe):
        probe.add_ap("http://ap1", "AX", {"2.4G": {}, "5G": {"fail": "timeout"}})
        discovery = ApDiscovery(probe)
        steps = []
        discovery.add_progress_callback(steps.append)

        device = await discovery.discover("http://ap1")

        assert len(device.radios["2.4G"]) == 1
        assert device.radios["5G"] == []
        assert isinstance(discovery.calibration_errors["5G"], RadioProbeError)
        failed = [s.step_id for s in steps if s.status is StepStatus.FAILED]
        assert failed == ["calibrate-radio-5G"]

    @pytest.mark.asyncio
    async def test_progress_steps(self, probe):
        probe.add_ap("http://ap1", "AX", {"5G": {}})
        discovery = ApDiscovery(probe)
        steps = []
        discovery.add_progress_callback(steps.append)

        await discovery.discover("http://ap1")

        completed = [s.step_id for s in steps if s.status is StepStatus.COMPLETED]
        assert completed == ["connect-ap-http://ap1", "list-radios", "calibrate-radio-5G"]
        assert steps[0].label == "Contacting ap1"


class TestFallback:
    @pytest.mark.asyncio
    async def test_tries_hosts_in_order_until_success(self, probe):
        probe.route("http://h2/cgi-bin/info", fail="HTTP 503")
        probe.add_ap("http://h3", "third", {"5G": {}})
        probe.add_ap("http://h4", "fourth", {"5G": {}})
        discovery = ApDiscovery(probe)
        attempt = DiscoveryAttempt()

        device = await discovery.discover_with_fallback(
            ["http://h1", "http://h2", "http://h3", "http://h4"], attempt)

        assert device.host == "http://h3"
        assert device.model == "third"
        info_calls = probe.calls_to("/cgi-bin/info")
        assert info_calls == ["http://h1/cgi-bin/info", "http://h2/cgi-bin/info", "http://h3/cgi-bin/info"]
        assert not [c for c in probe.calls if c.startswith("http://h4")]
        assert attempt.current_index == 2
        assert attempt.current_host == "http://h3"

    @pytest.mark.asyncio
    async def test_all_hosts_failed(self, probe):
        probe.route("http://h2/cgi-bin/info", {"model": "AX"})
        discovery = ApDiscovery(probe)

        with pytest.raises(AllHostsFailedError) as exc_info:
            await discovery.discover_with_fallback(["http://h1", "http://h2"])

        failures = exc_info.value.failures
        assert isinstance(failures["http://h1"], HostUnreachableError)
        assert isinstance(failures["http://h2"], RadioListError)

    @pytest.mark.asyncio
    async def test_empty_host_list(self, probe):
        discovery = ApDiscovery(probe)
        with pytest.raises(AllHostsFailedError):
            await discovery.discover_with_fallback([])
        assert probe.calls == []
