"""Unit tests for free port probing."""

import logging

import pytest

from tests.utils.http import occupied_port, reserve_port
from webserver.network import port_resolver
from webserver.network.port_resolver import NoFreePortError, resolve_port

HOST = "127.0.0.1"


def test_free_port_is_returned_unchanged(caplog):
    """A free port comes back as-is and nothing is logged."""
    caplog.set_level(logging.WARNING)
    port = reserve_port(HOST)

    resolution = resolve_port(port, host=HOST)

    assert resolution.port == port
    assert resolution.was_adjusted is False
    assert not caplog.records


def test_occupied_port_moves_to_a_higher_one(caplog):
    """A bound port is skipped and the adjustment is logged."""
    caplog.set_level(logging.WARNING)
    with occupied_port(HOST) as busy:
        resolution = resolve_port(busy, host=HOST)

    assert resolution.port > busy
    assert resolution.was_adjusted is True
    events = [getattr(r, "event", None) for r in caplog.records]
    assert "port_in_use" in events
    adjusted = next(
        r for r in caplog.records if getattr(r, "event", None) == "port_adjusted"
    )
    assert adjusted.requested_port == busy
    assert adjusted.port == resolution.port


def test_run_of_busy_ports_is_walked_in_order(monkeypatch):
    """Every taken port is probed once, lowest first."""
    probed = []

    def fake_probe(_host, port):
        probed.append(port)
        return port not in {8080, 8081, 8082}

    monkeypatch.setattr(port_resolver, "_probe", fake_probe)

    resolution = resolve_port(8080)

    assert resolution.port == 8083
    assert probed == [8080, 8081, 8082, 8083]


def test_exhausted_range_raises(monkeypatch):
    """Running past the highest port raises instead of wrapping around."""
    monkeypatch.setattr(port_resolver, "_probe", lambda _host, port: False)
    monkeypatch.setattr(port_resolver, "MAX_PORT", 8085)

    with pytest.raises(NoFreePortError, match="8080"):
        resolve_port(8080)


def test_last_port_can_still_be_used(monkeypatch):
    monkeypatch.setattr(port_resolver, "_probe", lambda _host, port: port == 65535)

    assert resolve_port(65534).port == 65535


@pytest.mark.parametrize("port", [-1, 70000])
def test_port_outside_valid_range_raises(port, monkeypatch):
    """Ports that bind() would reject surface as NoFreePortError."""
    probed = []
    monkeypatch.setattr(
        port_resolver, "_probe", lambda _host, value: probed.append(value) or True
    )

    with pytest.raises(NoFreePortError, match="outside"):
        resolve_port(port)
    assert not probed
