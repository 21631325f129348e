"""Unit tests for the discovery publisher."""

import logging

import pytest

from webserver.discovery.publisher import (
    DiscoveryError,
    DiscoveryPublisher,
    NullServiceRegistration,
)


class RecordingRegistration:
    """Registration backend that records every call."""

    log: list = []

    def __init__(self, service_name: str, port: int) -> None:
        self.service_name = service_name
        self.port = port

    def register_service(self) -> None:
        self.log.append(("register", self.service_name, self.port))

    def unregister_service(self) -> None:
        self.log.append(("unregister", self.service_name, self.port))


@pytest.fixture(name="registrations")
def fixture_registrations():
    RecordingRegistration.log = []
    return RecordingRegistration.log


def test_register_creates_one_registration(registrations):
    publisher = DiscoveryPublisher(RecordingRegistration)

    publisher.register("_webserver-http._tcp", 8090)

    assert publisher.get_port() == 8090
    assert registrations == [("register", "_webserver-http._tcp", 8090)]


def test_same_port_is_not_registered_twice(registrations):
    publisher = DiscoveryPublisher(RecordingRegistration)

    publisher.register("_webserver-http._tcp", 8090)
    publisher.register("_webserver-http._tcp", 8090)

    assert len(registrations) == 1


def test_new_port_replaces_previous_registration(registrations):
    """The old announcement is withdrawn before the new one is made."""
    publisher = DiscoveryPublisher(RecordingRegistration)

    publisher.register("_webserver-http._tcp", 8080)
    publisher.register("_webserver-http._tcp", 8081)

    assert registrations == [
        ("register", "_webserver-http._tcp", 8080),
        ("unregister", "_webserver-http._tcp", 8080),
        ("register", "_webserver-http._tcp", 8081),
    ]
    assert publisher.get_port() == 8081


def test_unregister_clears_registration(registrations):
    publisher = DiscoveryPublisher(RecordingRegistration)
    publisher.register("_webserver-http._tcp", 8090)

    publisher.unregister()
    publisher.unregister()

    assert publisher.registration is None
    assert publisher.get_port() is None
    assert registrations[-1] == ("unregister", "_webserver-http._tcp", 8090)
    assert len(registrations) == 2


@pytest.mark.parametrize(
    "failure",
    [
        DiscoveryError("mdns daemon unavailable"),
        OSError("network is unreachable"),
        RuntimeError("mdns daemon not running"),
    ],
)
def test_backend_failure_is_logged_not_raised(failure, caplog):
    """A failing announcer leaves the publisher without a registration."""
    caplog.set_level(logging.ERROR)

    class Failing(RecordingRegistration):
        def register_service(self) -> None:
            raise failure

    publisher = DiscoveryPublisher(Failing)
    publisher.register("_webserver-http._tcp", 8090)

    assert publisher.registration is None
    record = next(
        r
        for r in caplog.records
        if getattr(r, "event", None) == "discovery_register_failed"
    )
    assert record.port == 8090
    assert record.error_type == type(failure).__name__


def test_null_registration_is_the_default():
    publisher = DiscoveryPublisher()

    publisher.register("_webserver-http._tcp", 8090)

    assert isinstance(publisher.registration, NullServiceRegistration)
    assert publisher.get_port() == 8090


def test_withdrawal_failure_still_clears_registration(registrations, caplog):
    caplog.set_level(logging.WARNING)

    class FailingWithdrawal(RecordingRegistration):
        def unregister_service(self) -> None:
            raise RuntimeError("responder gone")

    publisher = DiscoveryPublisher(FailingWithdrawal)
    publisher.register("_webserver-http._tcp", 8090)

    publisher.unregister()

    assert publisher.registration is None
    assert registrations == [("register", "_webserver-http._tcp", 8090)]
    assert any(
        getattr(r, "event", None) == "discovery_unregister_failed"
        for r in caplog.records
    )
