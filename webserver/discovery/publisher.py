"""Local network advertisement of the plain HTTP listener.

The announcement protocol (mDNS/Bonjour) is provided by the composer through a
registration factory; ``NullServiceRegistration`` is used when discovery is off.
"""

from typing import Callable, Optional, Protocol

from webserver.domain.correlation_id import get_logger

DISCOVERY_LOGGER = get_logger("discovery")


class DiscoveryError(Exception):
    """Raised by a registration backend when announcing or withdrawing fails."""


class ServiceRegistration(Protocol):
    """One advertised (service name, port) pair."""

    service_name: str
    port: int

    def register_service(self) -> None: ...

    def unregister_service(self) -> None: ...


RegistrationFactory = Callable[[str, int], ServiceRegistration]


class NullServiceRegistration:
    """Registration that announces nothing."""

    def __init__(self, service_name: str, port: int) -> None:
        self.service_name = service_name
        self.port = port

    def register_service(self) -> None:
        DISCOVERY_LOGGER.debug(
            "Discovery disabled, not announcing",
            extra={
                "event": "discovery_noop",
                "service_name": self.service_name,
                "port": self.port,
            },
        )

    def unregister_service(self) -> None:
        pass


class DiscoveryPublisher:
    """Keeps at most one registration, always for the latest port."""

    def __init__(
        self, registration_factory: RegistrationFactory = NullServiceRegistration
    ) -> None:
        self._factory = registration_factory
        self._registration: Optional[ServiceRegistration] = None

    @property
    def registration(self) -> Optional[ServiceRegistration]:
        return self._registration

    def get_port(self) -> Optional[int]:
        return self._registration.port if self._registration is not None else None

    def register(self, service_name: str, port: int) -> None:
        current = self._registration
        if current is not None:
            if current.port == port and current.service_name == service_name:
                return
            self.unregister()

        try:
            registration = self._factory(service_name, port)
            registration.register_service()
        except Exception as error:  # pylint: disable=broad-except
            DISCOVERY_LOGGER.error(
                "Service registration failed, continuing without discovery",
                extra={
                    "event": "discovery_register_failed",
                    "service_name": service_name,
                    "port": port,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
                exc_info=not isinstance(error, DiscoveryError),
            )
            return

        self._registration = registration
        DISCOVERY_LOGGER.info(
            "Service registered",
            extra={
                "event": "discovery_registered",
                "service_name": service_name,
                "port": port,
            },
        )

    def unregister(self) -> None:
        registration, self._registration = self._registration, None
        if registration is None:
            return
        try:
            registration.unregister_service()
        except Exception as error:  # pylint: disable=broad-except
            DISCOVERY_LOGGER.warning(
                "Service withdrawal failed",
                extra={
                    "event": "discovery_unregister_failed",
                    "service_name": registration.service_name,
                    "port": registration.port,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
                exc_info=not isinstance(error, DiscoveryError),
            )
            return
        DISCOVERY_LOGGER.info(
            "Service unregistered",
            extra={
                "event": "discovery_unregistered",
                "service_name": registration.service_name,
                "port": registration.port,
            },
        )
