"""Exceptions raised by the lift remote."""


class RemoteError(Exception):
    """Base class for all lift remote errors."""


class ConnectError(RemoteError):
    """Raised when a connect sequence fails at one of its steps."""


class DiscoveryError(ConnectError):
    """Raised when no matching peripheral is found or the user cancels the pick."""


class LinkError(ConnectError):
    """Raised when the transport refuses the link to the peripheral."""


class ServiceNotFoundError(ConnectError):
    """Raised when the peripheral does not expose the control service."""

    def __init__(self, service_uuid: str) -> None:
        super().__init__(f"Service {service_uuid} not found on peripheral")
        self.service_uuid = service_uuid


class EndpointNotFoundError(ConnectError):
    """Raised when the control service lacks the command characteristic."""

    def __init__(self, characteristic_uuid: str) -> None:
        super().__init__(f"Characteristic {characteristic_uuid} not found in service")
        self.characteristic_uuid = characteristic_uuid


class SendError(RemoteError):
    """Raised when a motion command could not be transmitted."""


class SendNotReadyError(SendError):
    """Raised when there is no active command endpoint to write to."""


class SendTransportError(SendError):
    """Raised when the write was rejected by the BLE stack or the link failed."""
