"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Exceptions raised by the OWServer gateway client and binding.
"""


class OWServerError(Exception):
    """Base error for the OWServer binding."""


class DiscoveryTimeout(OWServerError):
    """No gateway answered the discovery broadcast in time."""


class TransportError(OWServerError):
    """Network or HTTP failure while talking to the gateway."""


class FileReadError(TransportError):
    """The local simulation file could not be read."""


class DecodeError(OWServerError):
    """The gateway document is not well-formed XML."""


class NotInitialized(OWServerError):
    """Operation requested before the client was created or started."""


class WriteFailure(OWServerError):
    """Writing a variable to the gateway failed."""


class PublishFailure(OWServerError):
    """The hub transport could not publish a message."""
