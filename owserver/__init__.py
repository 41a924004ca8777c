"""EDS OWServer 1-wire gateway binding for the IoT hub."""

from .binding import BindingConfig as BindingConfig
from .binding import OWServerBinding as OWServerBinding
from .edsapi import EdsAPI as EdsAPI
from .hubclient import HubClient as HubClient
