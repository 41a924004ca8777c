"""Node classes used by the OWServer Node Server."""

from .Controller import Controller as Controller
