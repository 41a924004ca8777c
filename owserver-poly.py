#!/usr/bin/env python3
"""
This is a Plugin/NodeServer for Polyglot v3 written in Python3
It is a plugin to publish the devices of an EDS OWServer 1-wire gateway
as things on an MQTT IoT hub for EISY/Polisy

udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(c) 2025
"""

# std libraries
import sys

# external libraries
import udi_interface

# local imports
from nodes import Controller

LOGGER = udi_interface.LOGGER

VERSION = "0.1.0"

"""
0.1.0
DONE gateway discovery by UDP broadcast or configured address
DONE file:// simulation of the gateway, including writes
DONE Thing Descriptions retained on the hub, changed values only
DONE actions & configuration written to the gateway and verified
DONE optional removal of devices missing from the gateway (stale_after)
"""

if __name__ == "__main__":
    polyglot = None
    try:
        """
        Instantiates the Interface to Polyglot.
        """
        polyglot = udi_interface.Interface([])
        polyglot.start(VERSION)
        polyglot.updateProfile()

        """
        Creates the Controller Node and passes in the Interface, the node's
        parent address, node's address, and name/title
        """
        control = Controller(polyglot, "owctrl", "owctrl", "OWServer")

        """
        Sits around and does nothing forever, keeping your program running.
        """
        polyglot.runForever()
    except (KeyboardInterrupt, SystemExit):
        LOGGER.warning("Received interrupt or exit...")
        """
        Catch SIGTERM or Control-C and exit cleanly.
        """
        if polyglot is not None:
            polyglot.stop()
    except Exception as err:
        LOGGER.error("Exception: {0}".format(err), exc_info=True)
    sys.exit(0)
