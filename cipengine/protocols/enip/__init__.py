"""
EtherNet/IP (ENIP) encapsulation of CIP over TCP.
"""

from .enip_const import *
from .enip_driver import EnipDriver
from .enip_packets import ENIP, ENIPRegisterSession, SecureRegisterSession
from .enip_socket import EnipSocket, Transport
