"""
TESmart 16x1 HDMI switch control over its TCP port.
"""

import socket
from dataclasses import dataclass

from .logger import get_logger

logger = get_logger("kvm_switch")

MIN_PORT = 1
MAX_PORT = 16


def build_switch_packet(port: int) -> bytes:
    """Control code that selects an input: AA BB 03 01 <port> EE."""
    if not isinstance(port, int) or not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"KVM port must be between {MIN_PORT} and {MAX_PORT}, got {port!r}")
    return bytes([0xAA, 0xBB, 0x03, 0x01, port, 0xEE])


@dataclass
class KVMSwitch:
    host: str = "192.168.1.239"
    port: int = 5000
    timeout: float = 3.0

    def switch(self, input_port: int) -> None:
        """Select an HDMI input. Raises OSError if the switch can't be reached."""
        packet = build_switch_packet(input_port)
        with socket.create_connection((self.host, self.port), timeout=self.timeout) as sock:
            sock.sendall(packet)
        logger.info(f"Switched KVM to input {input_port}")
