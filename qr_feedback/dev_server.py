#!/usr/bin/env python3
"""
Development server with auto-port detection (8000-8006)
"""
import logging
import socket

import uvicorn

logger = logging.getLogger(__name__)


def is_port_available(port: int, host: str = "0.0.0.0") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False


def find_available_port(start: int = 8000, end: int = 8006) -> int:
    for port in range(start, end + 1):
        if is_port_available(port):
            return port
    raise RuntimeError(f"No available ports in range {start}-{end}")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    port = find_available_port()
    logger.info(f"Starting server on port {port}")
    uvicorn.run(
        "qr_feedback.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info"
    )


if __name__ == "__main__":
    main()
