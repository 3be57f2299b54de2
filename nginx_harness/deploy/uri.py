import socket
from urllib.parse import urlsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def find_free_port(host: str = "localhost") -> int:
    """Find a free TCP port on the given host."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def build_test_uri(scheme: str = "http", host: str = "localhost") -> str:
    """Builds a URI on a currently free port, e.g. ``http://localhost:49213/``."""
    return f"{scheme}://{host}:{find_free_port(host)}/"


def get_port(uri: str) -> int:
    """
    Returns the port a URI addresses, falling back to the scheme default.

    :raises ValueError: If the URI has no port and an unknown scheme.
    """
    parts = urlsplit(uri)
    if parts.port is not None:
        return parts.port
    if parts.scheme in DEFAULT_PORTS:
        return DEFAULT_PORTS[parts.scheme]
    raise ValueError(f"Cannot determine port of URI '{uri}'")
