from dtsli.clients.base import BaseHTTPClient
from dtsli.clients.dynatrace import DynatraceClient

__all__ = ["BaseHTTPClient", "DynatraceClient"]
