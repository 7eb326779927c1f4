from .http_transport import HttpTransport, build_url

__all__ = ["HttpTransport", "build_url"]
