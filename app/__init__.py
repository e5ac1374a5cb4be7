"""ServiceDesk proxy: keeps the ServiceDesk Plus auth token server side."""

__version__ = "1.0.0"
