"""docpress - content-addressed static documentation builds."""

__version__ = "0.1.0"
