"""Reddit feeds control panel."""

__version__ = "1.0.0"
