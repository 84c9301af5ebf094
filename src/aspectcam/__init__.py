"""Multi-aspect camera capture: square, horizontal and vertical outputs from one take."""

__version__ = "0.1.0"
