"""Greybus operations, debug output, message formats and Control and Camera handlers."""

__version__ = "0.1.0"

__all__ = [
    "operation",
    "debug",
    "unipro_attrs",
    "hid",
    "i2c",
    "sdio",
    "vibrator",
    "control",
    "camera",
]