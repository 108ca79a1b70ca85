"""
Radio drivers.

This module provides implementations of the RadioAdapter interface.

Available drivers:
- bleak: Cross-platform BLE central using bleak (Windows/macOS/Linux)

Usage:
    from blesense.drivers import get_radio_adapter
    adapter = get_radio_adapter()
"""

from ..interfaces import RadioAdapter


def get_radio_adapter() -> RadioAdapter:
    """Get the default radio adapter for the current platform."""
    return get_bleak_radio_adapter()


def get_bleak_radio_adapter() -> RadioAdapter:
    """Get the bleak-based radio adapter."""
    from .bleak_driver import BleakRadioAdapter
    return BleakRadioAdapter()


__all__ = [
    "get_radio_adapter",
    "get_bleak_radio_adapter",
    "RadioAdapter",
]
