"""Onkyo/Integra eISCP receiver control and state sync."""

__version__ = "0.3.0"
