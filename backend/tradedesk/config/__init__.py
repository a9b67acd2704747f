"""Configuration package for the trading-operations P&L service."""

from .settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]
