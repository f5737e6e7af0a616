"""Bitrix24 REST bridge: token lifecycle and resilient RPC calls."""

__version__ = "0.1.0"
