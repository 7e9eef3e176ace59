"""Packet payload codec for a Bedrock game proxy."""

__version__ = "0.1.0"
