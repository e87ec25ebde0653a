"""
Adaptive Auth Processors

Public exports for authentication context assembly.
"""

from adaptive_auth.processors.context import ContextBuilder, describe_device, device_fingerprint

__all__ = [
    "ContextBuilder",
    "describe_device",
    "device_fingerprint",
]
