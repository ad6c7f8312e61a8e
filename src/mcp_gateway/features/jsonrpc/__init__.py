"""
JSON-RPC sur stdio: framing, codec et corrélation.
"""

from .codec import Envelope, decode_envelope, encode_envelope
from .correlator import PendingCall, RequestCorrelator
from .framing import LineFramer

__all__ = [
    "Envelope",
    "decode_envelope",
    "encode_envelope",
    "PendingCall",
    "RequestCorrelator",
    "LineFramer",
]
