"""Shared security helpers."""

from .crypto import FaceDataEncryption, InvalidToken

__all__ = [
    "FaceDataEncryption",
    "InvalidToken",
]
