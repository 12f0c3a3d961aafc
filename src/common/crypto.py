"""Fernet helpers for keeping biometric vectors encrypted at rest."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

BytesLike = Union[bytes, bytearray, memoryview]


def _coerce_key_bytes(key: BytesLike | str) -> bytes:
    """Normalise the configured Fernet key to ``bytes``."""

    if isinstance(key, str):
        return key.encode()
    return bytes(key)


@dataclass(slots=True)
class _FernetWrapper:
    """Lazily instantiate a Fernet cipher using a Django setting."""

    setting_name: str
    key_override: BytesLike | str | None = None
    _cipher: Fernet | None = None

    def _resolve_key(self) -> bytes:
        key = self.key_override
        if key is None:
            key = getattr(settings, self.setting_name, None)
        if key is None:
            raise ImproperlyConfigured(f"{self.setting_name} is not configured.")

        key_bytes = _coerce_key_bytes(key)
        try:
            Fernet(key_bytes)
        except (TypeError, ValueError) as exc:
            raise ImproperlyConfigured(f"{self.setting_name} is invalid.") from exc
        return key_bytes

    def _get_cipher(self) -> Fernet:
        if self._cipher is None:
            self._cipher = Fernet(self._resolve_key())
        return self._cipher

    def encrypt(self, payload: BytesLike) -> bytes:
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError("encrypt expects a bytes-like object")
        return self._get_cipher().encrypt(bytes(payload))

    def decrypt(self, token: BytesLike) -> bytes:
        if not isinstance(token, (bytes, bytearray, memoryview)):
            raise TypeError("decrypt expects a bytes-like object")
        return self._get_cipher().decrypt(bytes(token))


class FaceDataEncryption:
    """Encrypt face descriptors as JSON number arrays with the face data key.

    Descriptors are serialised as a JSON list so a record written by another
    client (or an older schema) can still be validated element by element when
    the store loads it.
    """

    def __init__(self, key: BytesLike | str | None = None) -> None:
        self._helper = _FernetWrapper("FACE_DATA_ENCRYPTION_KEY", key_override=key)

    def encrypt(self, data: BytesLike) -> bytes:
        return self._helper.encrypt(data)

    def decrypt(self, token: BytesLike) -> bytes:
        return self._helper.decrypt(token)

    def encrypt_descriptor(self, descriptor: Sequence[float] | np.ndarray) -> bytes:
        """Encrypt a descriptor vector."""

        values = [float(value) for value in np.asarray(descriptor, dtype=float).ravel()]
        return self.encrypt(json.dumps(values).encode())

    def decrypt_descriptor(
        self, token: BytesLike, *, expected_length: Optional[int] = None
    ) -> np.ndarray:
        """Decrypt a stored descriptor.

        Raises:
            InvalidToken: The token was not produced with the configured key.
            ValueError: The payload is not a finite numeric vector of the
                expected length.
        """

        payload = json.loads(self.decrypt(token).decode())
        if not isinstance(payload, list):
            raise ValueError("descriptor payload is not a list")
        if expected_length is not None and len(payload) != expected_length:
            raise ValueError(
                f"descriptor has {len(payload)} values, expected {expected_length}"
            )
        values = [float(value) for value in payload]
        if not values or not all(math.isfinite(value) for value in values):
            raise ValueError("descriptor contains non-finite values")
        return np.array(values, dtype=float)


__all__ = ["FaceDataEncryption", "InvalidToken"]
