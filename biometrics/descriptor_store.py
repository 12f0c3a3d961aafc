"""Tenant-scoped cache of enrolled face descriptors.

A store is owned by whoever runs the camera session: ``init(tenant_id)`` loads
the tenant's descriptors once, identification reads the in-memory copy, and
``upsert``/``delete`` write through to the database and update the cache before
returning so the next identification sees the change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
from cryptography.fernet import InvalidToken
from django.db import DatabaseError, transaction

from src.common import FaceDataEncryption

from .exceptions import DescriptorStoreError, StoreNotInitialised
from .models import FaceDescriptor
from .pipeline import coerce_embedding

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class EnrolledDescriptor:
    employee_id: str
    embedding: np.ndarray


class DescriptorStore:
    def __init__(
        self,
        descriptor_length: int = 128,
        encryption: Optional[FaceDataEncryption] = None,
    ) -> None:
        self.descriptor_length = descriptor_length
        self._encryption = encryption or FaceDataEncryption()
        self._tenant_id: Optional[str] = None
        self._cache: Dict[str, np.ndarray] = {}

    @property
    def tenant_id(self) -> str:
        self._require_init()
        return self._tenant_id

    def _require_init(self) -> None:
        if self._tenant_id is None:
            raise StoreNotInitialised("Call init(tenant_id) before using the descriptor store.")

    @property
    def initialised(self) -> bool:
        return self._tenant_id is not None

    def init(self, tenant_id: str) -> List[EnrolledDescriptor]:
        """Bind the store to ``tenant_id`` and load its descriptors."""

        self._tenant_id = str(tenant_id)
        self._cache = {}
        return self.refresh()

    def load(self, tenant_id: str) -> List[EnrolledDescriptor]:
        """Read every well-formed descriptor of ``tenant_id`` from the database.

        Records that fail to decrypt or do not hold a finite vector of the
        configured length are skipped with a warning.
        """

        try:
            rows = list(
                FaceDescriptor.objects.filter(tenant_id=tenant_id).values_list(
                    "employee_id", "encrypted_embedding"
                )
            )
        except DatabaseError as exc:
            raise DescriptorStoreError(
                f"Could not load descriptors for tenant {tenant_id}"
            ) from exc

        loaded: List[EnrolledDescriptor] = []
        for employee_id, token in rows:
            try:
                embedding = self._encryption.decrypt_descriptor(
                    bytes(token), expected_length=self.descriptor_length
                )
            except (InvalidToken, ValueError, TypeError) as exc:
                logger.warning(
                    "Skipping malformed face descriptor",
                    extra={
                        "event": "descriptor_skipped",
                        "tenant_id": tenant_id,
                        "employee_id": employee_id,
                        "error": str(exc) or exc.__class__.__name__,
                    },
                )
                continue
            loaded.append(EnrolledDescriptor(employee_id=employee_id, embedding=embedding))
        return loaded

    def refresh(self) -> List[EnrolledDescriptor]:
        descriptors = self.load(self.tenant_id)
        self._cache = {item.employee_id: item.embedding for item in descriptors}
        logger.info(
            "Loaded enrolled faces",
            extra={
                "event": "descriptors_loaded",
                "tenant_id": self._tenant_id,
                "count": len(self._cache),
            },
        )
        return descriptors

    def clear(self) -> None:
        self._cache = {}
        self._tenant_id = None

    def descriptors(self) -> List[EnrolledDescriptor]:
        self._require_init()
        return [
            EnrolledDescriptor(employee_id=employee_id, embedding=embedding)
            for employee_id, embedding in self._cache.items()
        ]

    def get(self, employee_id: str) -> Optional[np.ndarray]:
        self._require_init()
        return self._cache.get(str(employee_id))

    def __len__(self) -> int:
        return len(self._cache)

    def upsert(
        self, employee_id: str, embedding: Sequence[float] | np.ndarray, *, capture_count: int = 0
    ) -> EnrolledDescriptor:
        """Replace the employee's descriptor, creating it when missing."""

        tenant_id = self.tenant_id
        employee_id = str(employee_id)
        vector = coerce_embedding(embedding, self.descriptor_length)
        token = self._encryption.encrypt_descriptor(vector)
        try:
            with transaction.atomic():
                FaceDescriptor.objects.update_or_create(
                    tenant_id=tenant_id,
                    employee_id=employee_id,
                    defaults={"encrypted_embedding": token, "capture_count": capture_count},
                )
        except DatabaseError as exc:
            raise DescriptorStoreError(
                f"Could not store the face descriptor for employee {employee_id}"
            ) from exc

        self._cache[employee_id] = vector
        logger.info(
            "Stored face descriptor",
            extra={
                "event": "descriptor_upsert",
                "tenant_id": tenant_id,
                "employee_id": employee_id,
            },
        )
        return EnrolledDescriptor(employee_id=employee_id, embedding=vector)

    def delete(self, employee_id: str) -> bool:
        """Remove the employee's descriptor; returns ``False`` if none existed."""

        tenant_id = self.tenant_id
        employee_id = str(employee_id)
        try:
            deleted, _ = FaceDescriptor.objects.filter(
                tenant_id=tenant_id, employee_id=employee_id
            ).delete()
        except DatabaseError as exc:
            raise DescriptorStoreError(
                f"Could not delete the face descriptor for employee {employee_id}"
            ) from exc

        self._cache.pop(employee_id, None)
        logger.info(
            "Deleted face descriptor",
            extra={
                "event": "descriptor_delete",
                "tenant_id": tenant_id,
                "employee_id": employee_id,
                "deleted": bool(deleted),
            },
        )
        return bool(deleted)

    def has_enrollment(self, employee_id: str) -> bool:
        try:
            return FaceDescriptor.objects.filter(
                tenant_id=self.tenant_id, employee_id=str(employee_id)
            ).exists()
        except DatabaseError as exc:
            raise DescriptorStoreError("Could not check the enrollment status") from exc


__all__ = ["DescriptorStore", "EnrolledDescriptor"]
