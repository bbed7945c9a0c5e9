"""
Tamper detection for manifests.

The hash covers the actions and timestamp; the signature is an HMAC over the
whole record. Algorithms sit behind the ``ManifestIntegrity`` protocol so a
store can be given a different implementation without changing the format.
"""

import hashlib
import hmac
import json
import platform
from typing import Any, Optional, Protocol, Sequence

from .models import MANIFEST_VERSION, Manifest, RollbackAction, VerificationResult

SECRET_SEED = "fileshift-manifest-v1"


def canonical_json(data: Any) -> bytes:
    return json.dumps(
        data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def host_secret() -> str:
    """Derive a per-host signing key from stable machine facts."""
    machine_info = "|".join(
        [
            platform.node(),
            platform.system(),
            platform.machine(),
            platform.processor() or "unknown",
        ]
    )
    return hashlib.sha256((SECRET_SEED + machine_info).encode("utf-8")).hexdigest()


class ManifestIntegrity(Protocol):
    """Hashing and signing used to seal a manifest."""

    def compute_hash(self, actions: Sequence[RollbackAction], timestamp: int) -> str: ...

    def compute_signature(self, manifest: Manifest) -> str: ...

    def verify(self, manifest: Manifest) -> VerificationResult: ...


class HmacSha256Integrity:
    """SHA-256 content hash plus HMAC-SHA256 signature."""

    def __init__(self, secret: Optional[str] = None):
        self._key = (secret or host_secret()).encode("utf-8")

    def compute_hash(self, actions: Sequence[RollbackAction], timestamp: int) -> str:
        data = {
            "actions": [
                a.model_dump(mode="json", by_alias=True, exclude_none=True)
                for a in actions
            ],
            "timestamp": timestamp,
        }
        return hashlib.sha256(canonical_json(data)).hexdigest()

    def compute_signature(self, manifest: Manifest) -> str:
        record = manifest.to_record()
        record.pop("signature", None)
        return hmac.new(self._key, canonical_json(record), hashlib.sha256).hexdigest()

    def verify(self, manifest: Manifest) -> VerificationResult:
        if manifest.version != MANIFEST_VERSION:
            return VerificationResult(
                valid=False, error="Invalid or missing manifest version"
            )

        if not manifest.hash:
            return VerificationResult(valid=False, error="Missing manifest hash")

        expected_hash = self.compute_hash(manifest.actions, manifest.timestamp)
        if not hmac.compare_digest(expected_hash, manifest.hash):
            return VerificationResult(
                valid=False,
                error="Manifest hash mismatch - possible tampering detected",
            )

        if not manifest.signature:
            return VerificationResult(valid=False, error="Missing manifest signature")

        expected_signature = self.compute_signature(manifest)
        if not hmac.compare_digest(expected_signature, manifest.signature):
            return VerificationResult(
                valid=False,
                error="Manifest signature mismatch - possible tampering detected",
            )

        return VerificationResult(valid=True)
