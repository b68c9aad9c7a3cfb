"""Checksum helpers guarding downloaded packages."""

from __future__ import annotations

import hashlib
import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from services.update.constants import MANIFEST_CHECKSUM_ELEMENT
from services.update.errors import ChecksumMismatchError, IOTransferError, ManifestError
from services.update.models import UpdateManifest


_LOGGER = logging.getLogger(__name__)

__all__ = [
    "calculate_sha256",
    "parse_hash_text",
    "parse_manifest",
    "verify_checksum",
]


def calculate_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    try:
        with path.open("rb") as source:
            for chunk in iter(lambda: source.read(65536), b""):
                digest.update(chunk)
    except OSError as exc:
        raise IOTransferError(f"Failed to read {path.name} for hashing: {exc}") from exc
    return digest.hexdigest()


def parse_hash_text(text: str) -> str:
    for token in text.split():
        if token:
            return token.strip()
    raise ManifestError("Hash file did not contain a digest")


def parse_manifest(text: str) -> UpdateManifest:
    """Return the checksum carried by a downloaded manifest.

    Manifests are XML documents with a ``SHA256`` element.  Plain text
    manifests whose first token is the digest are accepted as well.
    """

    stripped = text.lstrip("\ufeff").strip()
    if not stripped.startswith("<"):
        return UpdateManifest(parse_hash_text(stripped))
    try:
        root = ET.fromstring(stripped)
    except ET.ParseError as exc:
        raise ManifestError(f"Manifest is not valid XML: {exc}") from exc

    element = root if root.tag == MANIFEST_CHECKSUM_ELEMENT else root.find(
        f".//{MANIFEST_CHECKSUM_ELEMENT}"
    )
    if element is None or not (element.text or "").strip():
        raise ManifestError(
            f"No {MANIFEST_CHECKSUM_ELEMENT} element inside the manifest could be found."
        )
    return UpdateManifest(element.text.strip())


def verify_checksum(path: Path, manifest: UpdateManifest | None) -> None:
    """Raise :class:`ChecksumMismatchError` when ``path`` does not match ``manifest``."""

    if manifest is None:
        _LOGGER.info("No manifest available for %s; skipping checksum verification", path.name)
        return
    actual = calculate_sha256(path)
    expected = manifest.checksum.strip()
    if expected.lower() != actual.lower():
        raise ChecksumMismatchError(
            f"Checksum of {path.name} did not match the manifest: "
            f"expected {expected} but received {actual}"
        )
    _LOGGER.info("Verified checksum of %s", path.name)
