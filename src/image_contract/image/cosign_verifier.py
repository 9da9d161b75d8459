"""Signing verification backed by the cosign CLI and the ORAS registry client.

Registry access uses ``oras`` (a HEAD request on the image manifest, which
also yields the ``Docker-Content-Digest``). Signatures and attestations are
verified with ``cosign verify`` and ``cosign verify-attestation``.

Public keys are passed to cosign with ``--key``. PEM text is written to a
private temporary file; anything else (a file path, ``k8s://ns/name``, a KMS
URI) is passed through unchanged. Without a Rekor URL the transparency log is
not consulted (``--insecure-ignore-tlog``).

Environment Variables:
    IMAGE_CONTRACT_COSIGN: cosign binary (default: ``cosign``)

Example:
    >>> verifier = CosignVerifier()
    >>> ref = ImageReference.parse("quay.io/org/app:v1")
    >>> verifier.probe_accessible(ref, policy)
    True
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from oras.client import OrasClient

from image_contract.errors import CosignError, OperationCancelledError, RegistryUnavailableError
from image_contract.image.collaborators import AttestationCheckFailed, SignatureCheckFailed
from image_contract.process import run_command
from image_contract.schemas.attestation import AttestationRecord, SignatureInfo
from image_contract.telemetry.sanitization import sanitize_error_message

if TYPE_CHECKING:
    from image_contract.image.reference import ImageReference
    from image_contract.policy.context import PolicyContext

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

COSIGN_ENV = "IMAGE_CONTRACT_COSIGN"
PEM_PUBLIC_KEY_MARKER = "-----BEGIN PUBLIC KEY-----"

MANIFEST_MEDIA_TYPES = ",".join(
    [
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.oci.image.manifest.v1+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
        "application/vnd.docker.distribution.manifest.v2+json",
    ]
)

_NOT_FOUND_STATUSES = frozenset({401, 403, 404})


def cosign_binary() -> str:
    """Return the cosign binary to run."""
    return os.environ.get(COSIGN_ENV, "cosign")


class CosignVerifier:
    """SigningVerifier implementation using cosign and oras.

    Args:
        binary: cosign executable (default from IMAGE_CONTRACT_COSIGN).
        insecure: Allow plain HTTP registries.
        client_factory: Factory for OrasClient instances (injectable for tests).
    """

    def __init__(
        self,
        binary: str | None = None,
        insecure: bool = False,
        client_factory: Callable[[], OrasClient] | None = None,
    ) -> None:
        self.binary = binary or cosign_binary()
        self.insecure = insecure
        self._client_factory = client_factory or self._default_client
        self._log = logger.bind(component="CosignVerifier")

    def _default_client(self) -> OrasClient:
        return OrasClient(insecure=self.insecure)

    def _request_manifest(
        self,
        ref: ImageReference,
        cancel: threading.Event | None,
        method: str = "HEAD",
    ) -> Any:
        if cancel is not None and cancel.is_set():
            raise OperationCancelledError(f"registry {method} {ref}")
        client = self._client_factory()
        registry = client.remote
        container = registry.get_container(ref.name)
        url = f"{registry.prefix}://{container.manifest_url(ref.identifier)}"
        try:
            return registry.do_request(url, method, headers={"Accept": MANIFEST_MEDIA_TYPES})
        except Exception as e:
            raise RegistryUnavailableError(
                ref.registry, sanitize_error_message(str(e))
            ) from e

    def probe_accessible(
        self,
        ref: ImageReference,
        policy: PolicyContext,  # noqa: ARG002
        cancel: threading.Event | None = None,
    ) -> bool:
        """Return whether the registry serves the image manifest.

        Raises:
            RegistryUnavailableError: If the registry cannot be reached.
            OperationCancelledError: If ``cancel`` is set.
        """
        with tracer.start_as_current_span("image_contract.registry.probe") as span:
            span.set_attribute("image_contract.image.ref", str(ref))
            response = self._request_manifest(ref, cancel)
            status = response.status_code
            span.set_attribute("http.status_code", status)
            if status in _NOT_FOUND_STATUSES:
                self._log.debug("image_not_accessible", image=str(ref), status=status)
                return False
            if status >= 400:
                raise RegistryUnavailableError(ref.registry, f"HTTP {status}")
            return True

    def resolve_digest(
        self,
        ref: ImageReference,
        policy: PolicyContext,  # noqa: ARG002
        cancel: threading.Event | None = None,
    ) -> str:
        """Return the manifest digest, preferring the registry header.

        Raises:
            RegistryUnavailableError: If the manifest cannot be fetched.
            OperationCancelledError: If ``cancel`` is set.
        """
        if ref.digest:
            return ref.digest

        response = self._request_manifest(ref, cancel)
        digest = response.headers.get("Docker-Content-Digest")
        if digest:
            return str(digest)

        response = self._request_manifest(ref, cancel, method="GET")
        if response.status_code >= 400:
            raise RegistryUnavailableError(ref.registry, f"HTTP {response.status_code}")
        return "sha256:" + hashlib.sha256(response.content).hexdigest()

    @contextmanager
    def _key_argument(self, policy: PolicyContext) -> Iterator[str]:
        key = policy.public_key
        if PEM_PUBLIC_KEY_MARKER not in key:
            yield key
            return

        with tempfile.TemporaryDirectory(prefix="image-contract-key-") as tmpdir:
            key_path = Path(tmpdir) / "cosign.pub"
            key_path.write_text(key, encoding="utf-8")
            key_path.chmod(0o600)
            yield str(key_path)

    def _cosign(
        self,
        subcommand: str,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None,
    ) -> tuple[int, str, str]:
        with self._key_argument(policy) as key:
            cmd = [self.binary, subcommand, "--key", key]
            if policy.rekor_url:
                cmd.extend(["--rekor-url", policy.rekor_url])
            else:
                cmd.append("--insecure-ignore-tlog=true")
            if subcommand == "verify":
                cmd.extend(["--output", "json"])
            cmd.append(str(ref))

            try:
                result = run_command(cmd, operation=f"cosign {subcommand}", cancel=cancel)
            except FileNotFoundError as e:
                raise CosignError(
                    f"cosign CLI not found: {self.binary}. "
                    "Install from https://github.com/sigstore/cosign#installation"
                ) from e
        return result.returncode, result.stdout, result.stderr

    def verify_image_signature(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> list[SignatureInfo]:
        """Verify the image signature with ``cosign verify``.

        Raises:
            SignatureCheckFailed: If cosign rejects the signature.
            CosignError: If cosign cannot be run.
        """
        with tracer.start_as_current_span("image_contract.cosign.verify") as span:
            span.set_attribute("image_contract.image.ref", str(ref))
            returncode, stdout, stderr = self._cosign("verify", ref, policy, cancel)
            if returncode != 0:
                reason = sanitize_error_message(stderr.strip() or f"exit code {returncode}")
                span.set_attribute("image_contract.cosign.verified", False)
                raise SignatureCheckFailed(reason)

            span.set_attribute("image_contract.cosign.verified", True)
            return parse_verify_output(stdout)

    def verify_attestation_signatures(
        self,
        ref: ImageReference,
        policy: PolicyContext,
        cancel: threading.Event | None = None,
    ) -> list[AttestationRecord]:
        """Verify attestations with ``cosign verify-attestation``.

        Raises:
            AttestationCheckFailed: If cosign rejects the attestations or
                none can be decoded.
            CosignError: If cosign cannot be run.
        """
        with tracer.start_as_current_span("image_contract.cosign.verify_attestation") as span:
            span.set_attribute("image_contract.image.ref", str(ref))
            returncode, stdout, stderr = self._cosign("verify-attestation", ref, policy, cancel)
            if returncode != 0:
                reason = sanitize_error_message(stderr.strip() or f"exit code {returncode}")
                span.set_attribute("image_contract.cosign.verified", False)
                raise AttestationCheckFailed(reason)

            records = parse_attestation_output(stdout)
            if not records:
                raise AttestationCheckFailed("no verified attestations found")
            span.set_attribute("image_contract.attestation.count", len(records))
            return records


def parse_verify_output(output: str) -> list[SignatureInfo]:
    """Convert ``cosign verify --output json`` into SignatureInfo entries."""
    try:
        payloads = json.loads(output or "[]")
    except json.JSONDecodeError:
        logger.warning("cosign_verify_output_unparseable")
        return []
    if not isinstance(payloads, list):
        return []

    signatures: list[SignatureInfo] = []
    for payload in payloads:
        if not isinstance(payload, dict):
            continue
        metadata: dict[str, str] = {}
        optional = payload.get("optional")
        if isinstance(optional, dict):
            metadata.update({k: str(v) for k, v in optional.items() if v is not None})
        critical = payload.get("critical")
        if isinstance(critical, dict):
            identity = critical.get("identity")
            if isinstance(identity, dict) and "docker-reference" in identity:
                metadata["docker-reference"] = str(identity["docker-reference"])
            image = critical.get("image")
            if isinstance(image, dict) and "docker-manifest-digest" in image:
                metadata["docker-manifest-digest"] = str(image["docker-manifest-digest"])
        signatures.append(SignatureInfo(metadata=metadata))
    return signatures


def parse_attestation_output(output: str) -> list[AttestationRecord]:
    """Decode the DSSE envelopes printed by ``cosign verify-attestation``."""
    records: list[AttestationRecord] = []
    for index, line in enumerate(output.splitlines()):
        if not line.strip():
            continue
        try:
            envelope = json.loads(line)
            if not isinstance(envelope, dict):
                raise ValueError("envelope is not a JSON object")
            records.append(AttestationRecord.from_envelope(envelope))
        except ValueError as e:
            logger.warning("attestation_envelope_skipped", index=index, error=str(e))
    return records


__all__ = [
    "COSIGN_ENV",
    "CosignVerifier",
    "cosign_binary",
    "parse_attestation_output",
    "parse_verify_output",
]
