"""Container image references.

Accepted forms::

    registry.example.com/org/image:tag
    registry.example.com/org/image@sha256:<hex>
    registry.example.com:5000/org/image:tag@sha256:<hex>
    org/image              (index.docker.io, tag "latest")

After resolution, references are pinned by digest and the tag is dropped so
that every later step addresses exactly one manifest.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from image_contract.errors import ImageReferenceError

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"

_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")


def _looks_like_registry(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


@dataclass(frozen=True)
class ImageReference:
    """A parsed image reference.

    Attributes:
        registry: Registry host (with optional port).
        repository: Repository path within the registry.
        tag: Tag, or None.
        digest: Manifest digest (``<algorithm>:<hex>``), or None.
    """

    registry: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    @classmethod
    def parse(cls, reference: str) -> ImageReference:
        """Parse an image reference.

        Args:
            reference: Reference string.

        Returns:
            Parsed ImageReference. A reference with neither tag nor digest
            gets the ``latest`` tag.

        Raises:
            ImageReferenceError: If the reference is malformed.

        Example:
            >>> str(ImageReference.parse("quay.io/org/app:v1"))
            'quay.io/org/app:v1'
        """
        value = reference.strip()
        if not value:
            raise ImageReferenceError(reference, "empty reference")

        name, digest = value, None
        if "@" in value:
            name, digest = value.split("@", 1)
            if not _DIGEST.match(digest):
                raise ImageReferenceError(reference, f"invalid digest {digest!r}")

        tag = None
        last_slash = name.rfind("/")
        colon = name.rfind(":")
        if colon > last_slash:
            name, tag = name[:colon], name[colon + 1 :]
            if not _TAG.match(tag):
                raise ImageReferenceError(reference, f"invalid tag {tag!r}")

        parts = name.split("/")
        if len(parts) > 1 and _looks_like_registry(parts[0]):
            registry, path = parts[0], parts[1:]
        else:
            registry, path = DEFAULT_REGISTRY, parts
            if len(path) == 1:
                path = ["library", *path]

        if not path or not all(_COMPONENT.match(p) for p in path):
            raise ImageReferenceError(reference, "invalid repository name")

        if tag is None and digest is None:
            tag = DEFAULT_TAG

        return cls(registry=registry, repository="/".join(path), tag=tag, digest=digest)

    @property
    def name(self) -> str:
        """Registry and repository, without tag or digest."""
        return f"{self.registry}/{self.repository}"

    @property
    def identifier(self) -> str:
        """Digest if known, otherwise the tag."""
        return self.digest or self.tag or DEFAULT_TAG

    def with_digest(self, digest: str) -> ImageReference:
        """Return the reference pinned to ``digest`` with the tag dropped."""
        if not _DIGEST.match(digest):
            raise ImageReferenceError(f"{self.name}@{digest}", f"invalid digest {digest!r}")
        return replace(self, tag=None, digest=digest)

    def __str__(self) -> str:
        text = self.name
        if self.tag:
            text += f":{self.tag}"
        if self.digest:
            text += f"@{self.digest}"
        return text


__all__ = ["DEFAULT_REGISTRY", "DEFAULT_TAG", "ImageReference"]
