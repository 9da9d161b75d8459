"""Policy specification models.

The policy specification is the document a platform team writes to describe
what an image must satisfy. Field names follow the wire format (camelCase):

    {
      "publicKey": "-----BEGIN PUBLIC KEY-----\\n...",
      "rekorUrl": "https://rekor.sigstore.dev",
      "sources": [{"policy": ["./policy"], "data": ["./data"]}],
      "configuration": {
        "include": ["*"],
        "exclude": ["release.test:buildah"],
        "collections": ["minimal"]
      },
      "exceptions": {"nonBlocking": ["not_useful"]}
    }

Unknown keys (``description``, ``name``, ...) are ignored so that policies pulled
from other tooling can be used as-is.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PolicyConfiguration(BaseModel):
    """Rule matching configuration.

    Attributes:
        include: Matchers selecting results to keep.
        exclude: Matchers selecting results to discard.
        collections: Rule collections to keep.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    collections: list[str] = Field(default_factory=list)


class PolicyExceptions(BaseModel):
    """Deprecated exception list, folded into exclusion."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    non_blocking: list[str] = Field(default_factory=list, alias="nonBlocking")


class PolicySource(BaseModel):
    """Location of rule and data bundles for one evaluator.

    Entries are local paths or URLs understood by ``conftest pull``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    policy: list[str] = Field(default_factory=list)
    data: list[str] = Field(default_factory=list)


class PolicySpec(BaseModel):
    """Deserialized policy specification.

    Attributes:
        public_key: PEM text or key reference used to verify signatures.
        rekor_url: Transparency log URL (empty to skip tlog verification).
        sources: Rule sources; each source gets its own evaluator.
        configuration: Rule matching configuration.
        exceptions: Deprecated non-blocking exception list.

    Example:
        >>> spec = PolicySpec.model_validate({"publicKey": "k8s://ns/key"})
        >>> spec.public_key
        'k8s://ns/key'
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    public_key: str = Field(default="", alias="publicKey")
    rekor_url: str = Field(default="", alias="rekorUrl")
    sources: list[PolicySource] = Field(default_factory=list)
    configuration: PolicyConfiguration | None = Field(default=None)
    exceptions: PolicyExceptions | None = Field(default=None)


__all__ = [
    "PolicyConfiguration",
    "PolicyExceptions",
    "PolicySource",
    "PolicySpec",
]
