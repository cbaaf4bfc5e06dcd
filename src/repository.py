"""
Repository descriptors decoded from watched-repository records.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class DecodeError(Exception):
    """Raised when a record cannot be decoded into a Repository."""

    def __init__(
        self,
        reason: str,
        name: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        self.reason = reason
        self.name = name
        self.namespace = namespace
        identity = f"{namespace or '?'}/{name or '?'}"
        super().__init__(f"cannot decode repository {identity}: {reason}")


class RepositorySpec(BaseModel):
    """The ``spec`` block of a GithubRepository resource."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    repo_url: str = Field(alias="repoUrl")
    username: str
    access_token: str = Field(alias="accessToken", repr=False)

    @field_validator("repo_url")
    @classmethod
    def validate_repo_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("repoUrl must not be empty")
        return v.strip()


@dataclass(frozen=True)
class Repository:
    """A watched repository, valid for one poll cycle."""

    name: str
    namespace: str
    remote_url: str
    username: str
    access_token: str = field(repr=False)  # Never log the token

    @property
    def key(self) -> Tuple[str, str]:
        return (self.namespace, self.name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()))
        parts.append(f"spec.{location}: {error.get('msg')}")
    return "; ".join(parts)


def decode_repository(record: Dict[str, Any]) -> Repository:
    """
    Decode an untyped record into a Repository.

    Args:
        record: The record as returned by the store.

    Returns:
        The decoded Repository.

    Raises:
        DecodeError: If a required field is missing or has the wrong type.
    """
    if not isinstance(record, dict):
        raise DecodeError(f"record is a {type(record).__name__}, not a map")

    metadata = record.get("metadata")
    if not isinstance(metadata, dict):
        raise DecodeError("metadata is missing or not a map")

    name = metadata.get("name")
    namespace = metadata.get("namespace")
    if not isinstance(name, str) or not name:
        raise DecodeError("metadata.name is missing or not a string", namespace=namespace)
    if not isinstance(namespace, str) or not namespace:
        raise DecodeError("metadata.namespace is missing or not a string", name=name)

    spec = record.get("spec")
    if not isinstance(spec, dict):
        raise DecodeError("spec is missing or not a map", name, namespace)

    try:
        parsed = RepositorySpec.model_validate(spec)
    except ValidationError as e:
        raise DecodeError(_describe_validation_error(e), name, namespace) from e

    return Repository(
        name=name,
        namespace=namespace,
        remote_url=parsed.repo_url,
        username=parsed.username,
        access_token=parsed.access_token,
    )
