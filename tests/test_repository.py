"""Unit tests for repository.py - record decoding."""

import pytest

from repository import DecodeError, Repository, RepositorySpec, decode_repository
from helpers import make_record


class TestDecodeRepository:
    """Tests for decode_repository."""

    def test_valid_record(self, sample_record):
        repo = decode_repository(sample_record)
        assert repo == Repository(
            name="repo-a",
            namespace="tacos",
            remote_url="https://example/a.git",
            username="u",
            access_token="t",
        )
        assert repo.key == ("tacos", "repo-a")
        assert str(repo) == "tacos/repo-a"

    def test_extra_spec_fields_ignored(self, sample_record):
        sample_record["spec"]["branch"] = "main"
        assert decode_repository(sample_record).name == "repo-a"

    def test_missing_spec(self, sample_record):
        del sample_record["spec"]
        with pytest.raises(DecodeError) as exc_info:
            decode_repository(sample_record)
        assert exc_info.value.name == "repo-a"
        assert exc_info.value.namespace == "tacos"
        assert "spec" in exc_info.value.reason

    def test_missing_access_token(self, sample_record):
        del sample_record["spec"]["accessToken"]
        with pytest.raises(DecodeError) as exc_info:
            decode_repository(sample_record)
        assert "accessToken" in exc_info.value.reason

    def test_wrong_type(self, sample_record):
        sample_record["spec"]["username"] = 42
        with pytest.raises(DecodeError) as exc_info:
            decode_repository(sample_record)
        assert "username" in exc_info.value.reason

    def test_empty_url(self):
        with pytest.raises(DecodeError):
            decode_repository(make_record(url="  "))

    def test_missing_name(self, sample_record):
        del sample_record["metadata"]["name"]
        with pytest.raises(DecodeError) as exc_info:
            decode_repository(sample_record)
        assert "metadata.name" in str(exc_info.value)

    def test_missing_metadata(self):
        with pytest.raises(DecodeError):
            decode_repository({"spec": {}})

    def test_not_a_map(self):
        with pytest.raises(DecodeError):
            decode_repository(["not", "a", "record"])


class TestCredentials:
    """The access token never shows up in reprs."""

    def test_repository_repr_hides_token(self):
        repo = decode_repository(make_record(token="super-secret"))
        assert "super-secret" not in repr(repo)
        assert "super-secret" not in str(repo)

    def test_spec_repr_hides_token(self):
        spec = RepositorySpec.model_validate(
            {"repoUrl": "https://example/a.git", "username": "u", "accessToken": "super-secret"}
        )
        assert "super-secret" not in repr(spec)

    def test_decode_error_hides_token(self, sample_record):
        sample_record["spec"]["accessToken"] = "super-secret"
        del sample_record["spec"]["username"]
        with pytest.raises(DecodeError) as exc_info:
            decode_repository(sample_record)
        assert "super-secret" not in str(exc_info.value)
