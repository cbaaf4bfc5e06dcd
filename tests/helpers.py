"""Shared builders for test records."""

from store.base import ResourceType

RESOURCE_TYPE = ResourceType(group="0x42.in", version="v1alpha1", plural="githubrepositories")


def make_record(
    name="repo-a",
    namespace="tacos",
    url="https://example/a.git",
    username="u",
    token="t",
    annotations=None,
):
    """Build a GithubRepository record as the cluster API returns it."""
    metadata = {"name": name, "namespace": namespace}
    if annotations is not None:
        metadata["annotations"] = annotations
    return {
        "apiVersion": "0x42.in/v1alpha1",
        "kind": "GithubRepository",
        "metadata": metadata,
        "spec": {"repoUrl": url, "username": username, "accessToken": token},
    }
