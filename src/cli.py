#!/usr/bin/env python3
"""
CLI tool for Ernesto
Runs the controller and inspects watched repositories
"""

import asyncio
import copy
import json
import sys

import click
import yaml
from tabulate import tabulate

from changeset import COMMIT_HASH_KEY, LAST_SYNC_TIME_KEY, get_nested_field
from config import get_config
from main import Application, configure_logging, main
from repository import DecodeError, decode_repository
from store.base import ResourceType, StoreError
from store.kube import KubernetesStore

MASK = "********"


def _resource_type(cfg) -> ResourceType:
    return ResourceType(cfg.store.group, cfg.store.version, cfg.store.plural)


def _open_store(cfg) -> KubernetesStore:
    try:
        return KubernetesStore.from_config(cfg.store.kubeconfig)
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def mask_credentials(record):
    """Return a copy of ``record`` with the access token masked"""
    masked = copy.deepcopy(record)
    spec = masked.get("spec")
    if isinstance(spec, dict) and "accessToken" in spec:
        spec["accessToken"] = MASK
    return masked


def repository_rows(records, prefix):
    """Build table rows of name, URL, commit hash and last sync time"""
    rows = []
    for record in records:
        annotations = get_nested_field(record, "metadata", "annotations") or {}
        try:
            repo = decode_repository(record)
            name, url = repo.name, repo.remote_url
        except DecodeError as e:
            name = get_nested_field(record, "metadata", "name") or "?"
            url = f"<invalid: {e.reason}>"
        rows.append(
            [
                name,
                url,
                annotations.get(f"{prefix}{COMMIT_HASH_KEY}", "-"),
                annotations.get(f"{prefix}{LAST_SYNC_TIME_KEY}", "Never"),
            ]
        )
    return rows


@click.group()
@click.option("--namespace", "-n", default=None, help="Namespace to watch")
@click.pass_context
def cli(ctx, namespace):
    """Ernesto - keeps watched git repositories in sync with their remotes"""
    cfg = get_config()
    if namespace:
        cfg.store.namespace = namespace
    ctx.obj = cfg


@cli.command()
@click.pass_obj
def run(cfg):
    """Run the reconciliation loop until interrupted"""
    configure_logging(cfg.log_level)
    sys.exit(asyncio.run(main(cfg)))


@cli.command()
@click.pass_obj
def once(cfg):
    """Reconcile every repository once and exit"""
    configure_logging(cfg.log_level)
    app = Application(cfg)

    async def _run():
        try:
            return await app.run_once()
        finally:
            await app.close()

    try:
        app.initialize()
        results = asyncio.run(_run())
    except (StoreError, DecodeError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    rows = [
        [
            str(r.repository),
            r.commit_hash or "-",
            "✓" if r.success else "✗",
            r.error or "",
        ]
        for r in results
    ]
    click.echo(tabulate(rows, headers=["Repository", "Commit", "Synced", "Error"]))

    if any(not r.success for r in results):
        sys.exit(1)


@cli.command(name="list")
@click.pass_obj
def list_repositories(cfg):
    """List watched repositories and their sync status"""
    store = _open_store(cfg)

    async def _list():
        try:
            return await store.list(_resource_type(cfg), cfg.store.namespace)
        finally:
            await store.close()

    try:
        records = asyncio.run(_list())
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not records:
        click.echo(f"No repositories found in namespace {cfg.store.namespace}")
        return

    headers = ["Name", "URL", "Commit", "Last Sync"]
    rows = repository_rows(records, cfg.reconciler.annotation_prefix)
    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command()
@click.argument("name")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="yaml")
@click.pass_obj
def describe(cfg, name, output):
    """Describe a watched repository"""
    store = _open_store(cfg)

    async def _get():
        try:
            record, _ = await store.get(_resource_type(cfg), cfg.store.namespace, name)
            return record
        finally:
            await store.close()

    try:
        record = asyncio.run(_get())
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    record = mask_credentials(record)
    if output == "yaml":
        click.echo(yaml.safe_dump(record, default_flow_style=False))
    else:
        click.echo(json.dumps(record, indent=2))


if __name__ == "__main__":
    cli()
