"""OPA Bundle Builder CLI — run the builder or drive the pipeline offline."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bundle_builder import __version__

console = Console()


@click.group()
@click.version_option(version=__version__)
def main():
    """OPA Bundle Builder.

    Watches labelled ConfigMaps and serves their contents as a single
    OPA policy bundle.
    """


# ── Run ──────────────────────────────────────────────────────────────


@main.command()
def run():
    """Watch ConfigMaps in $WATCH_NAMESPACE and serve the bundle on :3030."""
    from bundle_builder.runner import run as run_builder

    raise SystemExit(run_builder())


# ── Build ────────────────────────────────────────────────────────────


@main.command()
@click.argument("manifests", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--root", "-r", default="./bundles", help="Directory holding incoming/, tmp/ and active/")
def build(manifests: tuple, root: str):
    """Reconcile ConfigMap manifests into a bundle without a cluster.

    Each ConfigMap in MANIFESTS is processed once, in order, exactly as a
    watch event would be. Failures are reported, not retried.
    """
    from bundle_builder.config import BuilderConfig
    from bundle_builder.feed.manifest import load_manifests
    from bundle_builder.reconcile.driver import ReconcileDriver

    config = BuilderConfig.under(root)
    config.ensure_dirs()
    driver = ReconcileDriver(config)

    console.print(f"\n[bold blue]Bundle Builder[/] — Building into: {root}\n")

    results = []
    for manifest in manifests:
        try:
            resources = load_manifests(manifest)
        except ValueError as e:
            console.print(f"  [red]Failed to load:[/] {escape(str(e))}")
            raise SystemExit(1)
        for resource in resources:
            results.append(driver.reconcile(resource))

    if not results:
        console.print("[yellow]No ConfigMaps found.[/]")
        return

    table = Table(title=f"Reconciled ({len(results)} resources)")
    table.add_column("Resource", style="cyan")
    table.add_column("State")
    table.add_column("Published", justify="center")
    table.add_column("Detail")

    for result in results:
        state = "[red]failed[/]" if result.failed else "[green]done[/]"
        published = "[green]Y[/]" if result.published else "-"
        detail = escape(f"[{result.category}] {result.error.message}") if result.error else ""
        table.add_row(escape(result.resource), state, published, detail)

    console.print(table)

    if any(r.failed for r in results):
        console.print("\n[red]FAIL[/] (some resources could not be reconciled)")
        raise SystemExit(1)
    console.print(f"\n[green]Bundle written to:[/] {config.serving_archive}")


# ── Inspect ──────────────────────────────────────────────────────────


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
def inspect(archive: str):
    """List the policy files inside a bundle archive."""
    import tarfile

    from bundle_builder.bundle.reader import list_bundle

    try:
        members = list_bundle(archive)
    except (OSError, tarfile.TarError) as e:
        console.print(f"  [red]Failed to read:[/] {e}")
        raise SystemExit(1)

    if not members:
        console.print("[yellow]Bundle is empty.[/]")
        return

    table = Table(title=f"{archive} ({len(members)} files)")
    table.add_column("Path", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("SHA-256", style="dim")

    for member in members:
        table.add_row(escape(member.name), str(member.size), member.sha256[:12])

    console.print(table)


if __name__ == "__main__":
    main()
