"""CLI entry point for certificate-loader.

Invoked as::

    certificate-loader [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m certificate_loader.cli.main

Commands
--------
version    Show version information
classify   Show how a certificate path is interpreted
load       Load a certificate from a file or store path
import     Add a certificate file to a directory store
list       List the certificates in a directory store
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

console = Console()


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="certificate-loader")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Resolve certificate file and store locations"""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from certificate_loader import __version__

    console.print(f"[bold]certificate-loader[/bold] v{__version__}")


# ------------------------------------------------------------------
# classify
# ------------------------------------------------------------------


@cli.command(name="classify")
@click.argument("path")
def classify_command(path: str) -> None:
    """Show whether PATH is a file path or a cert: store path."""
    from certificate_loader.location import FileLocation, classify_path

    try:
        location = classify_path(path)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    table = Table(title="Certificate Location", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    if isinstance(location, FileLocation):
        table.add_row("Kind", "file")
        table.add_row("Path", location.path)
    else:
        table.add_row("Kind", "store")
        table.add_row("Location", str(location.store_scope))
        table.add_row("Store", location.effective_store_name)
        table.add_row("Subject", location.subject)

    console.print(table)


# ------------------------------------------------------------------
# load
# ------------------------------------------------------------------


@cli.command(name="load")
@click.argument("path")
@click.option("--key-path", "-k", default=None, help="Separate PEM private key file.")
@click.option(
    "--password",
    "-p",
    default=None,
    help="Password for the PKCS#12 file or the encrypted key file.",
)
@click.option(
    "--usage",
    "-u",
    default=None,
    help="Required extended key usage: 'server', 'client' or a dotted OID.",
)
@click.option(
    "--allow-invalid",
    is_flag=True,
    default=False,
    help="Accept expired or not-yet-valid store certificates.",
)
@click.option(
    "--no-private-key",
    is_flag=True,
    default=False,
    help="Accept store certificates without a private key.",
)
@click.option(
    "--root",
    type=click.Path(file_okay=False),
    default=None,
    help="Root directory for relative certificate paths.",
)
@click.option(
    "--store-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Base directory of the certificate store.",
)
def load_command(
    path: str,
    key_path: str | None,
    password: str | None,
    usage: str | None,
    allow_invalid: bool,
    no_private_key: bool,
    root: str | None,
    store_root: str | None,
) -> None:
    """Load the certificate at PATH (a file or cert: store path)."""
    from certificate_loader.errors import ConfigurationError
    from certificate_loader.loader import CertificateLoader
    from certificate_loader.location import CertificateLocation
    from certificate_loader.options import CertificateLoaderOptions
    from certificate_loader.usage import enhanced_key_usage_display_name, resolve_enhanced_key_usage

    try:
        usage_oid = resolve_enhanced_key_usage(usage)
        settings = CertificateLocation.from_path(path)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if settings.is_file_certificate:
        if allow_invalid or no_private_key:
            raise click.UsageError(
                "--allow-invalid and --no-private-key apply only to cert: store paths."
            )
        settings.key_path = key_path
        settings.password = password
    else:
        if key_path is not None or password is not None:
            raise click.UsageError("--key-path and --password apply only to certificate files.")
        settings.allow_invalid = allow_invalid
        settings.require_private_key = not no_private_key

    env_options = CertificateLoaderOptions.from_env()
    options = CertificateLoaderOptions(
        certificate_root_path=root or env_options.certificate_root_path or Path.cwd(),
        store_root_path=store_root or env_options.store_root_path,
    )
    loader = CertificateLoader(options)

    try:
        certificate = loader.load_certificate(settings, usage_oid)
    except ConfigurationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if certificate is None:
        console.print(
            f"[yellow]No certificate found for {settings} "
            f"(usage: {enhanced_key_usage_display_name(usage_oid) or 'any'}).[/yellow]"
        )
        sys.exit(1)

    with certificate:
        _print_certificate(certificate)


# ------------------------------------------------------------------
# import / list
# ------------------------------------------------------------------


@cli.command(name="import")
@click.argument("cert_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--key-path", "-k", default=None, help="Separate PEM private key file.")
@click.option("--password", "-p", default=None, help="Password for the file or key.")
@click.option("--store", "store_name", default="My", show_default=True, help="Store name.")
@click.option("--scope", default="CurrentUser", show_default=True, help="Store scope.")
@click.option(
    "--store-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Base directory of the certificate store.",
)
def import_command(
    cert_file: str,
    key_path: str | None,
    password: str | None,
    store_name: str,
    scope: str,
    store_root: str | None,
) -> None:
    """Add CERT_FILE to a directory-backed certificate store."""
    from certificate_loader.errors import ConfigurationError
    from certificate_loader.file_resolver import FileResolver
    from certificate_loader.location import FileLocation, StoreScope

    try:
        store_scope = StoreScope.parse(scope)
        certificate = FileResolver(Path.cwd()).resolve(
            FileLocation(path=cert_file, key_path=key_path, password=password)
        )
    except ConfigurationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    store = _directory_store(store_root)
    with certificate:
        store.add(certificate, store_name, store_scope)
        console.print(
            f"[green]Imported[/green] [bold]{certificate.subject}[/bold] "
            f"into {store_scope.value}/{store_name}"
        )
        console.print(f"  Thumbprint:  {certificate.thumbprint}")
        console.print(f"  Private key: {'yes' if certificate.has_private_key else 'no'}")


@cli.command(name="list")
@click.option("--store", "store_name", default="My", show_default=True, help="Store name.")
@click.option("--scope", default="CurrentUser", show_default=True, help="Store scope.")
@click.option(
    "--store-root",
    type=click.Path(file_okay=False),
    default=None,
    help="Base directory of the certificate store.",
)
def list_command(store_name: str, scope: str, store_root: str | None) -> None:
    """List the certificates in a directory-backed store."""
    from certificate_loader.errors import ConfigurationError
    from certificate_loader.location import StoreScope

    try:
        store_scope = StoreScope.parse(scope)
    except ConfigurationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    store = _directory_store(store_root)
    with store.open(store_name, store_scope) as handle:
        certificates = list(handle)

    if not certificates:
        console.print(f"[yellow]Store {store_scope.value}/{store_name} is empty.[/yellow]")
        return

    table = Table(title=f"{store_scope.value}/{store_name}", show_header=True)
    table.add_column("Subject", style="cyan")
    table.add_column("Thumbprint")
    table.add_column("Expires")
    table.add_column("Key", justify="center")

    for cert in sorted(certificates, key=lambda c: c.not_after, reverse=True):
        table.add_row(
            cert.subject,
            cert.thumbprint,
            cert.not_after.isoformat(),
            "[green]Yes[/green]" if cert.has_private_key else "[red]No[/red]",
        )
        cert.dispose()

    console.print(table)
    console.print(f"\nTotal: {len(certificates)} certificate(s)")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _directory_store(store_root: str | None):  # type: ignore[no-untyped-def]
    """Return the directory store at *store_root* or the configured default."""
    from certificate_loader.options import CertificateLoaderOptions
    from certificate_loader.stores import DirectoryCertificateStore

    options = CertificateLoaderOptions.from_env()
    if store_root:
        options = CertificateLoaderOptions(store_root_path=store_root)
    return DirectoryCertificateStore(options.resolved_store_root())


def _print_certificate(certificate) -> None:  # type: ignore[no-untyped-def]
    """Render a loaded certificate as a table."""
    usages = certificate.enhanced_key_usages
    table = Table(title="Certificate", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Subject", certificate.subject)
    table.add_row("Thumbprint", certificate.thumbprint)
    table.add_row("Not before", certificate.not_before.isoformat())
    table.add_row("Not after", certificate.not_after.isoformat())
    table.add_row("Usages", ", ".join(usages) if usages is not None else "(unrestricted)")
    table.add_row("Private key", "yes" if certificate.has_private_key else "no")
    console.print(table)


if __name__ == "__main__":
    cli()
