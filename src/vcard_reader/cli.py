from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import DEFAULT_CONFIG_PATH, ensure_config, load_writer_options
from .exceptions import VCardError
from .io import collect_vcard_files, read_contact, read_properties, write_contact
from .report import print_contact, print_properties, print_warnings, print_written

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="vcard-reader: read, inspect and re-write vCard 2.1 / 3.0 files.",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(RichHandler(console=console, show_path=False, markup=False))
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fail(message: str) -> None:
    console.print(f"[bold red]{message}[/bold red]")
    raise typer.Exit(code=2)


def _expand(paths: list[Path]) -> list[Path]:
    files: list[Path] = []
    for p in paths:
        if p.is_dir():
            files.extend(collect_vcard_files(p))
        else:
            files.append(p)
    return files


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log parser details"),
) -> None:
    _setup_logging(verbose)


# ── `show` command ─────────────────────────────────────────────────────────────

@app.command()
def show(
    paths: list[Path] = typer.Argument(..., help=".vcf / .vcard files or folders holding them"),
) -> None:
    """Print the contact held in each vCard file."""
    files = _expand(paths)
    if not files:
        _fail("No vCard files found.")

    for f in files:
        try:
            contact, warnings = read_contact(f)
        except (VCardError, OSError) as exc:
            _fail(str(exc))
        print_contact(contact, source_label=f.name)
        print_warnings(warnings)


# ── `properties` command ───────────────────────────────────────────────────────

@app.command()
def properties(
    path: Path = typer.Argument(..., help="A .vcf / .vcard file"),
) -> None:
    """List every property of a file as the tokenizer sees it."""
    try:
        props, warnings = read_properties(path)
    except (VCardError, OSError) as exc:
        _fail(str(exc))
    print_properties(props)
    print_warnings(warnings)


# ── `convert` command ──────────────────────────────────────────────────────────

@app.command()
def convert(
    input: Path = typer.Argument(..., help="vCard file to read"),
    output: Path = typer.Argument(..., help="vCard file to write"),
    config: Path | None = typer.Option(
        None, "--config", "-c",
        help=f"Writer settings (TOML). Falls back to {DEFAULT_CONFIG_PATH}.",
    ),
    embed_local: bool = typer.Option(
        False, "--embed-local",
        help="Embed local image files named by the card's PHOTO links (off: keep the links)",
    ),
    embed_remote: bool | None = typer.Option(
        None, "--embed-remote/--no-embed-remote",
        help="Download linked photos and embed them",
    ),
    outlook_commas: bool = typer.Option(False, "--outlook-commas", help="Do not escape commas"),
    product_id: str | None = typer.Option(None, "--product-id", help="PRODID to write when the card has none"),
) -> None:
    """Read a vCard and write it back out in normalised form."""
    options = load_writer_options(config)
    # local files named by the input are read only on request
    options.embed_local_images = embed_local
    if embed_remote is not None:
        options.embed_remote_images = embed_remote
    if outlook_commas:
        options.compatibility_escaping = True
    if product_id is not None:
        options.product_id = product_id

    try:
        contact, read_warnings = read_contact(input)
        write_warnings = write_contact(contact, output, options)
    except (VCardError, OSError) as exc:
        _fail(str(exc))

    print_warnings(read_warnings + write_warnings)
    print_written(output, len(read_warnings) + len(write_warnings))


# ── `init-config` command ──────────────────────────────────────────────────────

@app.command("init-config")
def init_config(
    path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--path", "-p", help="Where to write the config"),
) -> None:
    """Create a config file with the default writer settings."""
    conf = ensure_config(path)
    console.print(f"Config: [bold]{conf}[/bold]")


if __name__ == "__main__":
    app()
