"""hed-lsp CLI - Main entry point.

Batch checking of BIDS sidecars and event files with the same validation
pipeline the language service runs in the editor.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console

from hed_lsp.cli import output
from hed_lsp.config import CONFIG_FILE, HedLspSettings, load_settings, normalize_keys, save_settings
from hed_lsp.document.regions import extract_regions
from hed_lsp.document.types import TextDocument
from hed_lsp.schema.manager import SchemaManager
from hed_lsp.server import HedLanguageService
from hed_lsp.version import __version__

app = typer.Typer(
    name="hed-lsp",
    help="HED annotation checking for BIDS sidecars and event files.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Manage hed-lsp settings.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

console = Console()

SchemaVersionOption = Annotated[
    str | None,
    typer.Option(
        "--schema",
        "-s",
        help="HED schema version (e.g., 8.4.0, 'sc:score_2.1.0') when no dataset_description.json declares one",
    ),
]

OutputFormatOption = Annotated[
    str,
    typer.Option(
        "--output",
        "-o",
        help="Output format: 'text' (human-readable) or 'json' (machine-readable)",
    ),
]

MaxProblemsOption = Annotated[
    int | None,
    typer.Option(
        "--max-problems",
        help="Maximum number of problems reported per file",
        min=1,
    ),
]

ValidatorOption = Annotated[
    str | None,
    typer.Option(
        "--validator",
        help="Validator backend: 'local' (hedtools) or 'remote' (hedtools.org)",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"hed-lsp version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logging",
        ),
    ] = False,
) -> None:
    """hed-lsp - HED annotation checking.

    Validates the HED strings in BIDS JSON sidecars and TSV event files.

    Get started:
        hed-lsp check task-rest_events.json
        hed-lsp check sub-01_events.tsv --schema 8.4.0
    """
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def _check_files(service: HedLanguageService, files: list[Path]) -> dict[str, list]:
    results = {}
    for path in files:
        text = path.read_text(encoding="utf-8")
        results[str(path)] = await service.did_open(path.resolve().as_uri(), text)
    return results


@app.command()
def check(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Sidecar (.json) or events (.tsv) files to check",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    schema_version: SchemaVersionOption = None,
    max_problems: MaxProblemsOption = None,
    validator: ValidatorOption = None,
    output_format: OutputFormatOption = "text",
) -> None:
    """Validate the HED annotations in one or more files.

    Exits with status 1 when any error is reported.

    Examples:
        hed-lsp check task-rest_events.json
        hed-lsp check sub-01_events.tsv -o json
        hed-lsp check *.json --schema 8.3.0 --max-problems 20
    """
    if output_format not in ("text", "json"):
        output.print_error(f"Invalid output format: {output_format}", hint="Use 'text' or 'json'")
        raise typer.Exit(2)

    try:
        settings = load_settings(
            overrides={
                "schema_version": schema_version,
                "max_number_of_problems": max_problems,
                "validator_backend": validator,
            }
        )
    except ValidationError as e:
        output.print_error("Invalid settings", hint=str(e))
        raise typer.Exit(2) from None

    service = HedLanguageService(settings=settings)
    try:
        results = asyncio.run(_check_files(service, files))
    except (OSError, UnicodeDecodeError) as e:
        output.print_error(f"Could not read file: {e}")
        raise typer.Exit(1) from None

    output.print_diagnostics(results, output_format)

    if any(d.severity == "error" for diagnostics in results.values() for d in diagnostics):
        raise typer.Exit(1)


@app.command("regions")
def regions(
    file: Annotated[
        Path,
        typer.Argument(help="Sidecar (.json) or events (.tsv) file", exists=True, dir_okay=False),
    ],
) -> None:
    """List the HED strings found in a file and where they are."""
    document = TextDocument(file.resolve().as_uri(), file.read_text(encoding="utf-8"))
    found = extract_regions(document)
    if not found:
        output.print_info(f"No HED annotations in {file}")
        return
    for region in found:
        start = region.range.start
        console.print(f"[dim]{start.line + 1}:{start.character + 1}[/] [bold]{region.path}[/] {region.content}")


@app.command("detect-version")
def detect_version(
    file: Annotated[
        Path,
        typer.Argument(help="Any file inside a BIDS dataset"),
    ],
) -> None:
    """Print the HED version declared by the enclosing dataset_description.json.

    Exits with status 1 when no descriptor declares a version.
    """
    settings = load_settings()
    manager = SchemaManager(default_version=settings.schema_version, search_depth=settings.descriptor_search_depth)
    detected = asyncio.run(manager.detect_version_for_document(str(file.resolve())))
    if detected is None:
        output.print_error(
            f"No HEDVersion found for {file}",
            hint=f"The configured default is {settings.schema_version}",
        )
        raise typer.Exit(1)
    console.print(detected)


@app.command()
def version() -> None:
    """Show the hed-lsp version."""
    console.print(f"hed-lsp version {__version__}")


# Config subcommands


@config_app.command("show")
def config_show() -> None:
    """Show the effective settings (file, environment and defaults merged)."""
    output.print_settings(load_settings().to_client_dict())
    output.print_info(f"\nConfig file: {CONFIG_FILE}")


@config_app.command("set")
def config_set(
    key: Annotated[
        str,
        typer.Argument(help="Setting name (e.g., schemaVersion, debounceMs)"),
    ],
    value: Annotated[
        str,
        typer.Argument(help="New value"),
    ],
) -> None:
    """Set a value in the config file.

    Examples:
        hed-lsp config set schemaVersion 8.3.0
        hed-lsp config set enableSemanticSearch true
    """
    if normalize_keys({key: value}).keys() - HedLspSettings.model_fields.keys():
        output.print_error(f"Unknown setting: {key}", hint="Run 'hed-lsp config show' for the available names")
        raise typer.Exit(1)
    try:
        settings = load_settings(overrides={key: value}, environ={})
    except ValidationError as e:
        output.print_error(f"Invalid value for {key}", hint=str(e))
        raise typer.Exit(1) from None
    save_settings(settings)
    output.print_success(f"Set {key} = {value}")


def cli() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    cli()
