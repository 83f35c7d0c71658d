#!/usr/bin/env python3
"""
sqlimport – load MySQL dump files over a single connection.

• ``sqlimport import dump.sql more/``   import files / directories in order
• ``sqlimport split dump.sql``          show how a dump would be split
• ``sqlimport version``

Connection settings come from ``sqlimport.config.yml`` (or ``-c FILE``),
environment chosen with ``-e``.
"""
from __future__ import annotations

import logging
import pathlib
import sys

import click
import sqlparse

from sqlimport import __version__, charsets, splitter
from sqlimport.config import ConnectionSettings, load
from sqlimport.errors import SQLImportError
from sqlimport.importer import Importer, ImportProgress


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)-7s %(name)s: %(message)s")


def _load_settings(config_path: pathlib.Path | None, env: str | None) -> ConnectionSettings:
    try:
        return load(config_path, env)
    except SQLImportError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)


def _validate_encoding(_ctx, _param, value: str) -> str:
    try:
        charsets.validate(value)
    except SQLImportError as exc:
        raise click.BadParameter(str(exc)) from exc
    return value


@click.group()
@click.option(
    "-c", "--config", "config_path", type=click.Path(dir_okay=False), help="connection config (YAML or TOML)"
)
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG logging")
@click.pass_context
def main(ctx, config_path, verbose):
    _setup_logging(verbose)
    ctx.obj = {"config_path": pathlib.Path(config_path) if config_path else None}


@main.command()
def version():
    click.echo(__version__)


def _print_progress(p: ImportProgress) -> None:
    click.echo(
        f"\r  [{p.file_no}/{p.total_files}] {p.file_path.name}: "
        f"{p.statements} statements, {p.percent:.1f}%",
        nl=False,
        err=True,
    )


@main.command("import")
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("-e", "--env", help="environment name from the config file")
@click.option("-d", "--database", help="override the target database")
@click.option(
    "--encoding", default=charsets.DEFAULT_ENCODING, show_default=True, callback=_validate_encoding
)
@click.option("--chunk-size", type=click.IntRange(min=1), default=splitter.DEFAULT_CHUNK_SIZE, show_default=True)
@click.option("--progress/--no-progress", default=False)
@click.pass_context
def import_cmd(ctx, inputs, env, database, encoding, chunk_size, progress):
    settings = _load_settings(ctx.obj["config_path"], env)
    if database:
        settings.database = database

    def completed(error, dump):
        if progress:
            click.echo(err=True)
        if error is None:
            click.echo(f"✅  {dump.path}")
        else:
            click.echo(f"❌  {dump.path}", err=True)

    try:
        with Importer(settings, encoding=encoding, chunk_size=chunk_size) as importer:
            importer.on_progress(_print_progress if progress else None)
            importer.on_dump_completed(completed)
            importer.import_(*inputs)
            n = len(importer.get_imported())
    except SQLImportError as exc:
        click.echo(f"Import failed: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Imported {n} file(s).")


@main.command("split")
@click.argument("dump", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--encoding", default=charsets.DEFAULT_ENCODING, show_default=True, callback=_validate_encoding
)
@click.option("--pretty", is_flag=True, help="reformat statements with sqlparse")
@click.option("--types", "show_types", is_flag=True, help="prefix each statement with its type")
def split_cmd(dump, encoding, pretty, show_types):
    """Offline dry run: print the statements DUMP would execute."""
    count = 0
    try:
        with open(dump, "rb") as fh:
            for stmt in splitter.split(fh, charsets.validate(encoding)):
                text = stmt.text
                if pretty:
                    text = sqlparse.format(text, reindent=True, keyword_case="upper")
                if show_types:
                    parsed = sqlparse.parse(stmt.text)
                    kind = parsed[0].get_type() if parsed else "UNKNOWN"
                    text = f"-- [{kind}] offset {stmt.start}\n{text}"
                click.echo(f"{text};\n")
                count += 1
    except SQLImportError as exc:
        click.echo(f"Parse error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"-- {count} statement(s)", err=True)


if __name__ == "__main__":
    main()
