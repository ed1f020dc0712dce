from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from bookstore.book import Book
from bookstore.config import settings
from bookstore.errors import BookNotFoundError
from bookstore.store import BookStore

console = Console()
app = typer.Typer(help="Bookstore CLI")

DbFileOption = typer.Option(None, "--db-file", help="SQLite database file (default: BOOKSTORE_DB_FILE)")


def _open_store(db_file: Optional[str]) -> BookStore:
    return BookStore(db_file=db_file or settings.database_file)


def _print_books(books: List[Book], output: str) -> None:
    if not books:
        print("No books in store.")
        return
    if output == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif output == "rich":
        table = Table(title="Books", box=box.SIMPLE, header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("Year", justify="right")
        for b in books:
            table.add_row(b.isbn, b.title, b.author, str(b.year))
        console.print(table)
    else:
        for b in books:
            print(f"{b.isbn} - {b.title} by {b.author} ({b.year})")


@app.callback()
def _global_options(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(level=logging.DEBUG if verbose else settings.log_level)


@app.command("init-db")
def cli_init_db(db_file: Optional[str] = DbFileOption):
    """Create the books table if it does not exist."""
    store = _open_store(db_file)
    print(f"Database ready: {store.db_file}")
    store.close()


@app.command("list")
def cli_list(
    output: str = typer.Option("plain", "--output", "-o", help="Output format: plain | json | rich"),
    db_file: Optional[str] = DbFileOption,
):
    """List all books."""
    store = _open_store(db_file)
    try:
        _print_books(store.list_books(), output.lower().strip())
    finally:
        store.close()


@app.command("show")
def cli_show(isbn: str, db_file: Optional[str] = DbFileOption):
    """Show every field of a book."""
    store = _open_store(db_file)
    try:
        book = store.get_book(isbn)
    except BookNotFoundError as e:
        print(e.message)
        raise typer.Exit(code=1)
    finally:
        store.close()
    for name, value in book.to_dict().items():
        print(f"{name}: {value}")


@app.command("remove")
def cli_remove(isbn: str, db_file: Optional[str] = DbFileOption):
    """Remove a book by isbn."""
    store = _open_store(db_file)
    try:
        store.remove_book(isbn)
    except BookNotFoundError as e:
        print(e.message)
        raise typer.Exit(code=1)
    finally:
        store.close()
    print(f"Book with isbn {isbn} has been removed.")


@app.command("reset")
def cli_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    db_file: Optional[str] = DbFileOption,
):
    """Delete every book."""
    if not yes and not typer.confirm("Delete all books?"):
        raise typer.Abort()
    store = _open_store(db_file)
    try:
        removed = store.clear()
    finally:
        store.close()
    print(f"Removed {removed} books.")


@app.command("import")
def cli_import(path: Path, db_file: Optional[str] = DbFileOption):
    """Import books from a JSON file holding a list of book objects."""
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read {path}: {e}")
        raise typer.Exit(code=1)
    if not isinstance(records, list):
        print(f"{path} must contain a JSON list of books")
        raise typer.Exit(code=1)

    store = _open_store(db_file)
    try:
        created, problems = store.import_books(records)
    finally:
        store.close()
    print(f"Imported {created} of {len(records)} books.")
    for problem in problems:
        console.print(f"[yellow]Skipped {problem}[/]")


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
    db_file: Optional[str] = DbFileOption,
):
    """Start the API with uvicorn."""
    env = dict(os.environ)
    if db_file:
        env["BOOKSTORE_DB_FILE"] = db_file
    args = [sys.executable, "-m", "uvicorn", "bookstore.api:app", "--host", host, "--port", str(port)]
    if reload:
        args.append("--reload")
    print(f"Serving bookstore API on http://{host}:{port}/")
    raise typer.Exit(code=subprocess.run(args, env=env).returncode)


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
