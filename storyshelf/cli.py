"""
Storyshelf command line front-end.

Every invocation is a fresh process: it restores the session from local
storage, performs one action and waits for its remote write to settle.

    storyshelf signup kid@example.com --password p@ss1234
    storyshelf whoami
    storyshelf favorite 7
    storyshelf progress 7 3
    storyshelf signout
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from .auth.models import Authenticated
from .backend.local import LocalBackend
from .core.config import load_settings
from .core.context import AppContext
from .utils.exceptions import AuthenticationRequiredError, ConfigError, StoryshelfError
from .utils.logger import setup_logger

console = Console()


def _page_index(value: str) -> int:
    page = int(value)
    if page < 0:
        raise argparse.ArgumentTypeError("page must be 0 or greater")
    return page


def _password(args: argparse.Namespace) -> str:
    return args.password if args.password is not None else getpass.getpass("Password: ")


def _print_session(ctx: AppContext) -> None:
    session = ctx.session
    if isinstance(session, Authenticated):
        name = session.user.display_name or session.email
        console.print(f"[bold green]✓ Signed in as {name}[/bold green] ({session.email})")
    else:
        console.print("[yellow]Not signed in[/yellow]")


def _books_table(ctx: AppContext, books) -> Table:
    favorites = ctx.sync.favorites(ctx.session.email) if isinstance(ctx.session, Authenticated) else frozenset()
    table = Table(box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Level", justify="right")
    table.add_column("Language")
    table.add_column("♥", justify="center")
    for book in books:
        table.add_row(book.id, book.title, str(book.level), book.language, "♥" if book.id in favorites else "")
    return table


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings(Path(args.settings) if args.settings else None)
    setup_logger(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        file_path=settings.logging.file_path,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count,
    )
    ctx = AppContext.from_settings(settings)
    try:
        await ctx.start()
        return await _dispatch(ctx, args)
    finally:
        await ctx.close()


async def _dispatch(ctx: AppContext, args: argparse.Namespace) -> int:
    command = args.command

    if command == "signup":
        await ctx.sign_up(args.email, _password(args), args.name)
        _print_session(ctx)
    elif command == "signin":
        await ctx.sign_in(args.email, _password(args))
        _print_session(ctx)
    elif command == "whoami":
        _print_session(ctx)
    elif command == "signout":
        await ctx.sign_out()
        console.print("[bold]Signed out[/bold]")
    elif command == "books":
        console.print(_books_table(ctx, ctx.catalog.books))
    elif command == "favorite":
        landed = await ctx.toggle_favorite(args.book_id)
        state = "♥ favorited" if ctx.sync.is_favorite(ctx.session.email, args.book_id) else "removed"
        if landed:
            console.print(f"Book {args.book_id}: {state}")
        else:
            console.print(f"[red]Could not save favorite for book {args.book_id}; reverted ({state})[/red]")
    elif command == "favorites":
        console.print(_books_table(ctx, ctx.favorite_books()))
    elif command == "read":
        page = ctx.open_book(args.book_id)
        console.print(f"Book {args.book_id}: resume at page {page + 1}")
    elif command == "progress":
        await ctx.turn_page(args.book_id, args.page, args.finished)
        console.print(f"Book {args.book_id}: page {args.page + 1}{' (finished)' if args.finished else ''}")
    elif command == "shelf":
        table = Table(box=box.ROUNDED)
        table.add_column("Story")
        table.add_column("Progress", justify="right")
        table.add_column("Last read")
        for row in ctx.progress_rows():
            done = " ✓" if row.record.is_finished else ""
            table.add_row(row.book.title, f"{row.percent}%{done}", row.record.last_read_at.strftime("%b %d %H:%M"))
        console.print(table)
    elif command == "achievements":
        for status in ctx.achievements():
            mark = "[green]★[/green]" if status.unlocked else "[dim]☆[/dim]"
            console.print(f"{mark} {status.badge.title}: {status.badge.description}")
    elif command == "recommend":
        console.print(_books_table(ctx, ctx.recommendations()))
    elif command == "import-books":
        if not isinstance(ctx.backend, LocalBackend):
            console.print("[red]import-books only works with the local backend[/red]")
            return 2
        rows = json.loads(Path(args.path).read_text(encoding="utf-8"))
        ctx.backend.catalog.add_books(rows.get("books", rows) if isinstance(rows, dict) else rows)
        await ctx.catalog.refresh()
        console.print(f"Catalog now has {len(ctx.catalog.books)} books")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storyshelf", description="Storyshelf story library")
    parser.add_argument("--settings", help="Path to settings.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    signup = sub.add_parser("signup", help="Create an account")
    signup.add_argument("email")
    signup.add_argument("--password")
    signup.add_argument("--name", help="Display name")

    signin = sub.add_parser("signin", help="Sign in")
    signin.add_argument("email")
    signin.add_argument("--password")

    sub.add_parser("whoami", help="Show the restored session")
    sub.add_parser("signout", help="Sign out")
    sub.add_parser("books", help="List the catalog")
    sub.add_parser("favorites", help="List favorite books")
    sub.add_parser("shelf", help="Reading progress")
    sub.add_parser("achievements", help="Sticker book")
    sub.add_parser("recommend", help="Recommended books")

    favorite = sub.add_parser("favorite", help="Toggle a favorite")
    favorite.add_argument("book_id")

    read = sub.add_parser("read", help="Open a book")
    read.add_argument("book_id")

    progress = sub.add_parser("progress", help="Save reading progress")
    progress.add_argument("book_id")
    progress.add_argument("page", type=_page_index, help="Zero-based page index")
    progress.add_argument("--finished", action="store_true")

    import_books = sub.add_parser("import-books", help="Load books.json rows into the local backend")
    import_books.add_argument("path")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except AuthenticationRequiredError as e:
        console.print(f"[yellow]{e}[/yellow]")
        return 1
    except ConfigError as e:
        console.print(f"[bold red]Configuration error: {e}[/bold red]")
        return 2
    except StoryshelfError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
