"""Command-line interface for readtracker.

Built with Typer for commands and Rich for output.
"""

from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .dates import parse_timestamp
from .db import get_db
from .db.models import Book
from .db.schemas import (
    BookCreate,
    BookStatus,
    BookUpdate,
    GoalCreate,
    GoalPeriod,
    GoalType,
    KindleCredentials,
    ReadingSessionCreate,
    SyncSource,
)
from .logging_config import setup_logging

# Create the main app
app = typer.Typer(
    name="readtracker",
    help="Track your reading, streaks and goals, with Kindle sync.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
kindle_app = typer.Typer(help="Manage Kindle credentials.")
app.add_typer(kindle_app, name="kindle")

goals_app = typer.Typer(help="Manage reading goals.")
app.add_typer(goals_app, name="goals")

# Rich console for pretty output
console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    setup_logging("DEBUG" if verbose else None)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def _format_day(ts: Optional[str]) -> str:
    parsed = parse_timestamp(ts)
    return parsed.astimezone().strftime("%Y-%m-%d") if parsed else "-"


def _format_progress(book: Book) -> str:
    if book.percent_complete is not None:
        return f"{book.percent_complete}%"
    if book.current_page and book.total_pages:
        return f"{book.current_page}/{book.total_pages}"
    return "-"


def format_book_table(books: list, title: str = "Books") -> Table:
    """Create a rich table for displaying books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Status", style="yellow")
    table.add_column("Progress", justify="center")
    table.add_column("Source", style="dim")
    table.add_column("Last Read", style="dim")

    for book in books:
        table.add_row(
            book.title,
            book.author,
            book.status,
            _format_progress(book),
            book.source,
            _format_day(book.last_read_at),
        )

    return table


def _select_book(query: str) -> Book:
    """Find a book by title/author search, prompting when ambiguous."""
    db = get_db()

    book = db.get_book(query)
    if book:
        return book

    books = db.search_books(query, limit=5)
    if not books:
        print_error(f"No book found matching: {query}")
        raise typer.Exit(1)

    if len(books) == 1:
        return books[0]

    console.print("\n[bold]Multiple books found:[/bold]")
    for i, b in enumerate(books, 1):
        console.print(f"  {i}. {b.title} by {b.author}")

    choice = typer.prompt("Select book number", type=int, default=1)
    if choice < 1 or choice > len(books):
        print_error("Invalid selection")
        raise typer.Exit(1)
    return books[choice - 1]


# ============================================================================
# Book Management Commands
# ============================================================================


@app.command()
def add(
    title: str = typer.Option(..., "--title", "-t", prompt="Book title"),
    author: str = typer.Option(..., "--author", "-a", prompt="Author"),
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="ISBN"),
    status: BookStatus = typer.Option(
        BookStatus.WANT_TO_READ, "--status", "-s", help="Reading status"
    ),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Page count"),
) -> None:
    """Add a book manually."""
    db = get_db()

    book = db.create_book(
        BookCreate(title=title, author=author, isbn=isbn, status=status, total_pages=pages)
    )
    print_success(f"Added: {book.title} by {book.author}")


@app.command()
def update(
    query: str = typer.Argument(..., help="Book title or ID to update"),
    status: Optional[BookStatus] = typer.Option(None, "--status", "-s", help="New status"),
    page: Optional[int] = typer.Option(None, "--page", help="Current page"),
    percent: Optional[int] = typer.Option(
        None, "--percent", min=0, max=100, help="Percent complete"
    ),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Total pages"),
) -> None:
    """Update a book's status or progress."""
    db = get_db()
    book = _select_book(query)

    update_data = BookUpdate()
    if status:
        update_data.status = status
    if page is not None:
        update_data.current_page = page
    if percent is not None:
        update_data.percent_complete = percent
    if pages is not None:
        update_data.total_pages = pages

    if not update_data.model_fields_set:
        print_warning("Nothing to update.")
        raise typer.Exit(1)

    db.update_book(book.id, update_data)
    print_success(f"Updated: {book.title}")


@app.command()
def delete(
    query: str = typer.Argument(..., help="Book title or ID to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a book and its reading sessions."""
    db = get_db()
    book = _select_book(query)

    if not yes and not typer.confirm(f"Delete '{book.title}' and its sessions?"):
        raise typer.Exit(0)

    db.delete_book(book.id)
    print_success(f"Deleted: {book.title}")


@app.command("list")
def list_books(
    status: Optional[BookStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max books to show"),
) -> None:
    """List books, optionally filtered by status."""
    db = get_db()

    if status:
        books = db.get_books_by_status(status.value)
        title = f"Books - {status.value}"
    else:
        books = db.get_all_books()
        title = "All Books"

    if not books:
        print_info("No books found.")
        return

    console.print(format_book_table(books[:limit], title=title))
    if len(books) > limit:
        print_info(f"Showing {limit} of {len(books)} books.")


# ============================================================================
# Reading Session Commands
# ============================================================================


@app.command()
def log(
    query: str = typer.Argument(..., help="Book title to log reading for"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Pages read"),
    start_page: Optional[int] = typer.Option(None, "--from", help="Starting page"),
    end_page: Optional[int] = typer.Option(None, "--to", help="Ending page"),
    duration: Optional[int] = typer.Option(None, "--duration", "-d", help="Minutes spent"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Reading notes"),
    session_date: Optional[str] = typer.Option(
        None, "--date", help="Date (YYYY-MM-DD, default: today)"
    ),
) -> None:
    """Log a reading session."""
    db = get_db()
    book = _select_book(query)

    try:
        log_date = date.fromisoformat(session_date) if session_date else date.today()
    except ValueError:
        print_error(f"Invalid date: {session_date}")
        raise typer.Exit(1)

    if pages is None and start_page is not None and end_page is not None:
        pages = max(0, end_page - start_page)

    db.create_reading_session(
        ReadingSessionCreate(
            book_id=book.id,
            date=log_date,
            pages_read=pages,
            start_page=start_page,
            end_page=end_page,
            duration_minutes=duration,
            notes=notes,
        )
    )
    if end_page is not None:
        db.update_book(book.id, BookUpdate(current_page=end_page))

    print_success(f"Logged reading session for: {book.title}")
    if pages:
        console.print(f"  Pages: {pages}")
    if duration:
        console.print(f"  Duration: {duration} minutes")


@app.command()
def sessions(
    limit: int = typer.Option(20, "--limit", "-l", help="Max sessions to show"),
) -> None:
    """Show recent reading sessions."""
    db = get_db()
    entries = db.get_recent_sessions(limit=limit)

    if not entries:
        print_info("No reading sessions yet.")
        return

    titles = {book.id: book.title for book in db.get_all_books()}

    table = Table(title="Recent Sessions", show_header=True, header_style="bold magenta")
    table.add_column("Date", style="cyan")
    table.add_column("Book", style="green", max_width=40)
    table.add_column("Pages", justify="right")
    table.add_column("Minutes", justify="right")
    table.add_column("Source", style="dim")
    table.add_column("Notes", style="dim", max_width=40)

    for entry in entries:
        table.add_row(
            entry.date,
            titles.get(entry.book_id, "?"),
            str(entry.pages_read) if entry.pages_read is not None else "-",
            str(entry.duration_minutes) if entry.duration_minutes is not None else "-",
            entry.source,
            entry.notes or "",
        )

    console.print(table)


# ============================================================================
# Kindle Commands
# ============================================================================


def _settings():
    from .settings import SettingsManager

    return SettingsManager(get_db())


@kindle_app.command("login")
def kindle_login(
    cookies: str = typer.Option(
        ..., "--cookies", prompt="Kindle cookies", hide_input=True, help="Cookie header string"
    ),
    device_token: str = typer.Option(
        ..., "--device-token", prompt="Device token", hide_input=True, help="Device token"
    ),
) -> None:
    """Store Kindle credentials."""
    try:
        credentials = KindleCredentials(cookies=cookies.strip(), device_token=device_token.strip())
    except ValueError:
        print_error("Both cookies and device token are required.")
        raise typer.Exit(1)

    _settings().save_credentials(credentials)
    print_success("Kindle credentials saved.")


@kindle_app.command("logout")
def kindle_logout() -> None:
    """Forget Kindle credentials and the last sync time."""
    _settings().clear_credentials()
    print_success("Kindle credentials cleared.")


@kindle_app.command("status")
def kindle_status() -> None:
    """Show Kindle connection and last sync."""
    settings = _settings()
    info = settings.get_last_sync_info()

    lines = [
        "Credentials: "
        + ("[green]configured[/green]" if settings.has_credentials() else "[red]not configured[/red]"),
        f"Proxy: {settings.get_proxy_url() or '-'}",
        "Last sync: "
        + (info.last_sync_at.astimezone().strftime("%Y-%m-%d %H:%M") if info.last_sync_at else "never"),
    ]
    if info.last_status:
        lines.append(f"Last result: {info.last_status}")
    if info.last_error:
        lines.append(f"[red]{info.last_error}[/red]")

    console.print(Panel("\n".join(lines), title="Kindle"))


@kindle_app.command("proxy")
def kindle_proxy(
    url: Optional[str] = typer.Argument(None, help="TLS proxy URL"),
    clear: bool = typer.Option(False, "--clear", help="Remove the custom proxy URL"),
) -> None:
    """Show or set the custom TLS proxy URL."""
    settings = _settings()

    if clear:
        settings.save_proxy_url(None)
        print_success("Custom proxy cleared.")
        return
    if url:
        settings.save_proxy_url(url)
        print_success(f"Proxy set to {url}")
        return

    console.print(f"Proxy: {settings.get_proxy_url() or '-'}")


# ============================================================================
# Sync Commands
# ============================================================================


@app.command()
def sync(
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress bars"),
) -> None:
    """Sync books and reading sessions from Kindle."""
    from .kindle import KindleSyncService

    service = KindleSyncService(db=get_db())
    result = service.sync(show_progress=progress)

    if not result.success:
        print_error(result.error or "Sync failed")
        if result.error_kind == "auth_failed":
            print_info("Run 'readtracker kindle login' with fresh credentials.")
        elif result.error_kind == "not_configured":
            print_info("Run 'readtracker kindle login' first.")
        raise typer.Exit(1)

    console.print("\n[bold]Sync Complete[/bold]")
    console.print(f"  Books added: {result.books_added}")
    console.print(f"  Books updated: {result.books_updated}")
    console.print(f"  Sessions created: {result.sessions_created}")
    console.print("\n[green]✓ Sync successful![/green]")


@app.command("sync-history")
def sync_history(
    limit: int = typer.Option(10, "--limit", "-l", help="Max entries to show"),
) -> None:
    """Show recent sync attempts."""
    logs = get_db().get_sync_logs(limit=limit, source=SyncSource.KINDLE)

    if not logs:
        print_info("No syncs yet.")
        return

    table = Table(title="Sync History", show_header=True, header_style="bold magenta")
    table.add_column("When", style="cyan")
    table.add_column("Status")
    table.add_column("Added", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Error", style="red", max_width=50)

    for entry in logs:
        style = "green" if entry.status == "success" else "red"
        synced = parse_timestamp(entry.synced_at)
        table.add_row(
            synced.astimezone().strftime("%Y-%m-%d %H:%M") if synced else entry.synced_at,
            f"[{style}]{entry.status}[/{style}]",
            str(entry.items_added),
            str(entry.items_updated),
            entry.error_message or "",
        )

    console.print(table)


# ============================================================================
# Statistics Commands
# ============================================================================


@app.command()
def stats() -> None:
    """Show reading statistics."""
    from .stats import StatsEngine

    full = StatsEngine(get_db()).get_full_stats()

    table = Table(title="Reading Stats", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("This Month", justify="right")
    table.add_column("All Time", justify="right")
    table.add_row("Active days", str(full.active_days_this_month), str(full.active_days_total))
    table.add_row(
        "Books completed",
        str(full.completed_books_this_month),
        str(full.completed_books_total),
    )
    table.add_row("Pages read", str(full.pages_read_this_month), str(full.total_pages_read))
    console.print(table)

    console.print(
        f"\nCurrent streak: [bold]{full.current_streak}[/bold] days "
        f"[dim]({full.streak_status.value})[/dim]"
    )
    console.print(f"Longest streak: [bold]{full.longest_streak}[/bold] days")
    console.print(f"Books in progress: [bold]{full.books_in_progress}[/bold]")


@app.command()
def monthly(
    months: int = typer.Option(6, "--months", "-m", min=1, help="Months to show"),
) -> None:
    """Show per-month reading history."""
    from .stats import StatsEngine

    history = StatsEngine(get_db()).get_monthly_stats(months_back=months)

    table = Table(title="Monthly History", show_header=True, header_style="bold magenta")
    table.add_column("Month", style="cyan")
    table.add_column("Active Days", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Pages", justify="right")

    for month in history:
        table.add_row(
            month.label, str(month.active_days), str(month.books_completed), str(month.pages_read)
        )

    console.print(table)


@app.command()
def weekly(
    weeks: int = typer.Option(12, "--weeks", "-w", min=1, help="Weeks to show"),
) -> None:
    """Show reading days per week."""
    from .stats import StatsEngine

    history = StatsEngine(get_db()).get_reading_days_per_week(weeks=weeks)
    if not history:
        print_info("No reading sessions yet.")
        return

    for entry in history:
        bar = "█" * entry.days
        console.print(f"{entry.week.isoformat()}  [green]{bar:<7}[/green] {entry.days}")


# ============================================================================
# Goal Commands
# ============================================================================


@goals_app.command("add")
def goals_add(
    goal_type: GoalType = typer.Option(..., "--type", "-t", help="Goal type"),
    target: int = typer.Option(..., "--target", "-n", min=1, help="Target value"),
    period: GoalPeriod = typer.Option(GoalPeriod.MONTH, "--period", "-p", help="Goal period"),
) -> None:
    """Create a reading goal."""
    from .stats import GoalTracker

    goal = GoalTracker(get_db()).create(GoalCreate(type=goal_type, target=target, period=period))
    print_success(f"Goal created: {goal.type} {goal.target}/{goal.period} ({goal.id[:8]})")


@goals_app.command("list")
def goals_list() -> None:
    """Show active goals with live progress."""
    from .stats import GoalTracker

    progress_list = GoalTracker(get_db()).get_all_with_progress()
    if not progress_list:
        print_info("No active goals.")
        return

    table = Table(title="Goals", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Goal", style="cyan")
    table.add_column("Progress", justify="right")
    table.add_column("%", justify="right")
    table.add_column("Window", style="dim")

    for p in progress_list:
        pct_style = "green" if p.is_complete else "yellow"
        table.add_row(
            p.goal.id[:8],
            f"{p.goal.type} per {p.goal.period}",
            f"{p.current}/{p.goal.target}",
            f"[{pct_style}]{p.percentage}%[/{pct_style}]",
            f"{p.period_start.isoformat()} → {p.period_end.isoformat()}",
        )

    console.print(table)


def _resolve_goal_id(prefix: str) -> str:
    goals = get_db().get_goals(active_only=False)
    matches = [g.id for g in goals if g.id.startswith(prefix)]
    if len(matches) != 1:
        print_error(f"No unique goal matching: {prefix}")
        raise typer.Exit(1)
    return matches[0]


@goals_app.command("deactivate")
def goals_deactivate(goal_id: str = typer.Argument(..., help="Goal ID or prefix")) -> None:
    """Deactivate a goal."""
    from .stats import GoalTracker

    GoalTracker(get_db()).deactivate(_resolve_goal_id(goal_id))
    print_success("Goal deactivated.")


@goals_app.command("delete")
def goals_delete(goal_id: str = typer.Argument(..., help="Goal ID or prefix")) -> None:
    """Delete a goal."""
    from .stats import GoalTracker

    GoalTracker(get_db()).delete(_resolve_goal_id(goal_id))
    print_success("Goal deleted.")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"readtracker version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
