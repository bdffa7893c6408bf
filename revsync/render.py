"""Rich console rendering for CLI output."""

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from .review_types import PRDetails, PRFileChange, PRInfo, ReviewComment

console = Console()

_STATUS_STYLES = {
    "added": "green",
    "modified": "yellow",
    "removed": "red",
    "renamed": "blue",
}

_STATE_STYLES = {
    "open": "green",
    "closed": "red",
    "merged": "magenta",
}


def print_comments(comments: list[ReviewComment], title: str = "Review comments"):
    """Print comments as a table, one row per comment (replies indented)."""
    if not comments:
        console.print("[dim]No comments.[/dim]")
        return

    table = Table(title=title, box=box.ROUNDED, border_style="cyan")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Location", style="cyan")
    table.add_column("Type")
    table.add_column("Author")
    table.add_column("Comment")
    table.add_column("Status")

    for comment in comments:
        table.add_row(*_comment_row(comment))
        for reply in comment.replies:
            row = _comment_row(reply)
            table.add_row(f"  ↳ {row[0]}", "", *row[2:])
    console.print(table)
    console.print()


def _comment_row(comment: ReviewComment) -> tuple[str, str, str, str, str, str]:
    text = comment.body
    if comment.suggestion is not None:
        text = f"{comment.suggestion.original!r} → {comment.suggestion.suggested!r}"
        if comment.body:
            text += f"\n{comment.body}"
    # Truncate long bodies
    if len(text) > 120:
        text = text[:120] + "..."

    if comment.resolved:
        status = "[green]resolved[/green]"
    elif comment.outdated:
        status = "[red]outdated[/red]"
    elif comment.remote_comment_id is not None:
        status = f"[blue]synced #{comment.remote_comment_id}[/blue]"
    else:
        status = "[yellow]local[/yellow]"

    return (
        comment.id[:13],
        f"{comment.file_path}:{comment.line_number}",
        comment.type,
        comment.author,
        text,
        status,
    )


def print_comment(comment: ReviewComment):
    """Print a single newly created comment."""
    console.print(f"[green]✓[/green] Comment [bold]{comment.id}[/bold] on {comment.file_path}:{comment.line_number}")


def print_pr_info(info: PRInfo):
    style = _STATE_STYLES.get(info.state, "white")
    header = Text()
    header.append(f"#{info.number} ", style="bold")
    header.append(info.title, style="bold white")
    header.append(f"  [{info.state}]", style=style)

    lines = [
        f"[dim]Author:[/dim] {info.author}",
        f"[dim]Branch:[/dim] {info.head_branch} → {info.base_branch}",
        f"[dim]Updated:[/dim] {info.updated_at}",
        f"[dim]URL:[/dim] {info.url}",
    ]
    console.print(Panel("\n".join(lines), title=header, border_style=style, padding=(0, 1)))
    if info.body:
        console.print(Panel(Markdown(info.body), border_style="dim", padding=(0, 1)))


def print_pr_details(details: PRDetails):
    """Print PR info followed by its files and commit list."""
    print_pr_info(details.info)
    console.print(
        f"[bold]{details.total_files}[/bold] files, "
        f"[green]+{details.total_additions}[/green] "
        f"[red]-{details.total_deletions}[/red], "
        f"[bold]{details.total_commits}[/bold] commits"
    )
    print_files(details.files)

    if details.commits:
        console.print("[bold]Commits:[/bold]")
        for commit in details.commits:
            console.print(f"  [yellow]{commit.sha[:7]}[/yellow] {commit.message} [dim]({commit.author})[/dim]")
        console.print()


def print_files(files: list[PRFileChange], max_display: int = 50):
    """Print changed files (truncated if too long)."""
    if not files:
        console.print("[dim]No files.[/dim]")
        return

    table = Table(box=box.SIMPLE)
    table.add_column("Status")
    table.add_column("Path")
    table.add_column("+", justify="right", style="green")
    table.add_column("-", justify="right", style="red")
    for f in files[:max_display]:
        style = _STATUS_STYLES.get(f.status, "white")
        path = f"{f.previous_path} → {f.path}" if f.previous_path else f.path
        table.add_row(f"[{style}]{f.status}[/{style}]", path, str(f.additions), str(f.deletions))
    console.print(table)
    if len(files) > max_display:
        console.print(f"  [dim]... and {len(files) - max_display} more[/dim]")
    console.print()


def print_pr_list(prs: list[PRInfo]):
    if not prs:
        console.print("[dim]No pull requests.[/dim]")
        return

    table = Table(box=box.ROUNDED, border_style="cyan")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("State")
    table.add_column("Branch", style="dim")
    for pr in prs:
        style = _STATE_STYLES.get(pr.state, "white")
        table.add_row(str(pr.number), pr.title, pr.author, f"[{style}]{pr.state}[/{style}]", pr.head_branch)
    console.print(table)
    console.print()


def print_success(message: str):
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print an error message."""
    console.print(f"\n[red]Error: {message}[/red]")


def print_info(message: str):
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")
