#!/usr/bin/env python3
"""CLI for the review-annotation sync engine."""

import argparse
import asyncio
import sys

from .config import DEFAULT_LOCALE, REMOTE_BACKEND, WORKSPACE_ROOT, configure_logging
from .errors import ReviewSyncError
from .render import (
    console,
    print_comment,
    print_comments,
    print_error,
    print_files,
    print_info,
    print_pr_details,
    print_pr_list,
    print_success,
)
from .review_types import COMMENT_TYPES, LineRange
from .session import ReviewSession, open_session


async def _resolve_pr_number(session: ReviewSession, number: int | None) -> int:
    if number is not None:
        return number
    current = await session.sync.get_current_pr_number()
    if current is None:
        raise ReviewSyncError("No PR found for the current branch; pass a PR number")
    print_info(f"Using PR #{current} for the current branch")
    return current


async def cmd_comments(session: ReviewSession, args):
    if args.file:
        comments = session.comments.get_file_comments(args.file)
        if not args.all:
            comments = [c for c in comments if not c.resolved]
    elif args.all:
        comments = [c for file_comments in session.comments.get_all_comments().values() for c in file_comments]
    else:
        comments = session.comments.get_unresolved_comments()
    print_comments(comments)


async def cmd_add(session: ReviewSession, args):
    comment = await session.comments.add_comment(
        args.file, LineRange(args.line), args.body, type=args.type
    )
    print_comment(comment)


async def cmd_suggest(session: ReviewSession, args):
    comment = await session.comments.add_suggestion(
        args.file, LineRange(args.line), args.original, args.suggested, reason=args.reason
    )
    print_comment(comment)


async def cmd_resolve(session: ReviewSession, args):
    await session.comments.resolve_comment(args.id)
    print_success(f"Resolved {args.id}")


async def cmd_apply(session: ReviewSession, args):
    await session.comments.apply_suggestion(args.id, force=args.force)
    print_success(f"Applied suggestion {args.id}")


async def cmd_reject(session: ReviewSession, args):
    await session.comments.reject_suggestion(args.id)
    print_success(f"Rejected suggestion {args.id}")


async def cmd_pr(session: ReviewSession, args):
    number = await _resolve_pr_number(session, args.number)
    details = await session.pr_service.get_pr_details(number)
    if details is None:
        raise ReviewSyncError(f"PR #{number} not found")
    print_pr_details(details)


async def cmd_files(session: ReviewSession, args):
    number = await _resolve_pr_number(session, args.number)
    files = await session.pr_service.get_pr_files(number)
    if not args.all:
        files = session.pr_service.get_reviewable_files(files, args.locale)
    print_files(files)


async def cmd_checkout(session: ReviewSession, args):
    info = await session.pr_service.get_pr_info(args.number)
    branch = await session.pr_service.checkout_pr(info.number, info.title)
    print_success(f"Checked out PR #{info.number} on {branch}")


async def cmd_pull(session: ReviewSession, args):
    number = await _resolve_pr_number(session, args.number)
    imported = await session.sync.import_remote_comments(number)
    added = await session.comments.import_comments(imported)
    print_success(f"Imported {added} new comment(s) from PR #{number} ({len(imported)} fetched)")


async def cmd_push(session: ReviewSession, args):
    number = await _resolve_pr_number(session, args.number)
    count = await session.sync.push_all_unsynced(number, review_event=args.verdict, body=args.body)
    if args.verdict:
        print_success(f"Submitted '{args.verdict}' review on PR #{number} ({count} pending comment(s))")
    else:
        print_success(f"Pushed {count} comment(s) to PR #{number}")


async def cmd_prs(session: ReviewSession, args):
    prs = await session.pr_service.list_recent_prs(limit=args.limit, state=args.state)
    print_pr_list(prs)


COMMANDS = {
    "comments": cmd_comments,
    "add": cmd_add,
    "suggest": cmd_suggest,
    "resolve": cmd_resolve,
    "apply": cmd_apply,
    "reject": cmd_reject,
    "pr": cmd_pr,
    "files": cmd_files,
    "checkout": cmd_checkout,
    "pull": cmd_pull,
    "push": cmd_push,
    "prs": cmd_prs,
}


async def run_command(args) -> None:
    session = await open_session(args.workspace, backend=args.remote)
    await COMMANDS[args.command](session, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="revsync",
        description="Line-anchored review comments synced with GitHub pull requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--workspace", "-w", type=str, default=str(WORKSPACE_ROOT), help="Workspace root (default: .)")
    parser.add_argument("--remote", type=str, default=REMOTE_BACKEND, help="Remote backend: gh or github")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (default: from .env or INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    comments_parser = subparsers.add_parser("comments", help="List review comments")
    comments_parser.add_argument("--file", "-f", type=str, default=None, help="Only comments on this file")
    comments_parser.add_argument("--all", "-a", action="store_true", help="Include resolved comments")

    add_parser = subparsers.add_parser("add", help="Add a comment on a line")
    add_parser.add_argument("file", type=str, help="File path")
    add_parser.add_argument("line", type=int, help="1-based line number")
    add_parser.add_argument("body", type=str, help="Comment text")
    add_parser.add_argument(
        "--type", "-t", type=str, default="general",
        choices=[t for t in COMMENT_TYPES if t != "suggestion"], help="Comment type",
    )

    suggest_parser = subparsers.add_parser("suggest", help="Suggest a replacement for a line")
    suggest_parser.add_argument("file", type=str, help="File path")
    suggest_parser.add_argument("line", type=int, help="1-based line number")
    suggest_parser.add_argument("--original", "-o", type=str, required=True, help="Current text of the line")
    suggest_parser.add_argument("--suggested", "-s", type=str, required=True, help="Replacement text")
    suggest_parser.add_argument("--reason", "-r", type=str, default="", help="Why the change is needed")

    for name, help_text in (("resolve", "Resolve a comment"), ("reject", "Reject a suggestion")):
        id_parser = subparsers.add_parser(name, help=help_text)
        id_parser.add_argument("id", type=str, help="Comment ID")

    apply_parser = subparsers.add_parser("apply", help="Apply a suggestion to its line")
    apply_parser.add_argument("id", type=str, help="Comment ID")
    apply_parser.add_argument("--force", action="store_true", help="Overwrite the line even if it has changed")

    pr_parser = subparsers.add_parser("pr", help="Show PR details")
    pr_parser.add_argument("number", type=int, nargs="?", default=None, help="PR number (default: current branch)")

    files_parser = subparsers.add_parser("files", help="List reviewable files of a PR")
    files_parser.add_argument("number", type=int, nargs="?", default=None, help="PR number (default: current branch)")
    files_parser.add_argument("--locale", "-l", type=str, default=DEFAULT_LOCALE, help=f"Locale (default: {DEFAULT_LOCALE})")
    files_parser.add_argument("--all", "-a", action="store_true", help="List every changed file")

    checkout_parser = subparsers.add_parser("checkout", help="Check out a PR on a local branch")
    checkout_parser.add_argument("number", type=int, help="PR number")

    pull_parser = subparsers.add_parser("pull", help="Import review comments from a PR")
    pull_parser.add_argument("number", type=int, nargs="?", default=None, help="PR number (default: current branch)")

    push_parser = subparsers.add_parser("push", help="Push unsynced comments to a PR")
    push_parser.add_argument("number", type=int, nargs="?", default=None, help="PR number (default: current branch)")
    verdict = push_parser.add_mutually_exclusive_group()
    verdict.add_argument("--approve", dest="verdict", action="store_const", const="approve", help="Submit an approving review")
    verdict.add_argument("--comment", dest="verdict", action="store_const", const="comment", help="Submit a comment review")
    verdict.add_argument(
        "--request-changes", dest="verdict", action="store_const", const="request-changes", help="Request changes",
    )
    push_parser.add_argument("--body", "-b", type=str, default=None, help="Review body for a verdict")

    prs_parser = subparsers.add_parser("prs", help="List recent pull requests")
    prs_parser.add_argument("--limit", "-n", type=int, default=10, help="How many to list (default: 10)")
    prs_parser.add_argument("--state", type=str, default="all", choices=["open", "closed", "merged", "all"])

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", type=str, default=None, help="Host to bind (default: from .env or 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind (default: from .env or 8000)")

    return parser


def main(argv: list[str] | None = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "serve":
        from .config import API_HOST, API_PORT
        from .server import run_server

        host = args.host or API_HOST
        port = args.port or API_PORT
        print_info(f"Starting API server at http://{host}:{port}")
        run_server(host, port)
    elif args.command in COMMANDS:
        try:
            asyncio.run(run_command(args))
        except ReviewSyncError as e:
            print_error(str(e))
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[dim]Interrupted[/dim]")
            sys.exit(130)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
