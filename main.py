#!/usr/bin/env python3
"""
nixpkgs PR Tracker - Main CLI entrypoint

Looks up a nixpkgs pull request and reports which release branches already
contain its merge commit, who approved it and how its CI went. Looked-up PRs
are remembered in a local history.

Usage:
    python main.py pr 123456                  # Check a PR across branches
    python main.py history list               # Show previously checked PRs
    python main.py history delete 123456
    python main.py token set ghp_xxx          # Use a GitHub token for lookups
    python main.py sync-token --server http://127.0.0.1:8000 --session <cookie>
    python main.py serve                      # Start the web API
"""

import argparse
import sys
from pathlib import Path

from backend.server import build_parser, run
from fetchers.github import NixpkgsClient
from models.config_models import Config
from models.data_models import HistoryEntry
from storage.token_store import HistoryStore, JsonFileStore, TokenStore, sync_auth_token
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger()

DEFAULT_STORAGE_PATH = Path("~/.config/nixpkgs-pr-tracker/storage.json")


def open_storage(config: Config) -> JsonFileStore:
    """Local key-value storage backing the token and the history."""
    return JsonFileStore(config.storage_path or DEFAULT_STORAGE_PATH)


def lookup_pr(
    pr_number: int,
    client: NixpkgsClient,
    history: HistoryStore,
) -> bool:
    """
    Report a PR's state, approvals, CI and branch containment.

    Every PR found is saved to the history. Branch containment is only
    checked once the PR has a merge commit.

    Args:
        pr_number: nixpkgs pull request number
        client: GitHub client (authenticated or anonymous)
        history: History store to record the lookup in

    Returns:
        bool: True if the PR was found
    """
    pr = client.get_pr(pr_number)
    if pr.status == 404:
        logger.error(f"PR #{pr_number} not found")
        return False
    if pr.status != 200:
        logger.error(f"Failed to fetch PR #{pr_number}: HTTP {pr.status}")
        return False

    if pr.merged:
        state = "merged"
    elif pr.closed:
        state = "closed"
    else:
        state = "open"

    logger.info("=" * 80)
    logger.info(f"#{pr_number}: {pr.title}")
    logger.info(f"State: {state}, target branch: {pr.base}")
    if pr.user:
        logger.info(f"Author: {pr.user.login}")
    if pr.merged_by:
        logger.info(f"Merged by: {pr.merged_by.login}")
    if pr.labels:
        logger.info(f"Labels: {', '.join(label.name for label in pr.labels)}")

    approvers = client.get_reviews(pr_number)
    if approvers:
        logger.info(f"Approved by: {', '.join(user.login for user in approvers)}")

    if pr.head_sha:
        ci_statuses = client.get_detailed_ci_status(pr.head_sha)
        if ci_statuses:
            logger.info("CI:")
            for status in ci_statuses:
                logger.info(f"  [{status.state}] {status.name} {status.description}".rstrip())

    if pr.merged and pr.merge_commit_sha:
        logger.info(f"Merge commit: {pr.merge_commit_sha}")
        containment = client.check_branches(pr.merge_commit_sha)
        for branch, contained in containment.items():
            marker = "✓" if contained else "✗"
            logger.info(f"  {marker} {branch}")
    else:
        logger.info("Not merged yet - no branch contains it")

    history.save(HistoryEntry(
        pr=pr_number,
        title=pr.title or "",
        merge_commit=pr.merge_commit_sha,
    ))

    logger.info("=" * 80)
    return True


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="nixpkgs PR Tracker - see which branches a PR has reached",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check where a PR has landed
  python main.py pr 123456

  # Remember a token so lookups are not rate limited
  python main.py token set ghp_xxx
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # PR command
    pr_parser = subparsers.add_parser(
        "pr",
        help="Look up a nixpkgs pull request"
    )
    pr_parser.add_argument(
        "number",
        type=int,
        help="Pull request number (e.g., 123456)"
    )

    # History command
    history_parser = subparsers.add_parser(
        "history",
        help="Show or edit previously looked-up PRs"
    )
    history_subparsers = history_parser.add_subparsers(dest="history_command")
    history_subparsers.add_parser("list", help="List looked-up PRs")
    history_delete_parser = history_subparsers.add_parser("delete", help="Forget a PR")
    history_delete_parser.add_argument("number", type=int, help="Pull request number")

    # Token command
    token_parser = subparsers.add_parser(
        "token",
        help="Manage the stored GitHub token"
    )
    token_subparsers = token_parser.add_subparsers(dest="token_command")
    token_set_parser = token_subparsers.add_parser("set", help="Store a GitHub token")
    token_set_parser.add_argument("value", help="GitHub access token")
    token_subparsers.add_parser("show", help="Show whether a token is stored")

    # Sync-token command
    sync_parser = subparsers.add_parser(
        "sync-token",
        help="Copy the token out of a logged-in server session"
    )
    sync_parser.add_argument(
        "--server",
        type=str,
        default="http://127.0.0.1:8000",
        help="Base URL of the tracker API (default: http://127.0.0.1:8000)"
    )
    sync_parser.add_argument(
        "--session",
        type=str,
        required=True,
        help="Value of the 'session' cookie from a logged-in browser"
    )

    # Serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the web API"
    )
    build_parser(serve_parser)

    args = parser.parse_args()

    # Show help if no command provided
    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = load_config()
    setup_logger(config.log_level)

    if args.command == "serve":
        run(host=args.host, port=args.port, reload=not args.no_reload)
        sys.exit(0)

    store = open_storage(config)
    token_store = TokenStore(store)
    history = HistoryStore(store)

    if args.command == "pr":
        client = NixpkgsClient(token=token_store.get_token(), timeout=config.request_timeout)
        if not token_store.has_token():
            logger.warning("No GitHub token stored - using anonymous (rate limited) requests")
        try:
            success = lookup_pr(args.number, client, history)
        except Exception as e:
            logger.error(f"Lookup of PR #{args.number} failed: {e}")
            success = False
        sys.exit(0 if success else 1)

    elif args.command == "history":
        if args.history_command == "delete":
            history.delete(args.number)
            logger.info(f"Removed PR #{args.number} from history")
        elif args.history_command == "list":
            entries = history.list()
            if not entries:
                logger.info("History is empty")
            for entry in entries:
                logger.info(f"#{entry.pr} {entry.title} ({entry.merge_commit})")
        else:
            history_parser.print_help()
            sys.exit(1)
        sys.exit(0)

    elif args.command == "token":
        if args.token_command == "set":
            token_store.set_token(args.value)
            logger.info("Token stored")
        elif args.token_command == "show":
            logger.info("Token stored" if token_store.has_token() else "No token stored")
        else:
            token_parser.print_help()
            sys.exit(1)
        sys.exit(0)

    elif args.command == "sync-token":
        success = sync_auth_token(token_store, args.server, args.session, timeout=config.request_timeout)
        if not success:
            logger.error("Could not read a token from the server session")
        sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
