#!/usr/bin/env python3
"""
SharpLog Runner — CLI entry point.

Usage:
    python run.py chat --user alice                     # Log today's work
    python run.py chat --user alice --industry tech     # With industry context
    python run.py chat --user alice --remote http://localhost:3001
    python run.py serve --port 3001                     # Run the HTTP API
    python run.py targets list --user alice
    python run.py targets add --user alice --name "Ship 10 features" --target-value 10
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from sharplog.config import SharpLogConfig
from sharplog.core.errors import AIServiceError, ConversationStateError, PersistenceError
from sharplog.core.models import Target, TargetType, UserProfile
from sharplog.persistence.store import WorkLogStore

logger = logging.getLogger("sharplog")

CHAT_HELP = """Commands:
  /retry          resend the last message that failed
  /summary        summarize now
  /undo           drop the last exchange
  /edit <text>    replace the summary text
  /unlink <id>    remove a target link from the summary
  /accept         save the summary
  /reset          start over
  /quit           leave (the conversation is kept for next time)"""


def setup_logging(verbose: bool = True):
    """Configure logging."""
    level = logging.INFO if verbose else logging.WARNING

    formatter = logging.Formatter(
        "%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger("sharplog")
    root_logger.setLevel(level)
    root_logger.addHandler(handler)


def print_summary(session) -> None:
    draft = session.summary
    if draft is None:
        return
    print("\n--- Summary ---")
    print(draft.redacted_summary)
    if draft.skills:
        print(f"Skills: {', '.join(draft.skills)}")
    if draft.achievements:
        print("Achievements:")
        for a in draft.achievements:
            print(f"  - {a}")
    if draft.metrics:
        print(f"Metrics: {draft.metrics}")
    print(f"Category: {draft.category}")
    for m in draft.target_mappings:
        value = f" +{m.contribution_value:g}" if m.contribution_value else ""
        print(f"Target: {m.target_name or m.target_id} ({m.target_id}){value}")
    print("---------------")
    print("/accept to save, /edit <text> to change, /undo to keep talking\n")


def send(session, text: str) -> str | None:
    """Send one message and print the reply. Returns the text if the turn must be retried."""
    before = session.exchange_count
    try:
        result = session.send_message(text)
    except AIServiceError as e:
        if session.exchange_count == before:
            print(f"! {e} (/retry to try again)")
            return text
        # Turn went through, the automatic summary did not
        print(f"assistant: {session.messages[-1].text}")
        print(f"! Summary failed: {e} (/summary to try again)")
        return None
    print(f"assistant: {result.message}")
    print_summary(session)
    return None


def run_chat(args, config: SharpLogConfig):
    from sharplog.conversation.session import build_session

    remote = None
    if args.remote:
        from sharplog.api.client import APIClient
        remote = APIClient(args.remote, config.llm)

    profile = UserProfile(
        user_id=args.user,
        industry=args.industry,
        employment_status=args.employment_status,
    )
    session = build_session(config, profile, conversation_id=args.conversation, remote=remote)

    print(f"Logging work for {args.user} ({args.industry}). Type /help for commands.")
    if session.messages:
        print(f"Resuming: {session.status.value}, exchange {session.exchange_count}/{session.max_exchanges}")
        last = session.messages[-1]
        print(f"{last.role}: {last.text}")
        print_summary(session)
    else:
        print("assistant: What did you work on today?")

    last_failed: str | None = None

    while True:
        try:
            line = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not line:
            continue

        command, _, rest = line.partition(" ")
        try:
            if command == "/quit":
                break
            elif command == "/help":
                print(CHAT_HELP)
            elif command == "/retry":
                if last_failed is None:
                    print("Nothing to retry.")
                    continue
                last_failed = send(session, last_failed)
            elif command == "/summary":
                session.skip_to_summary()
                print_summary(session)
            elif command == "/undo":
                removed = session.undo_last_exchange()
                print(f"Removed {removed} message(s). Exchange {session.exchange_count}/{session.max_exchanges}")
            elif command == "/edit":
                session.update_summary(rest)
                print_summary(session)
            elif command == "/unlink":
                if not session.remove_target_mapping(rest.strip()):
                    print(f"No target link {rest.strip()!r} in the summary.")
                print_summary(session)
            elif command == "/accept":
                result = session.accept_summary()
                print(f"Saved work entry {result.work_entry.id}.")
                if not result.mappings_saved:
                    print("Target links could not be saved.")
                for target_id in result.failed_progress_targets:
                    print(f"Progress for target {target_id} was not updated.")
                print("Done. Start a new log whenever you like.")
            elif command == "/reset":
                session.reset_conversation()
                print("Conversation cleared.")
            elif command.startswith("/"):
                print(f"Unknown command {command}. Type /help.")
            else:
                last_failed = send(session, line)
        except AIServiceError as e:
            print(f"! {e}")
        except (ConversationStateError, PersistenceError, ValueError) as e:
            print(f"! {e}")


def run_serve(args, config: SharpLogConfig):
    from sharplog.api.app import create_app

    logger.info("=" * 60)
    logger.info("SharpLog API")
    logger.info("=" * 60)
    logger.info(f"Provider: {config.llm.provider}")
    logger.info(f"Turn model: {config.llm.turn_model}")
    logger.info(f"Summary model: {config.llm.summary_model}")
    logger.info(f"Rate limit: {config.rate_limit.max_requests}/{config.rate_limit.window_seconds:g}s")
    logger.info("=" * 60)

    app = create_app(config)
    app.run(host=args.host, port=args.port, debug=args.debug)


def run_targets(args, config: SharpLogConfig):
    store = WorkLogStore(config.storage.database_path)

    if args.action == "add":
        target = store.add_target(Target(
            user_id=args.user,
            name=args.name,
            description=args.description,
            type=args.type,
            target_value=args.target_value,
            unit=args.unit,
            deadline=args.deadline,
        ))
        print(f"Added target {target.id}: {target.name}")
        return

    targets = store.list_active_targets(args.user)
    if not targets:
        print(f"No active targets for {args.user}.")
        return
    for t in targets:
        goal = f"{t.current_value:g}/{t.target_value:g}" if t.target_value else f"{t.current_value:g}"
        unit = f" {t.unit}" if t.unit else ""
        print(f"{t.id}  [{t.type}] {t.name}: {goal}{unit}")


def main():
    parser = argparse.ArgumentParser(description="SharpLog conversational work logging")
    parser.add_argument("--data-dir", type=str, default=None, help="Where to keep the database and sessions")
    parser.add_argument("--quiet", action="store_true", help="Less output")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Log today's work in the terminal")
    chat.add_argument("--user", required=True, help="User id")
    chat.add_argument("--industry", default="general", help="Industry context for questions")
    chat.add_argument("--employment-status", default=None, help="student, apprentice or professional")
    chat.add_argument("--conversation", default="log", help="Conversation id (one draft per id)")
    chat.add_argument("--remote", default=None, help="Base URL of a SharpLog API to use for AI calls")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=3001)
    serve.add_argument("--debug", action="store_true")

    targets = sub.add_parser("targets", help="Manage targets")
    targets.add_argument("action", choices=["list", "add"])
    targets.add_argument("--user", required=True, help="User id")
    targets.add_argument("--name", default=None)
    targets.add_argument("--description", default=None)
    targets.add_argument("--type", default=TargetType.GOAL.value, choices=[t.value for t in TargetType])
    targets.add_argument("--target-value", type=float, default=None)
    targets.add_argument("--unit", default=None)
    targets.add_argument("--deadline", default=None, help="ISO date")

    args = parser.parse_args()
    if args.command == "targets" and args.action == "add" and not args.name:
        parser.error("targets add requires --name")

    config = SharpLogConfig.from_env()
    if args.data_dir:
        config.storage.data_dir = Path(args.data_dir)
    config.verbose = not args.quiet
    setup_logging(verbose=config.verbose)

    if args.command == "chat":
        run_chat(args, config)
    elif args.command == "serve":
        run_serve(args, config)
    else:
        run_targets(args, config)


if __name__ == "__main__":
    main()
