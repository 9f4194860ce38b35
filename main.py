#!/usr/bin/env python3
"""FormAgent CLI."""

import argparse
import json
import logging
import sys

from config.settings import Settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="FormAgent AI - conversational form builder"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output and DEBUG logging"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="SQLite database path (default: data/formagent.db)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", type=str, help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, help="Port (default: 5000)")

    archive = subparsers.add_parser("archive", help="Archive inactive conversations")
    archive.add_argument(
        "--days",
        type=int,
        default=30,
        help="Archive conversations inactive for more than this many days (default: 30)"
    )

    check = subparsers.add_parser("check-config", help="Validate the AI configuration")
    check.add_argument(
        "--test",
        action="store_true",
        help="Also send one real request to the provider"
    )

    chat = subparsers.add_parser("chat", help="Send a single chat message")
    chat.add_argument("--message", "-m", type=str, required=True, help="Message to send")
    chat.add_argument("--conversation-id", "-c", type=str, help="Conversation to continue")
    chat.add_argument("--user-id", type=str, default="anonymous", help="User ID (default: anonymous)")

    return parser


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    settings = Settings(
        db_path=args.db_path,
        verbose=args.verbose,
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
    )

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        if args.command == "serve":
            import uvicorn
            from api import create_app

            uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)

        elif args.command == "check-config":
            from utils.config_validator import log_config_status, run_ai_config_test

            test_result = run_ai_config_test(settings) if args.test else None
            validation = log_config_status(settings, test_result)
            print(json.dumps(
                {"validation": validation.model_dump(), "test": test_result},
                indent=2, ensure_ascii=False, default=str
            ))
            if not validation.is_valid or (test_result and not test_result["success"]):
                sys.exit(1)

        elif args.command == "archive":
            from orchestrator import FormAgentOrchestrator

            archived = FormAgentOrchestrator(settings=settings).archive(args.days)
            print(f"Archived {archived} conversations inactive for more than {args.days} days")

        elif args.command == "chat":
            from orchestrator import FormAgentOrchestrator

            orchestrator = FormAgentOrchestrator(settings=settings)
            reply = orchestrator.chat(
                args.message,
                conversation_id=args.conversation_id,
                user_id=args.user_id
            )
            print("\n" + "="*60)
            print(f"FORMAGENT ({reply.service})")
            print("="*60 + "\n")
            print(reply.response)
            print(f"\nconversation_id: {reply.conversation_id}\n")

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
