#!/usr/bin/env python3
"""
UserVault -- Username/password accounts with JWT sessions.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py show-user alice
  python main.py show-user alice@example.com --json
  python main.py revoke-session alice

Environment variables (or .env):
  ACCESS_TOKEN_SECRET   HMAC key for access tokens (>= 32 chars)
  REFRESH_TOKEN_SECRET  HMAC key for refresh tokens (>= 32 chars, different)
  DATABASE_URL          SQLAlchemy URL (default: sqlite file under auth/)
  MEDIA_BACKEND         local (default) or cloudinary
  DEBUG                 true generates throwaway secrets for local development
"""

import argparse
import json
from typing import Optional

from api.models import UserResponse
from auth.models import User
from auth.store import UserStore
from core.config import get_settings


def _lookup(store: UserStore, identifier: str) -> Optional[User]:
    """Resolve a user by email if the identifier contains '@', else by user name."""
    if "@" in identifier:
        return store.get_by_email(identifier)
    return store.get_by_user_name(identifier)


def show_user(store: UserStore, identifier: str, as_json: bool = False) -> int:
    """Print the public profile of a user. Returns a process exit code."""
    user = _lookup(store, identifier)
    if user is None:
        print(f"  [!] No user matching '{identifier}'.")
        return 1

    view = UserResponse.from_user(user)
    if as_json:
        print(json.dumps(view.model_dump(by_alias=True), indent=2))
        return 0

    print(f"\n  {view.user_name} (id {view.id})")
    print("  " + "─" * 38)
    print(f"  Full name   : {view.full_name}")
    print(f"  Email       : {view.email}")
    print(f"  Avatar      : {view.avatar or '-'}")
    print(f"  Cover image : {view.cover_image or '-'}")
    print(f"  Session     : {'active' if user.refresh_token else 'none'}")
    print(f"  Created     : {view.created_at}")
    print(f"  Updated     : {view.updated_at}\n")
    return 0


def revoke_session(store: UserStore, identifier: str) -> int:
    """Clear the stored refresh token so the next refresh attempt fails.

    Access tokens already issued stay valid until they expire.
    """
    user = _lookup(store, identifier)
    if user is None:
        print(f"  [!] No user matching '{identifier}'.")
        return 1
    if user.refresh_token is None:
        print(f"  {user.user_name} has no active session.")
        return 0
    store.set_refresh_token(user.id, None)
    print(f"  Session revoked for {user.user_name}.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="uservault",
        description="UserVault account service and admin tools.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py show-user alice
  python main.py show-user alice@example.com --json
  python main.py revoke-session alice
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    show = sub.add_parser("show-user", help="Print a user's public profile")
    show.add_argument("identifier", metavar="USER", help="User name or email")
    show.add_argument("--json", action="store_true", help="Output JSON instead of a table")

    revoke = sub.add_parser("revoke-session", help="Invalidate a user's refresh token")
    revoke.add_argument("identifier", metavar="USER", help="User name or email")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "serve":
        import uvicorn

        uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    store = UserStore(get_settings().database_url)
    try:
        if args.command == "show-user":
            return show_user(store, args.identifier, as_json=args.json)
        return revoke_session(store, args.identifier)
    finally:
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())
