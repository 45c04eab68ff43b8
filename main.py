#!/usr/bin/env python3
"""
CS Inventory Tracker - auth service
Steam OpenID sign-in, cookie sessions and current-user resolution.
"""

import argparse
import logging
import sys
from typing import Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep invtracker imports lazy (inside functions) so `--login-url` does not pull in
# the web stack.
#


def print_login_url(return_path: Optional[str]) -> None:
    from invtracker.auth.config import load_auth_config
    from invtracker.auth.openid import build_login_url

    print(build_login_url(load_auth_config(), return_path or "/"))


def whoami(identity_file: str) -> int:
    """Resolve the current user for the identity stored in `identity_file`."""
    from invtracker.auth.config import load_auth_config
    from invtracker.client.identity_cache import build_identity_cache
    from invtracker.client.identity_store import FileIdentityStore

    cfg = load_auth_config()
    if not cfg.backend_enabled:
        print("BACKEND_API_URL is not configured", file=sys.stderr)
        return 2

    cache = build_identity_cache(cfg, FileIdentityStore(identity_file))
    user = cache.current_user()
    if user is None:
        err = cache.last_error()
        if err:
            print(f"Not signed in (lookup failed: {err})")
            return 1
        print("Not signed in")
        return 0

    print(f"{user.label} (steamId={user.steam_id}, id={user.id})")
    if user.last_login_at:
        print(f"   Last login: {user.last_login_at.strftime('%Y-%m-%d %H:%MZ')}")
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Steam sign-in and session service for the CS inventory tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the auth HTTP server
  python main.py --serve --port 8080

  # Print the Steam login redirect for a post-login path
  python main.py --login-url /goal

  # Resolve the user behind a stored SteamID64
  python main.py --whoami --identity-file ~/.invtracker/identity.json
        """,
    )

    parser.add_argument("--serve", action="store_true", help="Run the auth HTTP server")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server listen port (default: 8080)")
    parser.add_argument(
        "--login-url",
        nargs="?",
        const="/",
        metavar="RETURN_PATH",
        help="Print the Steam OpenID redirect URL (default return path: /)",
    )
    parser.add_argument("--whoami", action="store_true", help="Resolve the current user via the backend")
    parser.add_argument(
        "--identity-file",
        default="identity.json",
        help="JSON file holding the stored SteamID64 (used with --whoami)",
    )

    args = parser.parse_args()

    try:
        if args.serve:
            from invtracker.api.server import run as run_server

            run_server(host=args.host, port=args.port)
            return

        if args.login_url is not None:
            print_login_url(args.login_url)
            return

        if args.whoami:
            sys.exit(whoami(args.identity_file))

        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
