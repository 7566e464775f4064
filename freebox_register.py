#!/usr/bin/env python3
"""
One-time registration of the exporter on a Freebox.

Requests an application token (to be approved on the router front panel),
stores it, then checks that a session can be opened with it.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import freebox_client
from freebox_client_exceptions import FreeboxError
from freebox_token_store import TokenStore

logger = logging.getLogger(__name__)


def register(session: freebox_client.FreeboxSession, force: bool = False) -> None:
    """
    Make sure an approved app token is stored and usable.

    Args:
        session: gateway bound to the router and the token store
        force: drop the stored token and request a new one
    """
    if force:
        session.store.clear()
        session.invalidate()

    if session.store.load() is None:
        session.authorizer.authorize()

    session.invalidate()
    logged_in = session.get("login/", lambda result: bool(result.get("logged_in")))
    if not logged_in:
        logger.warning("Router does not report the new session as logged in")
    permissions = session.permissions
    logger.info(f"Session opened, granted permissions: {', '.join(permissions.granted) or 'none'}")
    session.logout()


def main(argv=None):
    """Entry point for the registration command."""
    default_endpoint = os.getenv("FREEBOX_ENDPOINT", freebox_client.DEFAULT_ENDPOINT)
    default_token_file = os.getenv("FREEBOX_TOKEN_FILE", str(TokenStore.default().location))
    default_log_level = os.getenv("FREEBOX_LOG_LEVEL", "INFO")

    parser = argparse.ArgumentParser(
        description="Register the Prometheus exporter as a Freebox application",
        epilog="Environment variables can be used as defaults: "
               "FREEBOX_ENDPOINT, FREEBOX_TOKEN_FILE, FREEBOX_LOG_LEVEL"
    )
    parser.add_argument(
        "--endpoint",
        default=default_endpoint,
        help="Freebox API endpoint (default: http://mafreebox.freebox.fr/) [env: FREEBOX_ENDPOINT]"
    )
    parser.add_argument(
        "--token-file",
        default=default_token_file,
        help="Where the application token is stored (default: ~/.freebox_token) [env: FREEBOX_TOKEN_FILE]"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Request a new application token even if one is already stored"
    )
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO) [env: FREEBOX_LOG_LEVEL]"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    factory = freebox_client.FreeboxSessionFactory(args.endpoint)
    session = factory.create(store=TokenStore(args.token_file))
    logger.info(f"Registering on {factory.base_url}")

    try:
        register(session, force=args.force)
    except FreeboxError as e:
        logger.error(f"Registration failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
