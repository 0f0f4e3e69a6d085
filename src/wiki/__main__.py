"""
=============================================================================
GOWIKI COMMAND LINE INTERFACE
=============================================================================

Run the wiki:

    python -m wiki                           # :8080, pages in ./wikis
    python -m wiki --address 127.0.0.1:3000
    python -m wiki --pages-dir /srv/wiki --templates-dir ./templates
    python -m wiki --deny /view/oops         # demo of a denying middleware

Environment fallbacks: WIKI_ADDRESS, WIKI_PAGES_DIR, WIKI_TEMPLATES_DIR.

=============================================================================
"""

import argparse
import logging
import os
import sys

from webhelper import TemplateSet, ServerConfig

from .app import build_server
from .storage import PageStore


logger = logging.getLogger("wiki")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gowiki",
        description="A text-file wiki served by webhelper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m wiki                              # Run with defaults
  python -m wiki --address :3000              # Custom port, all interfaces
  python -m wiki --pages-dir ./pages          # Store pages elsewhere
  python -m wiki --deny /view/oops            # Refuse a path with 400
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--address", "-a",
        default=os.getenv("WIKI_ADDRESS", ":8080"),
        help="Listen address host:port (default: :8080, all interfaces)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=8,
        help="Number of worker threads (default: 8)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # STORAGE AND TEMPLATES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--pages-dir", "-d",
        default=os.getenv("WIKI_PAGES_DIR", "wikis"),
        help="Directory holding <title>.txt pages (default: wikis)"
    )

    parser.add_argument(
        "--templates-dir", "-t",
        default=os.getenv("WIKI_TEMPLATES_DIR"),
        help="Directory with view.html and edit.html (default: bundled templates)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--deny",
        action="append",
        default=[],
        metavar="PATH",
        help="Answer this exact path with 400 (repeatable)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Access log format (default: text)"
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Parse arguments, build the wiki server and run it until stopped."""
    args = parse_args(argv)

    try:
        config = ServerConfig.from_address(
            args.address,
            workers=args.workers,
            log_level=args.log_level,
            log_format=args.log_format,
        )
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.templates_dir:
        templates = TemplateSet.from_directory(args.templates_dir)
    else:
        templates = TemplateSet.from_package("wiki", "templates")

    store = PageStore(args.pages_dir)
    server = build_server(config, store, templates, deny=args.deny)

    try:
        server.run()
    except OSError as e:
        logger.critical(f"Cannot serve on {args.address}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
