#!/usr/bin/env python3
"""diagramview command line front end.

Renders the diagrams of a document to the terminal using the same
orchestration the editor plugin uses, with a FileHost standing in for
the editor.

Usage:
    # Render every diagram in a Markdown file
    diagramview render README.md

    # Neorg file with a config file and a longer timeout
    diagramview render notes.norg --config diagram.yaml --timeout 120

    # Where rendered images are cached
    diagramview cache-dir
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console

from .config import get_cache_dir, load_config_file
from .errors import ConfigurationError, NoIntegrationFoundError
from .file_host import FileHost
from .host import ERROR
from .plugin import create_plugin

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

EXIT_OK = 0
EXIT_NO_INTEGRATION = 1
EXIT_CONFIG_ERROR = 2
EXIT_TIMEOUT = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diagramview",
        description="Render diagrams embedded in documents as terminal images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0  all diagrams handled
  1  no integration for the file, or the file cannot be read
  2  configuration error
  3  render jobs still running when the timeout expired
        """,
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Render the diagrams in a file")
    render.add_argument("path", metavar="PATH", help="Document to render")
    render.add_argument(
        "--filetype", "-f",
        help="Filetype override (default: guessed from the extension)",
    )
    render.add_argument(
        "--config", "-c",
        metavar="FILE",
        help="Plugin options as JSON or YAML",
    )
    render.add_argument(
        "--timeout", "-t",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds to wait for render jobs (default: {DEFAULT_TIMEOUT:g})",
    )

    subparsers.add_parser("cache-dir", help="Print the image cache directory")
    return parser


def _configure_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        name = os.environ.get("DIAGRAMVIEW_LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def render_file(path: str, filetype: Optional[str] = None,
                config: Optional[str] = None,
                timeout: float = DEFAULT_TIMEOUT,
                host: Optional[FileHost] = None,
                console: Optional[Console] = None) -> int:
    """Render the diagrams of one document.

    Args:
        path: Document to render.
        filetype: Filetype override.
        config: Optional JSON or YAML options file.
        timeout: Seconds to drive the loop while render jobs run.
        host: Host to use; a new FileHost by default.
        console: Console for messages (stderr by default).

    Returns:
        Process exit code.
    """
    console = console or Console(stderr=True)
    try:
        opts = load_config_file(config) if config else {}
    except ConfigurationError as e:
        console.print(str(e), style="red", markup=False)
        return EXIT_CONFIG_ERROR

    host = host or FileHost(console=console)
    try:
        try:
            bufnr = host.open(path, filetype)
        except OSError as e:
            console.print(f"Cannot read {path}: {e.strerror or e}",
                          style="red", markup=False)
            return EXIT_NO_INTEGRATION
        except UnicodeDecodeError as e:
            console.print(f"Cannot read {path}: not UTF-8 text (byte {e.start})",
                          style="red", markup=False)
            return EXIT_NO_INTEGRATION

        plugin = create_plugin()
        try:
            plugin.setup(host, opts)
        except ConfigurationError as e:
            console.print(str(e), style="red", markup=False)
            return EXIT_CONFIG_ERROR

        try:
            try:
                plugin.orchestrator.resolve_integration(bufnr)
            except NoIntegrationFoundError as e:
                console.print(str(e), style="yellow", markup=False)
                return EXIT_NO_INTEGRATION

            errors_before = _error_count(host)
            host.run_command("DiagramRender")
            if _error_count(host) > errors_before:
                return EXIT_CONFIG_ERROR

            poller = plugin.poller
            if not host.run_until(lambda: poller.pending == 0, timeout=timeout):
                console.print(
                    f"Timed out after {timeout:g}s with "
                    f"{poller.pending} render job(s) still running",
                    style="yellow")
                return EXIT_TIMEOUT

            shown = len(plugin.registry)
            logger.info("Rendered %d diagram(s) from %s", shown, path)
            console.print(f"Rendered {shown} diagram(s) from {path}", style="dim", markup=False)
            return EXIT_OK
        finally:
            plugin.teardown(clear_images=False)
    finally:
        host.close()


def _error_count(host: FileHost) -> int:
    return sum(1 for level, _ in host.notifications if level >= ERROR)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    if os.path.exists(args.env_file):
        load_dotenv(args.env_file)
    _configure_logging(args.verbose)

    if args.command == "cache-dir":
        print(get_cache_dir())
        return EXIT_OK

    return render_file(
        args.path,
        filetype=args.filetype,
        config=args.config,
        timeout=args.timeout,
    )


if __name__ == "__main__":
    sys.exit(main())
