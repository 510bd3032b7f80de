"""
Command-line interface for the Link Validator.

This module provides the CLI for adding links to the backlog, running a
validation pass, listing broken links and serving the HTTP API.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from link_validator.config.pydantic_config import (
    ConfigurationManager,
    LinkValidatorConfig,
)
from link_validator.core.batch_validator import BatchValidationEngine
from link_validator.core.data_models import BrokenLinksPage, ValidationSummary
from link_validator.core.ingestion import LinkIngestor
from link_validator.core.record_store import create_record_store
from link_validator.core.reporting import DEFAULT_PAGE_SIZE, BrokenLinkReporter
from link_validator.utils.error_handler import (
    LinkValidatorError,
    ValidationInputError,
)
from link_validator.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)


class CLIInterface:
    """Command line interface for the link validator."""

    def __init__(self, console: Optional[Console] = None):
        self.parser = self._create_parser()
        self.console = console or Console()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser with one subcommand per operation."""
        parser = argparse.ArgumentParser(
            prog="link-validator",
            description="Link Validator - batch URL reachability checks",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  link-validator add https://example.com https://example.org/missing
  link-validator add --file urls.txt
  link-validator validate --batch-size 500 --max-parallelism 20
  link-validator broken --page 2 --page-size 100
  link-validator broken --json
  link-validator serve --host 0.0.0.0 --port 8080

Configuration:
  Settings are read from link_validator.toml or link_validator.json in the
  current directory, or from the file given with --config. Environment
  variables LINK_VALIDATOR_MONGODB_URI, LINK_VALIDATOR_STORE_BACKEND and
  LINK_VALIDATOR_SQLITE_PATH override the store settings.
            """,
        )

        parser.add_argument(
            "--version", "-V", action="version", version="%(prog)s 1.0.0"
        )
        parser.add_argument(
            "--config", "-c", type=Path, help="Configuration file (TOML or JSON)"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable debug logging"
        )

        subparsers = parser.add_subparsers(dest="command", required=True)

        add_parser = subparsers.add_parser("add", help="Add links to the backlog")
        add_parser.add_argument("urls", nargs="*", help="URLs to add")
        add_parser.add_argument(
            "--file", "-f", type=Path, help="File with one URL per line"
        )

        validate_parser = subparsers.add_parser(
            "validate", help="Validate all pending links"
        )
        validate_parser.add_argument("--batch-size", type=int, help="Links per batch")
        validate_parser.add_argument(
            "--max-parallelism", type=int, help="Concurrent probes per batch"
        )
        validate_parser.add_argument(
            "--timeout",
            dest="timeout_seconds",
            type=float,
            help="Per-attempt timeout in seconds",
        )
        validate_parser.add_argument(
            "--max-retries", type=int, help="Retries for timeouts and network errors"
        )

        broken_parser = subparsers.add_parser("broken", help="List broken links")
        broken_parser.add_argument("--page", type=int, default=1, help="Page number")
        broken_parser.add_argument(
            "--page-size",
            type=int,
            default=DEFAULT_PAGE_SIZE,
            help=f"Links per page (default {DEFAULT_PAGE_SIZE})",
        )
        broken_parser.add_argument(
            "--json", action="store_true", help="Print the page as JSON"
        )

        serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
        serve_parser.add_argument("--host", help="Bind address")
        serve_parser.add_argument("--port", type=int, help="Bind port")

        return parser

    def parse_args(self, args=None) -> argparse.Namespace:
        """Parse command line arguments."""
        return self.parser.parse_args(args)

    def load_configuration(self, parsed_args: argparse.Namespace) -> LinkValidatorConfig:
        """Load configuration and apply command-line overrides."""
        manager = ConfigurationManager(parsed_args.config)
        overrides = dict(vars(parsed_args))
        if parsed_args.verbose:
            overrides["log_level"] = "DEBUG"
        manager.update_from_cli_args(overrides)
        return manager.config

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _read_urls(self, parsed_args: argparse.Namespace) -> List[str]:
        urls = list(parsed_args.urls)
        if parsed_args.file:
            if not parsed_args.file.exists():
                raise ValidationInputError(f"URL file not found: {parsed_args.file}")
            with open(parsed_args.file, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#"):
                        urls.append(line)
        return urls

    def _handle_add(self, config: LinkValidatorConfig, parsed_args) -> int:
        urls = self._read_urls(parsed_args)
        store = create_record_store(config.store)
        try:
            records = LinkIngestor(store).add_links(urls)
        finally:
            store.close()

        self.console.print(f"[green]Links added successfully:[/green] {len(records)}")
        if parsed_args.verbose:
            for record in records:
                self.console.print(f"  {record.id}  {record.url}")
        return 0

    async def _run_validation(self, config: LinkValidatorConfig) -> ValidationSummary:
        store = create_record_store(config.store)
        engine = BatchValidationEngine.from_settings(store, config.validation)
        try:
            return await engine.validate_all()
        finally:
            await engine.close()
            store.close()

    def _handle_validate(self, config: LinkValidatorConfig, parsed_args) -> int:
        summary = asyncio.run(self._run_validation(config))

        self.console.print("[green]Validation completed successfully[/green]")
        self.console.print(f"  Total processed: {summary.total_processed}")
        self.console.print(f"  Valid links:     {summary.valid_count}")
        self.console.print(f"  Broken links:    {summary.broken_count}")
        self.console.print(f"  Duration:        {summary.duration:.2f}s")
        return 0

    def _print_broken_table(self, page: BrokenLinksPage) -> None:
        table = Table(show_header=True, header_style="bold")
        table.add_column("ID", style="dim")
        table.add_column("Link", style="cyan", overflow="fold")
        table.add_column("Reason", style="red")
        table.add_column("Last Validated", style="dim")

        for record in page.records:
            table.add_row(
                record.id or "",
                record.url,
                record.reason or "Unknown",
                record.updated_at.isoformat() if record.updated_at else "",
            )

        self.console.print(table)
        self.console.print(
            f"Page {page.page} of {page.total_pages} "
            f"({page.total_count} broken links)"
        )

    def _handle_broken(self, config: LinkValidatorConfig, parsed_args) -> int:
        store = create_record_store(config.store)
        try:
            page = BrokenLinkReporter(store).list_broken(
                page=parsed_args.page, page_size=parsed_args.page_size
            )
        finally:
            store.close()

        if parsed_args.json:
            print(json.dumps(page.to_dict(), indent=2))
        else:
            self._print_broken_table(page)
        return 0

    def _handle_serve(self, config: LinkValidatorConfig, parsed_args) -> int:
        import uvicorn

        from link_validator.api import create_app

        app = create_app(config)
        logger.info(f"Serving on {config.server.host}:{config.server.port}")
        uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)
        return 0

    def run(self, args=None) -> int:
        """Execute CLI interface."""
        try:
            parsed_args = self.parse_args(args)
            config = self.load_configuration(parsed_args)
            setup_logging(config.logging)

            handlers = {
                "add": self._handle_add,
                "validate": self._handle_validate,
                "broken": self._handle_broken,
                "serve": self._handle_serve,
            }
            return handlers[parsed_args.command](config, parsed_args)

        except ValidationInputError as e:
            print(f"Validation Error: {e}", file=sys.stderr)
            return 1
        except LinkValidatorError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            print("Interrupted", file=sys.stderr)
            return 1
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            logger.exception("Unexpected error in CLI")
            return 1


def main(args=None):
    """Main entry point for the CLI."""
    cli = CLIInterface()
    return cli.run(args)


if __name__ == "__main__":
    sys.exit(main())
