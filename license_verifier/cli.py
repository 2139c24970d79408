"""
Command-line interface for the Business License Verifier.

This module provides the CLI for looking up company registrations and
verifying company name / registration number pairs in batches against the
Baidu AI Cloud business license API, with optional Markdown and Excel export.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from tqdm import tqdm

from license_verifier import __version__
from license_verifier.config.pydantic_config import ConfigurationManager, VerifierConfig
from license_verifier.core.baidu_api_client import BaiduBusinessAPI
from license_verifier.core.batch_processor import BatchProcessor
from license_verifier.core.batch_types import CancellationToken
from license_verifier.core.data_models import (
    BusinessLicenseInfo,
    TwoFactorVerification,
    VerificationPair,
)
from license_verifier.core.exporters import ExportError, export_results
from license_verifier.core.file_import import (
    import_file,
    pair_items,
    rows_to_pairs,
    split_items,
)
from license_verifier.utils.error_handler import (
    APIError,
    BatchCancelledError,
    BatchProcessingError,
    ConfigurationError,
    DataError,
    ValidationError,
)
from license_verifier.utils.logging_setup import setup_logging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

logger = logging.getLogger(__name__)


class CLIInterface:
    """Command line interface for batch queries and verifications."""

    def __init__(self, api_factory: Optional[Callable[..., Any]] = None):
        """
        Args:
            api_factory: Callable ``(api_key, secret_key, timeout=...)`` returning
                an async context manager with ``query_business`` and
                ``verify_business``. Defaults to BaiduBusinessAPI.
        """
        self.parser = self._create_parser()
        self.api_factory = api_factory or BaiduBusinessAPI

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog="license-verifier",
            description=(
                "Business License Verifier - batch lookup and verification of "
                "company registrations via the Baidu AI Cloud API"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  license-verifier query --separator "、" "Example Technology Co., Ltd.、Another Co., Ltd."
  license-verifier query --input companies.xlsx --format markdown --format excel
  license-verifier verify --company "A Co.,B Co." --regnum "9111...,9131..."
  license-verifier verify --input pairs.csv --output-dir exports --include-raw
  license-verifier verify --input pairs.xlsx --header-row 2 --company-column 企业名称
  license-verifier query --input companies.txt --batch-size 20 --max-concurrent 3
  license-verifier create-config license_verifier.toml

Credentials:
  Set BAIDU_API_KEY and BAIDU_SECRET_KEY, or add them to the [api] section
  of the configuration file.
""",
        )
        parser.add_argument(
            "--version", action="version", version=f"%(prog)s {__version__}"
        )

        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("--config", "-c", type=Path, help="Configuration file (TOML or JSON)")
        common.add_argument(
            "--format",
            dest="formats",
            action="append",
            choices=["markdown", "excel"],
            help="Export format (repeatable)",
        )
        common.add_argument("--output-dir", "-o", type=Path, help="Export directory")
        common.add_argument(
            "--include-raw", action="store_true", help="Include raw API data in exports"
        )
        common.add_argument("--separator", help="Whitespace-separated list of item separators")
        common.add_argument("--batch-size", type=int, help="Items per batch")
        common.add_argument("--max-concurrent", type=int, help="Maximum concurrent requests")
        common.add_argument(
            "--request-interval", type=float, help="Pause between batches in seconds"
        )
        common.add_argument("--max-retries", type=int, help="Retries per item")
        common.add_argument(
            "--log-file",
            default="license_verifier.log",
            help="Log file name under ./logs ('' to disable)",
        )
        common.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
        common.add_argument("--quiet", "-q", action="store_true", help="Hide the progress bar")

        subparsers = parser.add_subparsers(dest="command", required=True)

        query = subparsers.add_parser(
            "query", parents=[common], help="Look up company registrations by name"
        )
        query.add_argument("names", nargs="*", help="Company names")
        query.add_argument("--input", "-i", type=Path, help="File with one company per line")

        verify = subparsers.add_parser(
            "verify",
            parents=[common],
            help="Verify company names against registration numbers",
        )
        verify.add_argument("--company", help="Company names, separated")
        verify.add_argument("--regnum", help="Registration numbers, separated")
        verify.add_argument(
            "--input", "-i", type=Path, help="File with company and registration number columns"
        )
        verify.add_argument(
            "--header-row",
            type=int,
            help="1-based header row of the input file (0 = no header, default: detect)",
        )
        verify.add_argument(
            "--company-column", help="Header name or 1-based number of the company column"
        )
        verify.add_argument(
            "--regnum-column",
            help="Header name or 1-based number of the registration number column",
        )

        create_config = subparsers.add_parser(
            "create-config", help="Write a sample configuration file"
        )
        create_config.add_argument(
            "path", type=Path, nargs="?", default=Path("license_verifier.toml")
        )
        create_config.add_argument(
            "--format", dest="config_format", choices=["toml", "json"], default="toml"
        )

        return parser

    def parse_args(self, args=None) -> argparse.Namespace:
        """Parse command line arguments."""
        return self.parser.parse_args(args)

    def load_configuration(self, parsed_args: argparse.Namespace) -> ConfigurationManager:
        """Load configuration and apply command line overrides."""
        manager = ConfigurationManager(parsed_args.config)
        manager.update_from_cli_args(
            {
                "batch_size": parsed_args.batch_size,
                "max_concurrent": parsed_args.max_concurrent,
                "request_interval": parsed_args.request_interval,
                "max_retries": parsed_args.max_retries,
                "formats": parsed_args.formats,
                "output_dir": parsed_args.output_dir,
                "include_raw": parsed_args.include_raw,
            }
        )
        return manager

    def collect_query_items(self, parsed_args: argparse.Namespace) -> List[str]:
        """Company names from the input file and/or positional arguments."""
        names: List[str] = []
        if parsed_args.input:
            names.extend(import_file(parsed_args.input).data)
        for text in parsed_args.names:
            names.extend(split_items(text, parsed_args.separator))
        return names

    def collect_verification_pairs(
        self, parsed_args: argparse.Namespace
    ) -> List[VerificationPair]:
        """Pairs from the input file and/or the --company/--regnum options."""
        pairs: List[VerificationPair] = []
        if parsed_args.input:
            pairs.extend(
                rows_to_pairs(
                    import_file(parsed_args.input).rows,
                    header_row=parsed_args.header_row,
                    company_column=parsed_args.company_column,
                    regnum_column=parsed_args.regnum_column,
                )
            )

        if parsed_args.company or parsed_args.regnum:
            if not (parsed_args.company and parsed_args.regnum):
                raise ValidationError(
                    "Please enter both company names and registration numbers"
                )
            pairs.extend(
                pair_items(
                    split_items(parsed_args.company, parsed_args.separator),
                    split_items(parsed_args.regnum, parsed_args.separator),
                )
            )
        return pairs

    async def process(
        self,
        command: str,
        items: Sequence[Any],
        config: VerifierConfig,
        credentials: tuple,
        show_progress: bool = True,
    ) -> list:
        """Run the batch against the API."""
        processor = BatchProcessor(config.batch)
        token = CancellationToken()
        api_key, secret_key = credentials

        loop = asyncio.get_running_loop()
        interrupt_installed = False
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel)
            interrupt_installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            pass

        try:
            async with self.api_factory(api_key, secret_key, timeout=config.api.timeout) as api:
                if command == "query":
                    worker = api.query_business
                else:

                    async def worker(pair: VerificationPair) -> TwoFactorVerification:
                        return await api.verify_business(pair.company, pair.regnum)

                with tqdm(
                    total=100,
                    desc="Verifying" if command == "verify" else "Querying",
                    unit="%",
                    disable=not show_progress,
                    bar_format="{l_bar}{bar}| {n:.0f}/{total:.0f}%",
                ) as bar:

                    def on_progress(percent: float) -> None:
                        bar.update(percent - bar.n)

                    return await processor.process_batch(items, worker, on_progress, token)
        finally:
            if interrupt_installed:
                loop.remove_signal_handler(signal.SIGINT)
            logger.info(f"Batch statistics: {processor.get_statistics()}")

    def format_result(self, result: Any) -> str:
        """Render one result as a text block."""
        if isinstance(result, TwoFactorVerification):
            return (
                f"Company: {result.company}\n"
                f"Registration Number: {result.regnum}\n"
                f"Result: {result.status}\n"
                f"Name Match: {'Yes' if result.name_match else 'No'}\n"
                f"Code Match: {'Yes' if result.code_match else 'No'}"
            )
        if isinstance(result, BusinessLicenseInfo):
            lines = [f"Company: {result.name}"]
            for attr, label in BusinessLicenseInfo.FIELD_LABELS:
                value = getattr(result, attr)
                if value:
                    lines.append(f"{label}: {value}")
            return "\n".join(lines)
        return str(result)

    def _handle_create_config(self, path: Path, config_format: str) -> int:
        """Write a sample configuration file."""
        if path.exists():
            print(f"Error: {path} already exists", file=sys.stderr)
            return EXIT_FAILURE

        try:
            ConfigurationManager.create_sample_config(
                path, config_format
            )
        except OSError as e:
            print(f"Error creating configuration file: {e}", file=sys.stderr)
            return EXIT_FAILURE

        print(f"Created configuration file: {path}")
        print("Next steps:")
        print("1. Add your Baidu API key and secret key to the [api] section")
        print("2. Adjust batch settings to your API quota")
        print(f"3. Use with: license-verifier query --config {path} NAME")
        return EXIT_OK

    def run(self, args=None) -> int:
        """Execute CLI interface."""
        parsed_args = self.parse_args(args)

        if parsed_args.command == "create-config":
            return self._handle_create_config(parsed_args.path, parsed_args.config_format)

        setup_logging(
            level="DEBUG" if parsed_args.verbose else "INFO",
            log_file=parsed_args.log_file or None,
            console_output=parsed_args.verbose,
        )

        try:
            manager = self.load_configuration(parsed_args)
            config = manager.config

            if parsed_args.command == "query":
                items: List[Any] = self.collect_query_items(parsed_args)
            else:
                items = self.collect_verification_pairs(parsed_args)

            if not items:
                raise ValidationError("No input provided")

            credentials = manager.get_credentials()
            logger.info(f"Running {parsed_args.command} for {len(items)} items")

            results = asyncio.run(
                self.process(
                    parsed_args.command,
                    items,
                    config,
                    credentials,
                    show_progress=not parsed_args.quiet,
                )
            )

            print("\n\n".join(self.format_result(r) for r in results))
            print("-" * 40)
            print(f"Processed {len(results)} item(s)")

            if config.output.formats:
                for export in export_results(
                    results,
                    config.output.formats,
                    config.output.directory,
                    include_raw_data=config.output.include_raw_data,
                ):
                    print(f"Exported {export.format_name}: {export.path}")

            return EXIT_OK

        except (ConfigurationError, ValidationError, DataError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_USAGE
        except BatchCancelledError as e:
            print(f"Cancelled: {e}", file=sys.stderr)
            return EXIT_INTERRUPTED
        except (BatchProcessingError, APIError, ExportError) as e:
            logger.error(f"Processing failed: {e}")
            print(f"Failed: {e}", file=sys.stderr)
            return EXIT_FAILURE
        except KeyboardInterrupt:
            print("Interrupted", file=sys.stderr)
            return EXIT_INTERRUPTED


def main(args=None) -> int:
    """Main entry point."""
    return CLIInterface().run(args)


if __name__ == "__main__":
    sys.exit(main())
