# =============================================================================
# main.py - CLI entry point
# =============================================================================

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from core.contact_provisioner import ContactProvisioner
from core.directory_client import ActiveDirectoryClient, ContactDirectory, InMemoryContactDirectory
from core.exceptions import ProvisioningError
from core.models import RunConfiguration
from utils.config import Config, PromptingConfigSupplier
from utils.reporting import export_results, format_summary


EXIT_COMPLETED = 0
EXIT_ABORTED = 1


def setup_logging(level: str = "INFO", log_dir: str = "logs") -> str:
    """Setup logging configuration with both console and file output"""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Generate date-stamped filename
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_path / f"contact_provisioner_{timestamp}.log"

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Console: {level.upper()}, File: DEBUG")
    logger.info(f"Log file: {log_filename}")

    return str(log_filename)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bulk-create mail contacts from a CSV file "
                    "(columns: Display Name, First, Last, mail)"
    )
    parser.add_argument('input_csv', help='Input CSV file path')
    parser.add_argument('--ou', dest='organizational_unit',
                        help='Distinguished name of the OU for the new contacts')
    parser.add_argument('--proxy-prefix', help='Prefix of the generated proxy addresses')
    parser.add_argument('--proxy-domain', help='Domain of the generated proxy addresses')

    truncate = parser.add_mutually_exclusive_group()
    truncate.add_argument('--auto-truncate', dest='auto_truncate', action='store_true', default=None,
                          help='Truncate display names longer than 64 characters')
    truncate.add_argument('--no-auto-truncate', dest='auto_truncate', action='store_false',
                          help='Skip contacts whose display name is longer than 64 characters')

    parser.add_argument('--results', help='Write per-contact results to a .csv or .xlsx file')
    parser.add_argument('--dry-run', action='store_true',
                        help='Run against an in-memory directory without connecting to AD')
    parser.add_argument('--non-interactive', action='store_true',
                        help='Never prompt; fail if a setting is missing')
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    parser.add_argument('--log-dir', default='logs', help='Directory for log files')
    return parser


def provision(directory: ContactDirectory, run_config: RunConfiguration, args) -> None:
    """Run the provisioner and report its outcome"""
    provisioner = ContactProvisioner(directory, run_config)
    summary = provisioner.run(args.input_csv)

    print(format_summary(summary))

    if args.results:
        # Contacts are already in the directory; a failed export does not abort the run
        try:
            export_results(provisioner.results, summary, args.results)
        except OSError as e:
            logging.getLogger(__name__).error(f"Could not write results to {args.results}: {e}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level, args.log_dir)
    logger = logging.getLogger(__name__)

    config = Config()
    supplier = PromptingConfigSupplier(
        config,
        organizational_unit=args.organizational_unit,
        auto_truncate=args.auto_truncate,
        proxy_prefix=args.proxy_prefix,
        proxy_domain=args.proxy_domain,
        interactive=not args.non_interactive,
    )

    try:
        run_config = supplier.get_run_configuration()

        if args.dry_run:
            logger.info("Dry run - no changes will be made to Active Directory")
            provision(InMemoryContactDirectory(), run_config, args)
            return EXIT_COMPLETED

        if not config.validate_ad_config():
            missing_vars = config.get_missing_ad_vars()
            logger.error(f"Missing required environment variables: {missing_vars}")
            return EXIT_ABORTED

        with ActiveDirectoryClient(
                config.ad_server, config.ad_username,
                config.ad_password, config.base_dn
        ) as ad_client:
            provision(ad_client, run_config, args)

    except ProvisioningError as e:
        logger.error(f"Provisioning aborted: {e}")
        return EXIT_ABORTED
    except (EOFError, KeyboardInterrupt):
        logger.error("Input cancelled")
        return EXIT_ABORTED

    return EXIT_COMPLETED


if __name__ == "__main__":
    sys.exit(main())
