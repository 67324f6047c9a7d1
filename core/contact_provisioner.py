# =============================================================================
# core/contact_provisioner.py - Batch mail contact provisioner
# =============================================================================

import logging
from typing import List, Dict, Any, Optional

from core.directory_client import ContactDirectory
from core.exceptions import CapabilityUnavailable, DirectoryOperationError
from core.models import (
    ContactOutcome, ContactResult, InputRecord, ProvisionPlan,
    RunConfiguration, RunState, RunSummary
)
from utils.csv_utils import CSVHandler


logger = logging.getLogger(__name__)

DISPLAY_NAME_COLUMN = 'Display Name'
FIRST_NAME_COLUMN = 'First'
LAST_NAME_COLUMN = 'Last'
MAIL_COLUMN = 'mail'
REQUIRED_COLUMNS = [DISPLAY_NAME_COLUMN, FIRST_NAME_COLUMN, LAST_NAME_COLUMN, MAIL_COLUMN]


def format_sequence(sequence_number: int) -> str:
    """Zero-pad to two digits; wider numbers keep all their digits"""
    return f"{sequence_number:02d}"


def build_proxy_address(prefix: str, sequence_number: int, domain: str) -> str:
    return f"{prefix}{format_sequence(sequence_number)}@{domain}"


def derive_nickname(proxy_address: str) -> str:
    return proxy_address.replace('@', '_', 1)


def effective_display_name(display_name: str, config: RunConfiguration) -> Optional[str]:
    """Display name to use, or None when it is too long to accept"""
    if len(display_name) <= config.max_display_name_length:
        return display_name
    if config.auto_truncate:
        return display_name[:config.max_display_name_length]
    return None


def record_from_row(row: Dict[str, Any]) -> InputRecord:
    """Build an InputRecord from a CSV row"""
    return InputRecord(
        display_name=row.get(DISPLAY_NAME_COLUMN) or '',
        first_name=row.get(FIRST_NAME_COLUMN) or '',
        last_name=row.get(LAST_NAME_COLUMN) or '',
        target_address=row.get(MAIL_COLUMN) or '',
    )


def skip_reason(record: InputRecord, config: RunConfiguration) -> Optional[str]:
    """Why a record cannot be provisioned, None if it can"""
    if not record.display_name.strip():
        return "empty Display Name"
    if not record.target_address.strip():
        return "empty mail"
    if effective_display_name(record.display_name, config) is None:
        return f"Display Name longer than {config.max_display_name_length} characters"
    return None


def plan_contact(record: InputRecord, config: RunConfiguration,
                 state: RunState) -> Optional[ProvisionPlan]:
    """Derive identifiers for an accepted record; consumes a sequence number"""
    if skip_reason(record, config):
        return None

    sequence_number = state.next_sequence()
    proxy_address = build_proxy_address(config.proxy_prefix, sequence_number, config.proxy_domain)
    return ProvisionPlan(
        display_name=effective_display_name(record.display_name, config),
        sequence_number=sequence_number,
        proxy_address=proxy_address,
        nickname=derive_nickname(proxy_address),
    )


def _error_message(error: Exception) -> str:
    if isinstance(error, DirectoryOperationError):
        return error.message
    return str(error) or error.__class__.__name__


def provision_record(directory: ContactDirectory, record: InputRecord,
                     config: RunConfiguration, state: RunState) -> ContactResult:
    """Create and configure the contact for one record, updating run state"""
    summary = state.summary
    summary.total_processed += 1

    reason = skip_reason(record, config)
    if reason:
        logger.warning(f"Skipping '{record.display_name}': {reason}")
        return ContactResult(record=record, outcome=ContactOutcome.SKIPPED, message=reason)

    plan = plan_contact(record, config, state)
    if plan.display_name != record.display_name:
        logger.info(f"Truncated display name '{record.display_name}' to '{plan.display_name}'")

    try:
        directory.create_contact(
            name=plan.display_name,
            external_address=record.target_address,
            first_name=record.first_name,
            last_name=record.last_name,
            alias=plan.alias,
            organizational_unit=config.organizational_unit,
        )
    except Exception as e:
        message = _error_message(e)
        logger.error(f"Failed to create contact '{plan.display_name}': {message}")
        summary.record_failure(plan.display_name, message)
        return ContactResult(record=record, outcome=ContactOutcome.CREATE_FAILED,
                             plan=plan, message=message)

    # Contact stays in the directory if the address patch fails
    try:
        directory.update_contact(
            identity=plan.alias,
            email_addresses=[plan.primary_proxy_entry],
            disable_address_policy=True,
        )
    except Exception as e:
        message = _error_message(e)
        logger.error(f"Created '{plan.display_name}' but failed to set its proxy address: {message}")
        summary.record_failure(plan.display_name, message)
        return ContactResult(record=record, outcome=ContactOutcome.PATCH_FAILED,
                             plan=plan, message=message)

    warning = ""
    try:
        directory.update_contact(identity=plan.alias, mail_nickname=plan.nickname)
    except Exception as e:
        warning = f"Could not set nickname for '{plan.display_name}': {_error_message(e)}"
        logger.warning(warning)
        summary.warnings.append(warning)

    summary.succeeded += 1
    logger.info(
        f"Created contact '{plan.display_name}' -> {record.target_address} "
        f"(proxy: {plan.proxy_address}, nickname: {plan.nickname})"
    )
    return ContactResult(record=record, outcome=ContactOutcome.SUCCEEDED,
                         plan=plan, warning=warning)


class ContactProvisioner:
    """Creates mail contacts for every row of a CSV file"""

    def __init__(self, directory: ContactDirectory, config: RunConfiguration):
        self.directory = directory
        self.config = config
        self.results: List[ContactResult] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def check_capabilities(self) -> None:
        """Abort early if the directory cannot create or update contacts"""
        missing = self.directory.missing_capabilities()
        if missing:
            raise CapabilityUnavailable(missing, self.directory.unavailable_reason())

    def load_records(self, input_csv: str) -> List[InputRecord]:
        """Read and header-check the input file"""
        rows, _ = CSVHandler.read_csv(input_csv, required_columns=REQUIRED_COLUMNS)
        return [record_from_row(row) for row in rows]

    def run(self, input_csv: str) -> RunSummary:
        """Provision every record of the input file in order"""
        self.logger.info(f"Starting contact provisioning into {self.config.organizational_unit}")

        try:
            self.check_capabilities()
            records = self.load_records(input_csv)
        except Exception as e:
            self.logger.error(f"Provisioning aborted: {e}")
            raise

        state = RunState()
        self.results = []

        if not records:
            self.logger.warning(f"No contacts found in {input_csv}")
            return state.summary

        for record in records:
            self.results.append(provision_record(self.directory, record, self.config, state))

        self.log_statistics(state.summary)
        return state.summary

    def log_statistics(self, summary: RunSummary) -> None:
        """Log run totals"""
        self.logger.info(
            f"Processed {summary.total_processed} records: {summary.succeeded} succeeded, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )
        if summary.warnings:
            self.logger.info(f"{len(summary.warnings)} contacts created with warnings")
