# =============================================================================
# core/models.py - Contact provisioning data models
# =============================================================================

from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum


DEFAULT_MAX_DISPLAY_NAME_LENGTH = 64


class ContactOutcome(Enum):
    """Terminal states of a single record"""
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    PATCH_FAILED = "patch_failed"
    CREATE_FAILED = "create_failed"


@dataclass(frozen=True)
class InputRecord:
    """One contact row, taken verbatim from the input file"""
    display_name: str
    first_name: str = ""
    last_name: str = ""
    target_address: str = ""


@dataclass(frozen=True)
class ProvisionPlan:
    """Identifiers derived for an accepted record"""
    display_name: str
    sequence_number: int
    proxy_address: str
    nickname: str

    @property
    def alias(self) -> str:
        return self.nickname

    @property
    def primary_proxy_entry(self) -> str:
        """Proxy address marked as the primary SMTP address"""
        return f"SMTP:{self.proxy_address}"


@dataclass(frozen=True)
class RunConfiguration:
    """Settings that stay fixed for a whole run"""
    organizational_unit: str
    auto_truncate: bool
    proxy_prefix: str
    proxy_domain: str
    max_display_name_length: int = DEFAULT_MAX_DISPLAY_NAME_LENGTH


@dataclass
class FailureRecord:
    """A record that could not be provisioned"""
    display_name: str
    error_message: str


@dataclass
class RunSummary:
    """Counters and failures for a run"""
    total_processed: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: List[FailureRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.total_processed - self.succeeded - self.failed

    def record_failure(self, display_name: str, error_message: str) -> None:
        self.failed += 1
        self.failures.append(FailureRecord(display_name, error_message))


@dataclass
class RunState:
    """Mutable state threaded through per-record processing"""
    last_sequence: int = 0
    summary: RunSummary = field(default_factory=RunSummary)

    def next_sequence(self) -> int:
        self.last_sequence += 1
        return self.last_sequence


@dataclass
class ContactResult:
    """Outcome of processing one input record"""
    record: InputRecord
    outcome: ContactOutcome
    plan: Optional[ProvisionPlan] = None
    message: str = ""
    warning: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome == ContactOutcome.SUCCEEDED
