"""Shared fixtures for contact provisioner tests."""

import csv
from pathlib import Path

import pytest

from core.directory_client import InMemoryContactDirectory, CREATE_CONTACT, UPDATE_CONTACT
from core.exceptions import CreateFailed, UpdateFailed
from core.models import RunConfiguration

HEADER = ['Display Name', 'First', 'Last', 'mail']


class ScriptedDirectory(InMemoryContactDirectory):
    """In-memory directory that fails chosen calls.

    ``fail_create`` holds display names whose creation fails,
    ``fail_addresses`` and ``fail_nickname`` hold aliases whose
    respective update call fails.
    """

    def __init__(self, fail_create=(), fail_addresses=(), fail_nickname=(), missing=()):
        super().__init__()
        self.fail_create = set(fail_create)
        self.fail_addresses = set(fail_addresses)
        self.fail_nickname = set(fail_nickname)
        self.missing = list(missing)

    def missing_capabilities(self):
        return list(self.missing)

    def create_contact(self, name, external_address, first_name, last_name, alias, organizational_unit):
        if name in self.fail_create:
            self.calls.append((CREATE_CONTACT, {'name': name, 'alias': alias}))
            raise CreateFailed(f"Access denied creating {name}")
        super().create_contact(name, external_address, first_name, last_name, alias, organizational_unit)

    def update_contact(self, identity, email_addresses=None, disable_address_policy=None, mail_nickname=None):
        if email_addresses is not None and identity in self.fail_addresses:
            self.calls.append((UPDATE_CONTACT, {'identity': identity, 'email_addresses': email_addresses}))
            raise UpdateFailed("Proxy address is already in use")
        if mail_nickname is not None and identity in self.fail_nickname:
            self.calls.append((UPDATE_CONTACT, {'identity': identity, 'mail_nickname': mail_nickname}))
            raise UpdateFailed("Nickname rejected")
        super().update_contact(identity, email_addresses, disable_address_policy, mail_nickname)


def write_contacts_csv(path: Path, rows, header=HEADER) -> Path:
    with open(path, 'w', newline='', encoding='utf-8') as file:
        writer = csv.writer(file)
        writer.writerow(header)
        writer.writerows(rows)
    return path


@pytest.fixture
def run_config():
    return RunConfiguration(
        organizational_unit="OU=External Contacts,DC=contoso,DC=com",
        auto_truncate=False,
        proxy_prefix="ext.mail",
        proxy_domain="contoso.com",
    )


@pytest.fixture
def two_contacts_csv(tmp_path):
    return write_contacts_csv(tmp_path / "contacts.csv", [
        ["John Smith", "John", "Smith", "john.smith@fabrikam.com"],
        ["Jane Doe", "Jane", "Doe", "jane.doe@fabrikam.com"],
    ])


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("AD_SERVER", "AD_USERNAME", "AD_PASSWORD", "BASE_DN",
                 "CONTACT_OU", "PROXY_PREFIX", "PROXY_DOMAIN", "AUTO_TRUNCATE"):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.setattr("utils.config.load_dotenv", lambda *args, **kwargs: False)
