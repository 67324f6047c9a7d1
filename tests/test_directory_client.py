"""Tests for the Active Directory contact client with a mocked ldap3 connection."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from ldap3 import MODIFY_REPLACE
from ldap3.core.exceptions import LDAPSocketOpenError

from core.directory_client import (
    ADDRESS_POLICY_EXCLUSION, CREATE_CONTACT, UPDATE_CONTACT, ActiveDirectoryClient
)
from core.exceptions import CreateFailed, UpdateFailed

EXCHANGE_ATTRIBUTES = {'displayName': 1, 'targetAddress': 1, 'mailNickname': 1,
                       'proxyAddresses': 1, 'msExchPoliciesExcluded': 1}


def _client(connection=None, attribute_types=None, object_classes=None):
    client = ActiveDirectoryClient("ldaps://dc01.contoso.com", "svc", "secret", "DC=contoso,DC=com")
    if connection is None:
        connection = MagicMock()
        connection.bound = True
        connection.server.schema = SimpleNamespace(
            object_classes=object_classes if object_classes is not None else {'contact': 1},
            attribute_types=attribute_types if attribute_types is not None else EXCHANGE_ATTRIBUTES,
        )
    client.connection = connection
    return client


def test_connect_failure_returns_false():
    with patch("core.directory_client.Connection", side_effect=LDAPSocketOpenError("unreachable")), \
            patch("core.directory_client.Server"):
        client = ActiveDirectoryClient("ldaps://dc01", "svc", "secret", "DC=contoso,DC=com")
        assert client.connect() is False
        assert client.missing_capabilities() == [CREATE_CONTACT, UPDATE_CONTACT]


def test_context_manager_binds_and_unbinds():
    with patch("core.directory_client.Connection") as connection_class, \
            patch("core.directory_client.Server"):
        with ActiveDirectoryClient("ldaps://dc01", "svc", "secret", "DC=contoso,DC=com") as client:
            assert client.connection is connection_class.return_value
        connection_class.return_value.unbind.assert_called_once()
        assert client.connection is None


def test_capabilities_available_with_exchange_schema():
    assert _client().missing_capabilities() == []


def test_capabilities_missing_without_exchange_schema():
    client = _client(attribute_types={'displayName': 1, 'mailNickname': 1})
    assert client.missing_capabilities() == [CREATE_CONTACT, UPDATE_CONTACT]


def test_update_capability_missing_without_policy_attribute():
    attributes = dict(EXCHANGE_ATTRIBUTES)
    del attributes['msExchPoliciesExcluded']
    assert _client(attribute_types=attributes).missing_capabilities() == [UPDATE_CONTACT]


def test_create_contact_adds_contact_object():
    client = _client()
    client.connection.add.return_value = True

    client.create_contact("Smith, John", "john.smith@fabrikam.com", "John", "Smith",
                          "ext.mail01_contoso.com", "OU=Contacts,DC=contoso,DC=com")

    client.connection.add.assert_called_once_with(
        "CN=Smith\\, John,OU=Contacts,DC=contoso,DC=com",
        object_class='contact',
        attributes={
            'displayName': "Smith, John",
            'mailNickname': "ext.mail01_contoso.com",
            'targetAddress': "SMTP:john.smith@fabrikam.com",
            'mail': "john.smith@fabrikam.com",
            'givenName': "John",
            'sn': "Smith",
        },
    )


def test_create_contact_reports_server_message():
    client = _client()
    client.connection.add.return_value = False
    client.connection.result = {'description': 'entryAlreadyExists', 'message': '00000524: UpdErr'}

    with pytest.raises(CreateFailed) as excinfo:
        client.create_contact("John Smith", "js@x.com", "", "", "alias", "OU=Contacts")

    assert excinfo.value.message == "entryAlreadyExists: 00000524: UpdErr"
    _, kwargs = client.connection.add.call_args
    assert 'givenName' not in kwargs['attributes']


def test_update_contact_replaces_addresses_and_disables_policy():
    client = _client()
    client.connection.entries = [SimpleNamespace(entry_dn="CN=John Smith,OU=Contacts")]
    client.connection.modify.return_value = True

    client.update_contact("ext.mail01_contoso.com", email_addresses=["SMTP:ext.mail01@contoso.com"],
                          disable_address_policy=True)

    _, search_kwargs = client.connection.search.call_args
    assert search_kwargs['search_filter'] == "(&(objectClass=contact)(mailNickname=ext.mail01_contoso.com))"
    client.connection.modify.assert_called_once_with("CN=John Smith,OU=Contacts", {
        'proxyAddresses': [(MODIFY_REPLACE, ["SMTP:ext.mail01@contoso.com"])],
        'msExchPoliciesExcluded': [(MODIFY_REPLACE, [ADDRESS_POLICY_EXCLUSION])],
    })


def test_update_contact_only_sends_supplied_fields():
    client = _client()
    client.connection.entries = [SimpleNamespace(entry_dn="CN=John Smith,OU=Contacts")]
    client.connection.modify.return_value = True

    client.update_contact("ext.mail01_contoso.com", mail_nickname="ext.mail01_contoso.com")

    client.connection.modify.assert_called_once_with("CN=John Smith,OU=Contacts", {
        'mailNickname': [(MODIFY_REPLACE, ["ext.mail01_contoso.com"])],
    })


def test_update_contact_not_found():
    client = _client()
    client.connection.entries = []

    with pytest.raises(UpdateFailed, match="not found"):
        client.update_contact("missing_alias", mail_nickname="missing_alias")
    client.connection.modify.assert_not_called()


def test_update_contact_reports_server_message():
    client = _client()
    client.connection.entries = [SimpleNamespace(entry_dn="CN=John Smith,OU=Contacts")]
    client.connection.modify.return_value = False
    client.connection.result = {'description': 'insufficientAccessRights', 'message': ''}

    with pytest.raises(UpdateFailed) as excinfo:
        client.update_contact("alias", email_addresses=["SMTP:a@b.com"])

    assert excinfo.value.message == "insufficientAccessRights"


def test_bind_failure_is_reported_as_reason():
    from core.contact_provisioner import ContactProvisioner
    from core.exceptions import CapabilityUnavailable
    from core.models import RunConfiguration

    with patch("core.directory_client.Connection", side_effect=LDAPSocketOpenError("invalid credentials")), \
            patch("core.directory_client.Server"):
        client = ActiveDirectoryClient("ldaps://dc01", "svc", "wrong", "DC=contoso,DC=com")
        client.connect()

    assert client.unavailable_reason() == "failed to bind to ldaps://dc01: invalid credentials"
    provisioner = ContactProvisioner(client, RunConfiguration("OU=Contacts", False, "ext.mail", "contoso.com"))
    with pytest.raises(CapabilityUnavailable) as excinfo:
        provisioner.check_capabilities()
    assert "invalid credentials" in str(excinfo.value)
    assert excinfo.value.missing == [CREATE_CONTACT, UPDATE_CONTACT]


def test_bound_client_has_no_unavailable_reason():
    assert _client().unavailable_reason() is None
