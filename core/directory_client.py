# =============================================================================
# core/directory_client.py - Contact directory clients
# =============================================================================

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Sequence, Tuple
from ldap3 import Server, Connection, ALL, MODIFY_REPLACE
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from core.exceptions import CreateFailed, UpdateFailed


CREATE_CONTACT = "create_contact"
UPDATE_CONTACT = "update_contact"

# Value Exchange writes to msExchPoliciesExcluded when the email address
# policy is turned off for a recipient.
ADDRESS_POLICY_EXCLUSION = "{26491cfc-9e50-4857-861b-0cb8df22b5d7}"


class ContactDirectory(ABC):
    """Operations a provisioning run needs from the directory"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    @abstractmethod
    def create_contact(self, name: str, external_address: str, first_name: str,
                       last_name: str, alias: str, organizational_unit: str) -> None:
        """Create a mail-enabled contact; raises CreateFailed"""

    @abstractmethod
    def update_contact(self, identity: str, email_addresses: Optional[Sequence[str]] = None,
                       disable_address_policy: Optional[bool] = None,
                       mail_nickname: Optional[str] = None) -> None:
        """Change only the supplied fields of a contact; raises UpdateFailed"""

    @abstractmethod
    def missing_capabilities(self) -> List[str]:
        """Names of required operations this directory cannot perform"""

    def unavailable_reason(self) -> Optional[str]:
        """Why operations are missing, when the directory knows"""
        return None


class ActiveDirectoryClient(ContactDirectory):
    """Exchange-enabled Active Directory contact client"""

    CONTACT_CLASS = 'contact'
    CREATE_ATTRIBUTES = ('displayName', 'targetAddress', 'mailNickname')
    UPDATE_ATTRIBUTES = ('proxyAddresses', 'mailNickname', 'msExchPoliciesExcluded')

    def __init__(self, server_url: str, username: str, password: str, base_dn: str):
        self.server_url = server_url
        self.username = username
        self.password = password
        self.base_dn = base_dn
        self.connection: Optional[Connection] = None
        self.last_error: Optional[str] = None
        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()

    def connect(self) -> bool:
        """Establish connection to Active Directory"""
        try:
            server = Server(self.server_url, get_info=ALL)
            self.connection = Connection(
                server,
                user=self.username,
                password=self.password,
                auto_bind=True
            )
            self.last_error = None
            self.logger.info("Successfully connected to Active Directory")
            return True
        except LDAPException as e:
            self.logger.error(f"Failed to connect to AD: {e}")
            self.connection = None
            self.last_error = str(e) or e.__class__.__name__
            return False

    def disconnect(self) -> None:
        """Close Active Directory connection"""
        if self.connection:
            self.connection.unbind()
            self.connection = None
            self.logger.info("Disconnected from Active Directory")

    def unavailable_reason(self) -> Optional[str]:
        if self.last_error:
            return f"failed to bind to {self.server_url}: {self.last_error}"
        if not self.connection or not self.connection.bound:
            return "not connected to Active Directory"
        return None

    def missing_capabilities(self) -> List[str]:
        """Check the bound server's schema for the Exchange contact extensions"""
        if not self.connection or not self.connection.bound:
            return [CREATE_CONTACT, UPDATE_CONTACT]

        schema = self.connection.server.schema
        if schema is None:
            self.logger.warning("Server schema not available")
            return [CREATE_CONTACT, UPDATE_CONTACT]

        def defines(attributes: Sequence[str]) -> bool:
            return all(name in schema.attribute_types for name in attributes)

        missing = []
        if self.CONTACT_CLASS not in schema.object_classes or not defines(self.CREATE_ATTRIBUTES):
            missing.append(CREATE_CONTACT)
        if not defines(self.UPDATE_ATTRIBUTES):
            missing.append(UPDATE_CONTACT)
        return missing

    def create_contact(self, name: str, external_address: str, first_name: str,
                       last_name: str, alias: str, organizational_unit: str) -> None:
        """Add a contact object under the organizational unit"""
        if not self.connection:
            raise CreateFailed("Not connected to Active Directory")

        dn = f"CN={escape_rdn(name)},{organizational_unit}"
        attributes = {
            'displayName': name,
            'mailNickname': alias,
            'targetAddress': f"SMTP:{external_address}",
            'mail': external_address,
        }
        if first_name:
            attributes['givenName'] = first_name
        if last_name:
            attributes['sn'] = last_name

        self.logger.debug(f"Adding contact {dn}")
        try:
            added = self.connection.add(dn, object_class=self.CONTACT_CLASS, attributes=attributes)
        except LDAPException as e:
            raise CreateFailed(str(e)) from e

        if not added:
            raise CreateFailed(self._result_message())

    def update_contact(self, identity: str, email_addresses: Optional[Sequence[str]] = None,
                       disable_address_policy: Optional[bool] = None,
                       mail_nickname: Optional[str] = None) -> None:
        """Replace the supplied attributes of the contact with this alias"""
        if not self.connection:
            raise UpdateFailed("Not connected to Active Directory")

        changes: Dict[str, List[Tuple[str, List[str]]]] = {}
        if email_addresses is not None:
            changes['proxyAddresses'] = [(MODIFY_REPLACE, list(email_addresses))]
        if disable_address_policy is not None:
            excluded = [ADDRESS_POLICY_EXCLUSION] if disable_address_policy else []
            changes['msExchPoliciesExcluded'] = [(MODIFY_REPLACE, excluded)]
        if mail_nickname is not None:
            changes['mailNickname'] = [(MODIFY_REPLACE, [mail_nickname])]

        if not changes:
            return

        try:
            dn = self._find_contact_dn(identity)
            self.logger.debug(f"Modifying {dn}: {sorted(changes)}")
            modified = self.connection.modify(dn, changes)
        except LDAPException as e:
            raise UpdateFailed(str(e)) from e

        if not modified:
            raise UpdateFailed(self._result_message())

    def _find_contact_dn(self, alias: str) -> str:
        """Resolve a contact alias to its distinguished name"""
        search_filter = f"(&(objectClass=contact)(mailNickname={escape_filter_chars(alias)}))"
        self.connection.search(
            search_base=self.base_dn,
            search_filter=search_filter,
            attributes=['mailNickname']
        )

        if not self.connection.entries:
            raise UpdateFailed(f"Contact '{alias}' not found")
        if len(self.connection.entries) > 1:
            raise UpdateFailed(f"Multiple contacts found for '{alias}'")
        return self.connection.entries[0].entry_dn

    def _result_message(self) -> str:
        result: Dict[str, Any] = self.connection.result or {}
        description = result.get('description', 'error')
        message = (result.get('message') or '').strip()
        return f"{description}: {message}" if message else description


class InMemoryContactDirectory(ContactDirectory):
    """Directory held in memory; used for dry runs"""

    def __init__(self):
        self.contacts: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.logger = logging.getLogger(__name__)

    def missing_capabilities(self) -> List[str]:
        return []

    def create_contact(self, name: str, external_address: str, first_name: str,
                       last_name: str, alias: str, organizational_unit: str) -> None:
        self.calls.append((CREATE_CONTACT, {
            'name': name, 'external_address': external_address,
            'first_name': first_name, 'last_name': last_name,
            'alias': alias, 'organizational_unit': organizational_unit,
        }))
        if alias in self.contacts:
            raise CreateFailed(f"The alias '{alias}' is already in use")

        self.contacts[alias] = {
            'name': name,
            'external_address': external_address,
            'first_name': first_name,
            'last_name': last_name,
            'organizational_unit': organizational_unit,
            'email_addresses': [],
            'address_policy_enabled': True,
            'mail_nickname': alias,
        }
        self.logger.debug(f"Created contact {alias} in {organizational_unit}")

    def update_contact(self, identity: str, email_addresses: Optional[Sequence[str]] = None,
                       disable_address_policy: Optional[bool] = None,
                       mail_nickname: Optional[str] = None) -> None:
        self.calls.append((UPDATE_CONTACT, {
            'identity': identity, 'email_addresses': email_addresses,
            'disable_address_policy': disable_address_policy,
            'mail_nickname': mail_nickname,
        }))
        contact = self.contacts.get(identity)
        if contact is None:
            raise UpdateFailed(f"Contact '{identity}' not found")

        if email_addresses is not None:
            contact['email_addresses'] = list(email_addresses)
        if disable_address_policy is not None:
            contact['address_policy_enabled'] = not disable_address_policy
        if mail_nickname is not None and mail_nickname != identity:
            if mail_nickname in self.contacts:
                raise UpdateFailed(f"The alias '{mail_nickname}' is already in use")
            self.contacts[mail_nickname] = self.contacts.pop(identity)
        if mail_nickname is not None:
            contact['mail_nickname'] = mail_nickname
