# =============================================================================
# utils/config.py - Configuration management
# =============================================================================

import os
import logging
from typing import Callable, Optional, List
from dotenv import load_dotenv

from core.exceptions import ConfigurationError
from core.models import RunConfiguration


TRUTHY = {'1', 'true', 'yes', 'y', 'on'}
FALSY = {'0', 'false', 'no', 'n', 'off'}


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Interpret a yes/no style string, None when unrecognised"""
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in TRUTHY:
        return True
    if normalized in FALSY:
        return False
    return None


class Config:
    """Configuration management"""

    def __init__(self):
        load_dotenv()

    @property
    def ad_server(self) -> Optional[str]:
        return os.getenv("AD_SERVER")

    @property
    def ad_username(self) -> Optional[str]:
        return os.getenv("AD_USERNAME")

    @property
    def ad_password(self) -> Optional[str]:
        return os.getenv("AD_PASSWORD")

    @property
    def base_dn(self) -> Optional[str]:
        return os.getenv("BASE_DN")

    @property
    def contact_ou(self) -> Optional[str]:
        return os.getenv("CONTACT_OU")

    @property
    def proxy_prefix(self) -> Optional[str]:
        return os.getenv("PROXY_PREFIX")

    @property
    def proxy_domain(self) -> Optional[str]:
        return os.getenv("PROXY_DOMAIN")

    @property
    def auto_truncate(self) -> Optional[bool]:
        return parse_bool(os.getenv("AUTO_TRUNCATE"))

    def validate_ad_config(self) -> bool:
        """Validate that all required AD configuration is present"""
        required = [self.ad_server, self.ad_username, self.ad_password, self.base_dn]
        return all(required)

    def get_missing_ad_vars(self) -> List[str]:
        """Get list of missing AD configuration variables"""
        vars_and_names = [
            (self.ad_server, "AD_SERVER"),
            (self.ad_username, "AD_USERNAME"),
            (self.ad_password, "AD_PASSWORD"),
            (self.base_dn, "BASE_DN")
        ]
        return [name for var, name in vars_and_names if not var]


class ConfigSupplier:
    """Produces the RunConfiguration for a run"""

    def get_run_configuration(self) -> RunConfiguration:
        raise NotImplementedError

    @staticmethod
    def build(organizational_unit: Optional[str], auto_truncate: bool,
              proxy_prefix: Optional[str], proxy_domain: Optional[str]) -> RunConfiguration:
        """Validate raw values and freeze them into a RunConfiguration"""
        values = {
            'organizational unit': organizational_unit,
            'proxy prefix': proxy_prefix,
            'proxy domain': proxy_domain,
        }
        missing = [name for name, value in values.items() if not value or not value.strip()]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

        for name in ('proxy prefix', 'proxy domain'):
            value = values[name].strip()
            if '@' in value or any(char.isspace() for char in value):
                raise ConfigurationError(f"The {name} must not contain '@' or whitespace: {value!r}")

        return RunConfiguration(
            organizational_unit=organizational_unit.strip(),
            auto_truncate=bool(auto_truncate),
            proxy_prefix=proxy_prefix.strip(),
            proxy_domain=proxy_domain.strip(),
        )


class StaticConfigSupplier(ConfigSupplier):
    """Supplies literal values, e.g. from a web form"""

    def __init__(self, organizational_unit: str, auto_truncate: bool,
                 proxy_prefix: str, proxy_domain: str):
        self.organizational_unit = organizational_unit
        self.auto_truncate = auto_truncate
        self.proxy_prefix = proxy_prefix
        self.proxy_domain = proxy_domain

    def get_run_configuration(self) -> RunConfiguration:
        return self.build(self.organizational_unit, self.auto_truncate,
                          self.proxy_prefix, self.proxy_domain)


class PromptingConfigSupplier(ConfigSupplier):
    """
    Resolves each setting from command line values, then the environment,
    then an interactive prompt when allowed.
    """

    def __init__(self, config: Config, organizational_unit: Optional[str] = None,
                 auto_truncate: Optional[bool] = None, proxy_prefix: Optional[str] = None,
                 proxy_domain: Optional[str] = None, interactive: bool = True,
                 prompt: Callable[[str], str] = input):
        self.config = config
        self.organizational_unit = organizational_unit
        self.auto_truncate = auto_truncate
        self.proxy_prefix = proxy_prefix
        self.proxy_domain = proxy_domain
        self.interactive = interactive
        self.prompt = prompt
        self.logger = logging.getLogger(self.__class__.__name__)

    def _resolve(self, given: Optional[str], from_env: Optional[str], question: str) -> Optional[str]:
        value = given or from_env
        if not value and self.interactive:
            value = self.prompt(f"{question}: ").strip()
        return value

    def _resolve_truncate(self) -> bool:
        if self.auto_truncate is not None:
            return self.auto_truncate
        if self.config.auto_truncate is not None:
            return self.config.auto_truncate
        if not self.interactive:
            return False

        while True:
            answer = parse_bool(self.prompt("Automatically truncate display names longer than 64 characters? (y/n): "))
            if answer is not None:
                return answer
            self.logger.warning("Please answer y or n")

    def get_run_configuration(self) -> RunConfiguration:
        organizational_unit = self._resolve(
            self.organizational_unit, self.config.contact_ou,
            "Organizational unit for the new contacts (distinguished name)"
        )
        auto_truncate = self._resolve_truncate()
        proxy_prefix = self._resolve(
            self.proxy_prefix, self.config.proxy_prefix,
            "Proxy address prefix (e.g. ext.mail)"
        )
        proxy_domain = self._resolve(
            self.proxy_domain, self.config.proxy_domain,
            "Proxy address domain (e.g. contoso.com)"
        )
        return self.build(organizational_unit, auto_truncate, proxy_prefix, proxy_domain)
