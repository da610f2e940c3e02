"""
Application Layer - Context Factory

Builds the immutable NetworkContext and the contract binder from a YAML
network profile plus secrets from GelatoSettings, and wires the
SubmissionOrchestrator with its collaborators.

Key Responsibilities:
- Load network profiles (rinkeby, ...) from the configs directory
- Resolve the RPC endpoint (explicit URL or profile template)
- Load the signing account from the configured private key
- Instantiate the web3 contract binder and the orchestrator
"""

from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from eth_account import Account

from gelato_automation.application.orchestrator import SubmissionOrchestrator
from gelato_automation.application.settings import GelatoSettings
from gelato_automation.core.domain.models import DEFAULT_SALT_NONCE
from gelato_automation.core.domain.network import (
    DEFAULT_FALLBACK_HANDLER,
    AddressBook,
    NetworkContext,
    parse_task_specs,
)
from gelato_automation.core.interfaces.contracts import ContractBinderProtocol
from gelato_automation.infrastructure.web3_binder import Web3ContractBinder


class ContextFactory:
    """
    Factory for network contexts and fully wired orchestrators.

    Example:
        >>> factory = ContextFactory(settings=GelatoSettings())
        >>> context = factory.create_context("rinkeby")
        >>> orchestrator = factory.create_orchestrator(context)
    """

    def __init__(self, settings: Optional[GelatoSettings] = None, config_dir: Optional[str] = None):
        """
        Initialize ContextFactory.

        Args:
            settings: Runtime settings; read from the environment if omitted
            config_dir: Override for the directory holding profile YAML files
        """
        self.settings = settings or GelatoSettings()
        self.config_dir = Path(config_dir or self.settings.config_dir)
        self.logger = structlog.get_logger().bind(component="context_factory")

    def create_context(
        self, profile: Optional[str] = None, signer: Any = None, read_only: bool = False
    ) -> NetworkContext:
        """
        Create the NetworkContext for a profile.

        Args:
            profile: Profile name; defaults to settings.profile
            signer: Explicit signer; otherwise loaded from settings.user_pk
            read_only: Allow a context without signer when no key is configured

        Raises:
            FileNotFoundError: If the profile YAML does not exist
            ValueError: If the profile or the settings are incomplete
        """
        profile = profile or self.settings.profile
        config = self._load_profile(profile)

        defaults = config.get("defaults", {}) or {}
        salt_nonce = defaults.get("salt_nonce", DEFAULT_SALT_NONCE)
        if isinstance(salt_nonce, str):
            salt_nonce = int(salt_nonce, 16) if salt_nonce.startswith("0x") else int(salt_nonce)

        if "chain_id" not in config:
            raise ValueError(f"Profile '{profile}' has no chain_id")
        if "address_book" not in config:
            raise ValueError(f"Profile '{profile}' has no address_book")

        address_book = AddressBook.from_dict(config["address_book"])
        context = NetworkContext(
            name=config.get("profile", profile),
            chain_id=int(config["chain_id"]),
            rpc_url=self._resolve_rpc_url(config),
            signer=signer or self._load_signer(required=not read_only),
            address_book=address_book,
            salt_nonce=salt_nonce,
            fallback_handler=defaults.get("fallback_handler", DEFAULT_FALLBACK_HANDLER),
            task_specs=parse_task_specs(config.get("task_specs"), address_book),
        )

        self.logger.info(
            "context.created",
            profile=context.name,
            chain_id=context.chain_id,
            read_only=context.signer is None,
            task_specs=len(context.task_specs),
        )
        return context

    def create_binder(self, context: NetworkContext) -> ContractBinderProtocol:
        return Web3ContractBinder.from_rpc_url(
            context.rpc_url,
            context.chain_id,
            receipt_timeout=self.settings.receipt_timeout,
        )

    def create_orchestrator(
        self,
        context: NetworkContext,
        binder: Optional[ContractBinderProtocol] = None,
    ) -> SubmissionOrchestrator:
        return SubmissionOrchestrator(context, binder or self.create_binder(context))

    def _load_profile(self, profile: str) -> dict:
        """
        Load a network profile from YAML.

        Raises:
            FileNotFoundError: If profile YAML not found
        """
        profile_path = self.config_dir / f"{profile}.yaml"

        if not profile_path.exists():
            self.logger.error(
                "profile_not_found",
                profile=profile,
                path=str(profile_path),
                hint="Ensure profile YAML exists in configs directory",
            )
            raise FileNotFoundError(f"Profile not found: {profile_path}")

        with open(profile_path) as f:
            config = yaml.safe_load(f) or {}

        self.logger.debug("profile_loaded", profile=profile, config_keys=list(config.keys()))
        return config

    def _resolve_rpc_url(self, config: dict) -> str:
        if self.settings.rpc_url:
            return self.settings.rpc_url

        template = config.get("rpc_url")
        if not template:
            raise ValueError("No RPC URL configured (set GELATO_RPC_URL or rpc_url in the profile)")
        if "{infura_id}" in template:
            if not self.settings.infura_id:
                raise ValueError("no GELATO_INFURA_ID in environment")
            return template.format(infura_id=self.settings.infura_id)
        return template

    def _load_signer(self, required: bool = True):
        if self.settings.user_pk is None:
            if not required:
                return None
            raise ValueError("no GELATO_USER_PK in environment")
        return Account.from_key(self.settings.user_pk.get_secret_value())

    def resolve_token(self, token: str, profile: Optional[str] = None) -> str:
        """
        Resolve a token symbol from the profile's ``tokens`` table.

        Addresses are returned unchanged; symbols are case-insensitive.

        Raises:
            ValueError: If the symbol is unknown to the profile
        """
        if token.startswith("0x"):
            return token
        tokens = self._load_profile(profile or self.settings.profile).get("tokens", {}) or {}
        address = tokens.get(token.lower())
        if address is None:
            raise ValueError(
                f"Unknown token '{token}', known symbols: {', '.join(sorted(tokens)) or 'none'}"
            )
        return address
