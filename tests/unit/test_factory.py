"""
Unit tests for ContextFactory and GelatoSettings.

Tests verify:
- Profile loading and the NetworkContext it produces
- RPC URL resolution and signer loading from settings
- Error handling for missing profiles and incomplete configuration
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from conftest import ADDRESS_BOOK_SECTIONS
from eth_account import Account
from eth_utils import to_checksum_address

from gelato_automation.application.factory import ContextFactory
from gelato_automation.application.orchestrator import SubmissionOrchestrator
from gelato_automation.application.settings import GelatoSettings
from gelato_automation.core.domain.errors import ValidationError
from gelato_automation.core.domain.models import DEFAULT_SALT_NONCE, Operation
from gelato_automation.infrastructure.web3_binder import Web3ContractBinder

PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


@pytest.fixture
def config_dir(tmp_path):
    """Directory with a complete 'testnet' profile."""
    profile = {
        "profile": "testnet",
        "chain_id": 4,
        "rpc_url": "https://testnet.example/v3/{infura_id}",
        "defaults": {"salt_nonce": "0x2a"},
        "address_book": ADDRESS_BOOK_SECTIONS,
        "tokens": {"dai": "0x" + "d0" * 20},
    }
    (tmp_path / "testnet.yaml").write_text(yaml.safe_dump(profile))
    return tmp_path


@pytest.fixture
def settings():
    return GelatoSettings(profile="testnet", infura_id="project", user_pk=PRIVATE_KEY, rpc_url=None)


class TestContextFactory:
    """Test suite for ContextFactory."""

    def test_factory_initialization(self, settings):
        """Test factory uses the settings' config directory by default."""
        factory = ContextFactory(settings=settings)
        assert factory.config_dir == Path("configs")

    def test_load_profile_not_found(self, settings, tmp_path):
        """Test error when profile not found."""
        factory = ContextFactory(settings=settings, config_dir=str(tmp_path))

        with pytest.raises(FileNotFoundError, match="Profile not found"):
            factory._load_profile("nonexistent")

    def test_create_context(self, settings, config_dir):
        """Test the context reflects the profile and the settings."""
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))

        context = factory.create_context()

        assert context.name == "testnet"
        assert context.chain_id == 4
        assert context.rpc_url == "https://testnet.example/v3/project"
        assert context.salt_nonce == 42
        assert context.user_address == Account.from_key(PRIVATE_KEY).address
        assert context.address_book.gelato_core == to_checksum_address("0x" + "01" * 20)
        assert context.address_book.kyber_proxy == to_checksum_address("0x" + "0f" * 20)

    def test_default_salt_nonce(self, settings, tmp_path):
        """Test the global CPK salt nonce is used when the profile has none."""
        profile = {"chain_id": 4, "rpc_url": "http://localhost:8545", "address_book": ADDRESS_BOOK_SECTIONS}
        (tmp_path / "local.yaml").write_text(yaml.safe_dump(profile))
        factory = ContextFactory(settings=settings, config_dir=str(tmp_path))

        context = factory.create_context("local")

        assert context.salt_nonce == DEFAULT_SALT_NONCE
        assert context.rpc_url == "http://localhost:8545"

    def test_explicit_rpc_url_wins(self, config_dir):
        settings = GelatoSettings(rpc_url="http://node:8545", user_pk=PRIVATE_KEY)
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))

        assert factory.create_context("testnet").rpc_url == "http://node:8545"

    def test_missing_infura_id(self, config_dir):
        settings = GelatoSettings(infura_id=None, rpc_url=None, user_pk=PRIVATE_KEY)
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))

        with pytest.raises(ValueError, match="GELATO_INFURA_ID"):
            factory.create_context("testnet")

    def test_missing_private_key(self, config_dir):
        settings = GelatoSettings(infura_id="project", rpc_url=None, user_pk=None)
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))

        with pytest.raises(ValueError, match="GELATO_USER_PK"):
            factory.create_context("testnet")

    def test_read_only_context_without_key(self, config_dir):
        settings = GelatoSettings(infura_id="project", rpc_url=None, user_pk=None)
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))

        context = factory.create_context("testnet", read_only=True)

        assert context.signer is None
        with pytest.raises(ValidationError, match="No signer"):
            _ = context.user_address

    def test_incomplete_address_book(self, settings, tmp_path):
        profile = {"chain_id": 4, "rpc_url": "http://localhost:8545", "address_book": {"gelato": {}}}
        (tmp_path / "broken.yaml").write_text(yaml.safe_dump(profile))
        factory = ContextFactory(settings=settings, config_dir=str(tmp_path))

        with pytest.raises(ValueError, match="Address book incomplete"):
            factory.create_context("broken")

    def test_missing_chain_id(self, settings, tmp_path):
        (tmp_path / "nochain.yaml").write_text(yaml.safe_dump({"address_book": ADDRESS_BOOK_SECTIONS}))
        factory = ContextFactory(settings=settings, config_dir=str(tmp_path))

        with pytest.raises(ValueError, match="chain_id"):
            factory.create_context("nochain")

    def test_named_task_specs(self, settings, tmp_path):
        profile = {
            "chain_id": 4,
            "rpc_url": "http://localhost:8545",
            "address_book": ADDRESS_BOOK_SECTIONS,
            "task_specs": {
                "balance_trade": {
                    "conditions": ["condition_balance_stateful"],
                    "actions": [
                        {"addr": "action_place_order_batch_exchange", "operation": "delegatecall"},
                        {"addr": "0x" + "09" * 20, "data": "0xdeadbeef"},
                    ],
                    "auto_submit_next_task": True,
                }
            },
        }
        (tmp_path / "specs.yaml").write_text(yaml.safe_dump(profile))
        factory = ContextFactory(settings=settings, config_dir=str(tmp_path))

        spec = factory.create_context("specs").task_specs["balance_trade"]

        assert spec.conditions == (to_checksum_address("0x" + "09" * 20),)
        assert spec.actions[0].addr == to_checksum_address("0x" + "05" * 20)
        assert spec.actions[0].operation is Operation.DELEGATECALL
        assert spec.actions[1].operation is Operation.CALL
        assert spec.actions[1].data == bytes.fromhex("deadbeef")
        assert spec.auto_submit_next_task is True

    def test_task_spec_with_unknown_entry(self, settings, tmp_path):
        profile = {
            "chain_id": 4,
            "rpc_url": "http://localhost:8545",
            "address_book": ADDRESS_BOOK_SECTIONS,
            "task_specs": {"broken": {"conditions": ["condition_nope"]}},
        }
        (tmp_path / "broken.yaml").write_text(yaml.safe_dump(profile))
        factory = ContextFactory(settings=settings, config_dir=str(tmp_path))

        with pytest.raises(ValueError, match="condition_nope"):
            factory.create_context("broken")

    def test_resolve_token(self, settings, config_dir):
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))

        assert factory.resolve_token("DAI") == "0x" + "d0" * 20
        assert factory.resolve_token("0x" + "e0" * 20) == "0x" + "e0" * 20
        with pytest.raises(ValueError, match="Unknown token 'mkr'"):
            factory.resolve_token("mkr")

    def test_create_orchestrator(self, settings, config_dir):
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))
        context = factory.create_context()

        orchestrator = factory.create_orchestrator(context)

        assert isinstance(orchestrator, SubmissionOrchestrator)
        assert isinstance(orchestrator.binder, Web3ContractBinder)
        assert orchestrator.binder.chain_id == 4

    def test_shipped_rinkeby_profile_is_complete(self, settings):
        """Test the bundled rinkeby profile loads."""
        config_dir = Path(__file__).resolve().parents[2] / "configs"
        factory = ContextFactory(settings=settings, config_dir=str(config_dir))

        context = factory.create_context("rinkeby")

        assert context.chain_id == 4
        assert context.salt_nonce == DEFAULT_SALT_NONCE
        assert context.address_book.condition_kyber_rate is None
        assert "withdraw_batch_exchange" in context.task_specs


class TestGelatoSettings:
    """Tests for environment driven settings."""

    @patch.dict(os.environ, {"GELATO_PROFILE": "mainnet", "GELATO_RECEIPT_TIMEOUT": "30"})
    def test_reads_prefixed_environment(self):
        settings = GelatoSettings()

        assert settings.profile == "mainnet"
        assert settings.receipt_timeout == 30.0

    def test_private_key_is_secret(self):
        settings = GelatoSettings(user_pk=PRIVATE_KEY)

        assert PRIVATE_KEY not in repr(settings)
        assert settings.user_pk.get_secret_value() == PRIVATE_KEY

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump({"profile": "local", "log_level": "DEBUG"}))

        settings = GelatoSettings.load_from_file(path)

        assert settings.profile == "local"
        assert settings.log_level == "DEBUG"

    def test_load_from_missing_file(self, tmp_path):
        assert isinstance(GelatoSettings.load_from_file(tmp_path / "missing.yaml"), GelatoSettings)
