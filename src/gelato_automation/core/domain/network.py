"""
Network Context

Immutable description of the network a submission runs against: chain id,
RPC endpoint, the signing account and the address book of every contract the
toolkit talks to. Constructed once (see application.factory) and passed
explicitly into every component; nothing reads network configuration from
global state.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Mapping

from eth_utils import to_bytes

from gelato_automation.core.domain.errors import ValidationError
from gelato_automation.core.domain.models import (
    DEFAULT_SALT_NONCE,
    Action,
    Operation,
    Provider,
    TaskSpec,
    checksum,
)

# Gnosis Safe default fallback handler used when deploying through CPK
DEFAULT_FALLBACK_HANDLER = "0x40a930851bd2e590bd5a5c981b436de25742e980"


@dataclass(frozen=True)
class AddressBook:
    """Checksummed addresses of the remote contracts."""

    gelato_core: str
    provider_module_gnosis_safe_proxy: str
    fee_extractor: str
    default_provider: str
    mastercopy: str
    cpk_factory: str
    multi_send: str
    batch_exchange: str
    action_place_order_batch_exchange: str
    action_place_order_batch_exchange_pay_fee: str
    action_withdraw_batch_exchange: str
    condition_batch_exchange_funds_withdrawable: str
    condition_balance_stateful: str
    condition_kyber_rate: str | None = None
    kyber_proxy: str | None = None

    def __post_init__(self):
        for item in fields(self):
            value = getattr(self, item.name)
            if value is not None:
                object.__setattr__(self, item.name, checksum(value, item.name))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AddressBook":
        """
        Build from the nested ``address_book`` section of a profile.

        Raises:
            ValueError: If a required address is missing
        """
        gelato = data.get("gelato", {})
        actions = data.get("gelato_actions", {})
        conditions = data.get("gelato_conditions", {})
        safe = data.get("gnosis_safe", {})
        protocol = data.get("gnosis_protocol", {})
        kyber = data.get("kyber", {})

        flat = {
            "gelato_core": gelato.get("gelato_core"),
            "provider_module_gnosis_safe_proxy": gelato.get(
                "provider_module_gnosis_safe_proxy"
            ),
            "fee_extractor": gelato.get("fee_extractor"),
            "default_provider": gelato.get("default_provider"),
            "mastercopy": safe.get("mastercopy"),
            "cpk_factory": safe.get("cpk_factory"),
            "multi_send": safe.get("multi_send"),
            "batch_exchange": protocol.get("batch_exchange"),
            "action_place_order_batch_exchange": actions.get(
                "action_place_order_batch_exchange"
            ),
            "action_place_order_batch_exchange_pay_fee": actions.get(
                "action_place_order_batch_exchange_pay_fee"
            ),
            "action_withdraw_batch_exchange": actions.get("action_withdraw_batch_exchange"),
            "condition_batch_exchange_funds_withdrawable": conditions.get(
                "condition_batch_exchange_funds_withdrawable"
            ),
            "condition_balance_stateful": conditions.get("condition_balance_stateful"),
            "condition_kyber_rate": conditions.get("condition_kyber_rate"),
            "kyber_proxy": kyber.get("proxy"),
        }
        optional = {"condition_kyber_rate", "kyber_proxy"}
        missing = [key for key, value in flat.items() if value is None and key not in optional]
        if missing:
            raise ValueError(f"Address book incomplete, missing: {', '.join(missing)}")
        return cls(**flat)

    def resolve(self, name_or_address: str) -> str:
        """Address for an address book entry name, or a literal 0x address."""
        if name_or_address.startswith("0x"):
            return checksum(name_or_address, "address")
        names = {item.name for item in fields(self)}
        address = getattr(self, name_or_address) if name_or_address in names else None
        if address is None:
            raise ValueError(f"Unknown or unset address book entry '{name_or_address}'")
        return address


def parse_task_specs(data: Mapping[str, Any], address_book: AddressBook) -> dict[str, TaskSpec]:
    """
    Build the named task specs of a profile's ``task_specs`` section.

    Conditions and action targets are address book entry names or addresses.

    Example:
        withdraw_batch_exchange:
          conditions: [condition_batch_exchange_funds_withdrawable]
          actions:
            - addr: action_withdraw_batch_exchange
              operation: delegatecall
              terms_ok_check: true

    Raises:
        ValueError: If an entry name or operation is unknown
    """
    specs = {}
    for name, spec in (data or {}).items():
        actions = []
        for action in spec.get("actions", []):
            operation = str(action.get("operation", "call")).upper()
            if operation not in Operation.__members__:
                raise ValueError(f"Task spec '{name}': unknown operation '{action.get('operation')}'")
            actions.append(
                Action(
                    addr=address_book.resolve(action["addr"]),
                    data=to_bytes(hexstr=str(action.get("data", "0x"))),
                    operation=Operation[operation],
                    value=int(action.get("value", 0)),
                    terms_ok_check=bool(action.get("terms_ok_check", False)),
                )
            )
        specs[name] = TaskSpec(
            conditions=tuple(address_book.resolve(c) for c in spec.get("conditions", [])),
            actions=tuple(actions),
            auto_submit_next_task=bool(spec.get("auto_submit_next_task", False)),
        )
    return specs


@dataclass(frozen=True)
class NetworkContext:
    """
    Everything a submission needs to know about the target network.

    Attributes:
        name: Profile name (e.g. rinkeby)
        chain_id: EIP-155 chain id
        rpc_url: JSON-RPC endpoint
        signer: Local account signing the user's transactions (None for read-only use)
        address_book: Remote contract addresses
        salt_nonce: CPK salt nonce used for derivation and deployment
        fallback_handler: Safe fallback handler set on deployment
        task_specs: Named task specs of the profile, for whitelist checks by name
    """

    name: str
    chain_id: int
    rpc_url: str
    signer: Any
    address_book: AddressBook
    salt_nonce: int = DEFAULT_SALT_NONCE
    fallback_handler: str = DEFAULT_FALLBACK_HANDLER
    task_specs: Mapping[str, TaskSpec] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        object.__setattr__(
            self, "fallback_handler", checksum(self.fallback_handler, "fallback handler")
        )

    @property
    def user_address(self) -> str:
        if self.signer is None:
            raise ValidationError("No signer configured: set GELATO_USER_PK or pass a user address")
        return checksum(self.signer.address, "signer address")

    def default_provider(self) -> Provider:
        """Provider of the Gelato core team using the Safe provider module."""
        return Provider(
            addr=self.address_book.default_provider,
            module=self.address_book.provider_module_gnosis_safe_proxy,
        )
