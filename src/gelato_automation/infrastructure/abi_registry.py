"""
ABI Registry

Loads the minimal JSON interface descriptions shipped in
``gelato_automation/infrastructure/abis`` and encodes calls against them.
"""

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Sequence

import structlog

from gelato_automation.core.domain.calldata import encode_function_call

logger = structlog.get_logger()

_ABI_PACKAGE = "gelato_automation.infrastructure.abis"


@lru_cache(maxsize=None)
def _load(name: str) -> tuple[dict[str, Any], ...]:
    resource = resources.files(_ABI_PACKAGE).joinpath(f"{name}.json")
    if not resource.is_file():
        raise KeyError(f"Unknown contract ABI: {name}")
    with resource.open("r", encoding="utf-8") as f:
        abi = json.load(f)
    logger.debug("abi.loaded", contract=name, entries=len(abi))
    return tuple(abi)


class AbiRegistry:
    """Lookup of contract ABIs by contract name."""

    def get(self, contract: str) -> list[dict[str, Any]]:
        """
        Return the ABI of ``contract``.

        Raises:
            KeyError: If no ABI with that name is shipped
        """
        return list(_load(contract))

    def available(self) -> list[str]:
        return sorted(
            entry.name.removesuffix(".json")
            for entry in resources.files(_ABI_PACKAGE).iterdir()
            if entry.name.endswith(".json")
        )

    def encode(self, contract: str, function: str, args: Sequence[Any] = ()) -> bytes:
        """Selector-prefixed calldata for ``contract.function(*args)``."""
        return encode_function_call(self.get(contract), function, args)
