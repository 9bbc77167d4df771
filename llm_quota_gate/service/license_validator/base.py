"""Base class for license validator implementations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

SKU_TIERS = {
    "SmartTerminal.Basic": "basic",
    "SmartTerminal.Pro": "pro",
    "SmartTerminal.Enterprise": "enterprise",
}


def tier_from_sku(sku_id: Optional[str]) -> str:
    """Map a store SKU to its subscription tier; unknown SKUs are "free"."""
    return SKU_TIERS.get(sku_id or "", "free")


@dataclass(frozen=True)
class LicenseValidation:
    """
    Answer of a license validator.

    `quota_limit` is whatever the authority advertises. Admission decisions
    use the gate's own tier table instead.
    """

    is_valid: bool
    tier: str = "free"
    quota_limit: Optional[int] = None


INVALID_LICENSE = LicenseValidation(is_valid=False)


class LicenseValidator(ABC):
    """
    Abstract base class for license validator implementations.

    Validators tell whether an opaque license token is valid and which
    subscription tier it grants.
    """

    @abstractmethod
    async def __call__(self, token: str) -> LicenseValidation:
        """
        Validate a license token.

        Args:
            token: Opaque license token sent by the client

        Returns:
            The validation outcome and the granted tier

        Raises:
            LicenseValidationUnavailable: If no answer could be obtained
        """

    async def close(self) -> None:
        """Release any resources held by the validator."""
