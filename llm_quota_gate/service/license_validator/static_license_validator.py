"""Static license validator that accepts every token."""

from llm_quota_gate.service.license_validator.base import (
    LicenseValidation,
    LicenseValidator,
)


class StaticLicenseValidator(LicenseValidator):
    """
    License validator that grants the same tier to any non-empty token.

    Used for local development and tests, where no license authority is
    reachable.
    """

    def __init__(self, tier: str = "basic"):
        """
        Initialize the validator.

        Args:
            tier: Tier granted to every token
        """
        self.tier = tier

    async def __call__(self, token: str) -> LicenseValidation:
        return LicenseValidation(is_valid=bool(token), tier=self.tier)

    def __str__(self) -> str:
        return f"StaticLicenseValidator(tier='{self.tier}')"
