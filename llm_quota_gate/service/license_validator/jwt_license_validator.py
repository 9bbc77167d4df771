"""License validator for signed license tokens."""

import logging
from typing import Optional

from llm_quota_gate.service.license_validator.base import (
    INVALID_LICENSE,
    LicenseValidation,
    LicenseValidator,
    tier_from_sku,
)
from llm_quota_gate.utils.jwt_utils import validate_jwt

logger = logging.getLogger(__name__)


class JwtLicenseValidator(LicenseValidator):
    """
    Validates license tokens issued as signed JWTs.

    The token is valid when its signature and expiry check out. The tier is
    read from the `tier` claim, or derived from the `sku` claim when the
    issuer only states the purchased product.
    """

    def __init__(
        self,
        jwt_secret: str,
        audience: Optional[str] = None,
        jwt_algorithms: Optional[list[str]] = None,
    ):
        """
        Initialize the validator.

        Args:
            jwt_secret: The secret key used to validate license tokens
            audience: Expected audience claim, not checked when None
            jwt_algorithms: List of allowed algorithms, defaults to ['HS256']
        """
        self.jwt_secret = jwt_secret
        self.audience = audience
        self.jwt_algorithms = jwt_algorithms

    async def __call__(self, token: str) -> LicenseValidation:
        claims = validate_jwt(
            token=token,
            secret=self.jwt_secret,
            audience=self.audience,
            algorithms=self.jwt_algorithms,
            verify_audience=self.audience is not None,
        )
        if not claims:
            return INVALID_LICENSE

        tier = claims.get("tier") or tier_from_sku(claims.get("sku"))
        quota_limit = claims.get("quota_limit")
        logger.debug("License token for subject %s grants tier %s", claims.get("sub"), tier)
        return LicenseValidation(
            is_valid=True,
            tier=str(tier),
            quota_limit=quota_limit if isinstance(quota_limit, int) else None,
        )

    def __str__(self) -> str:
        return f"JwtLicenseValidator(audience={self.audience})"
