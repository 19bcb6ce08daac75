"""Two-factor authentication (TOTP) on top of the platform's MFA API.

Secret generation, code verification and session issuance all happen on the
platform. This module only sequences the calls and normalises failures.
"""

import logging
from dataclasses import dataclass
from typing import Any, List

from supabase_auth.errors import AuthError as PlatformAuthError

from . import AuthError

logger = logging.getLogger(__name__)

FACTOR_TYPE = "totp"
FACTOR_COOKIE = "2fa_factor_id"
IN_PROGRESS_COOKIE = "2fa_in_progress"

class TwoFactorError(AuthError):
    """Raised when the platform fails an MFA operation."""
    pass

class FactorNotFoundError(TwoFactorError):
    """Raised when no TOTP factor in the requested state exists."""
    pass

class VerificationError(TwoFactorError):
    """Raised when a one-time code is rejected."""
    pass

@dataclass
class Enrollment:
    """Result of enrolling a new TOTP factor."""
    factor_id: str
    qr_code: str
    secret: str

class TwoFactorManager:
    """Runs the enroll / challenge / verify / unenroll sequence for one session."""

    def __init__(self, client):
        """Initialize the manager.

        Args:
            client: Platform client bound to the user's full session
        """
        self.client = client

    async def enroll(self) -> Enrollment:
        """Enroll a new TOTP factor.

        Raises:
            TwoFactorError: If enrollment fails or returns no QR code/secret
        """
        try:
            response = await self.client.auth.mfa.enroll({"factor_type": FACTOR_TYPE})
        except PlatformAuthError as e:
            logger.error(f"Enable 2FA error: {e}")
            raise TwoFactorError(str(e))

        totp = response.totp if response else None
        if not totp or not totp.qr_code or not totp.secret or not response.id:
            raise TwoFactorError("Failed to enroll 2FA.")

        return Enrollment(factor_id=response.id, qr_code=totp.qr_code, secret=totp.secret)

    async def list_factors(self) -> List[Any]:
        """List all factors of the current user."""
        try:
            response = await self.client.auth.mfa.list_factors()
        except PlatformAuthError as e:
            logger.error(f"Fetch factors error: {e}")
            raise TwoFactorError(str(e) or "Failed to fetch factors")

        if response is None or response.all is None:
            raise TwoFactorError("Failed to fetch factors")
        return list(response.all)

    async def find_factor(self, factor_status: str) -> Any:
        """Return the first TOTP factor with the given status.

        Raises:
            FactorNotFoundError: If there is none
        """
        for factor in await self.list_factors():
            if factor.factor_type == FACTOR_TYPE and factor.status == factor_status:
                return factor
        raise FactorNotFoundError(f"No {factor_status} TOTP factor found.")

    async def challenge_and_verify(self, factor_id: str, code: str) -> Any:
        """Create a challenge for the factor and verify the code in one call.

        Raises:
            VerificationError: If the code is rejected
        """
        try:
            return await self.client.auth.mfa.challenge_and_verify(
                {"factor_id": factor_id, "code": code}
            )
        except PlatformAuthError as e:
            logger.error(f"2FA challenge error: {e}")
            raise VerificationError(str(e))

    async def verify_code(self, factor_id: str, code: str) -> Any:
        """Challenge the factor, then verify the code against that challenge.

        Returns:
            The platform's verify response (the upgraded session)

        Raises:
            VerificationError: If the challenge or the verification fails
        """
        try:
            challenge = await self.client.auth.mfa.challenge({"factor_id": factor_id})
        except PlatformAuthError as e:
            logger.error(f"2FA challenge error: {e}")
            raise VerificationError(str(e))

        try:
            return await self.client.auth.mfa.verify({
                "factor_id": factor_id,
                "challenge_id": challenge.id,
                "code": code,
            })
        except PlatformAuthError as e:
            logger.error(f"2FA verification error: {e}")
            raise VerificationError(str(e))

    async def unenroll(self, factor_id: str) -> None:
        """Remove a factor.

        Raises:
            TwoFactorError: If the platform refuses
        """
        try:
            await self.client.auth.mfa.unenroll({"factor_id": factor_id})
        except PlatformAuthError as e:
            logger.error(f"Disable 2FA error: {e}")
            raise TwoFactorError(str(e))

    async def enable(self) -> Enrollment:
        """Start enabling 2FA (same as enroll)."""
        return await self.enroll()

    async def confirm(self, code: str) -> None:
        """Finish enabling 2FA by verifying a code against the unverified factor."""
        factor = await self.find_factor("unverified")
        await self.challenge_and_verify(factor.id, code)

    async def disable(self, code: str) -> None:
        """Disable 2FA after re-verifying a code against the verified factor."""
        factor = await self.find_factor("verified")
        await self.challenge_and_verify(factor.id, code)
        await self.unenroll(factor.id)

    async def reissue(self) -> Enrollment:
        """Re-enroll while an unverified factor is pending.

        The platform never returns a secret twice, so a fresh secret and QR code
        are issued; the earlier ones stop working.

        Raises:
            FactorNotFoundError: If no unverified factor is pending
        """
        await self.find_factor("unverified")
        return await self.enroll()

__all__ = [
    'TwoFactorManager',
    'Enrollment',
    'TwoFactorError',
    'FactorNotFoundError',
    'VerificationError',
    'FACTOR_COOKIE',
    'IN_PROGRESS_COOKIE',
]
