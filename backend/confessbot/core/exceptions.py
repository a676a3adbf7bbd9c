"""
Bot error taxonomy with user-safe messages.

PRINCIPLE: Don't expose internal details to users.
Every BotError carries the text that is safe to show in the chat; the
router turns it into a reply or a callback acknowledgement. Anything that is
not a BotError is treated as an internal failure and answered generically.
"""
import logging

logger = logging.getLogger(__name__)


class BotError(Exception):
    """Expected, user-facing failure of a bot operation."""

    def __init__(self, user_message: str):
        super().__init__(user_message)
        self.user_message = user_message


class ValidationFailed(BotError):
    pass


class AccessDenied(BotError):
    pass


class NotFound(BotError):
    pass


class CooldownActive(BotError):
    def __init__(self, user_message: str, wait_seconds: int):
        super().__init__(user_message)
        self.wait_seconds = wait_seconds


class RateLimited(BotError):
    pass


class InvalidTransition(BotError):
    pass


class StoreConflictError(Exception):
    """Optimistic update gave up after exhausting its retries."""


class BusinessError:
    """Factories for bot errors, logged at the level each kind deserves."""

    @staticmethod
    def not_found(resource: str = "Item", reason: str = "") -> NotFound:
        """
        Generic not-found reply.

        Example:
            if not confession:
                raise BusinessError.not_found("Confession", f"id={confession_id}")
        """
        if reason:
            logger.info(f"Not found: {resource} - {reason}")
        return NotFound(f"❌ {resource} not found.")

    @staticmethod
    def forbidden(reason: str = "") -> AccessDenied:
        """Admin-only action attempted by someone else. Logged, never alarmed."""
        logger.warning(f"Forbidden access: {reason}")
        return AccessDenied("❌ Access denied")

    @staticmethod
    def blocked(user_id: int) -> AccessDenied:
        logger.info(f"Blocked user {user_id} tried to interact")
        return AccessDenied("❌ Your account has been blocked by admin.")

    @staticmethod
    def bad_request(detail: str) -> ValidationFailed:
        """
        Input validation failure.

        OK to include specific details here since the user caused the issue.
        Examples: "Confession too short", "Username already taken"
        """
        logger.info(f"Bad request: {detail}")
        return ValidationFailed(detail)

    @staticmethod
    def cooldown(wait_seconds: int) -> CooldownActive:
        logger.info(f"Cooldown active, {wait_seconds}s remaining")
        return CooldownActive(
            f"Please wait {wait_seconds} seconds before submitting another confession.",
            wait_seconds,
        )

    @staticmethod
    def rate_limit_exceeded(
        detail: str = "❌ Too many comments. Please wait before adding another comment.",
    ) -> RateLimited:
        logger.warning(f"Rate limit exceeded: {detail}")
        return RateLimited(detail)

    @staticmethod
    def already_decided(number: int, status: str) -> InvalidTransition:
        logger.warning(f"Confession #{number} already {status}, decision ignored")
        return InvalidTransition(f"⚠️ Confession #{number} was already {status}.")


GENERIC_FAILURE = "❌ Something went wrong. Please try again later."
GENERIC_CALLBACK_FAILURE = "❌ Error processing request"
