"""
HTTP feed validator.

Validates discovery candidates by fetching them and parsing the body as
RSS/Atom.
"""

from lucid_core import get_logger
from lucid_core.config import ResilienceConfig
from lucid_core.schemas import ValidationResult
from lucid_rss import fetch_feed

from .collaborators import FeedValidator

logger = get_logger(__name__)


class HttpFeedValidator(FeedValidator):
    """Validator backed by ``lucid_rss.fetch_feed``."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.timeout = config.validation_timeout

    async def validate_candidate(self, url: str) -> ValidationResult:
        try:
            parsed = await fetch_feed(url, timeout=self.timeout)
        except ValueError as e:
            logger.info("Candidate failed validation", extra={"url": url, "error": str(e)})
            return ValidationResult(is_valid=False, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error validating candidate", extra={"url": url})
            return ValidationResult(is_valid=False, error=f"{type(e).__name__}: {e}")

        return ValidationResult(
            is_valid=True,
            has_items=parsed.has_items,
            item_count=parsed.item_count,
            title=parsed.title or None,
            description=parsed.description or None,
        )
