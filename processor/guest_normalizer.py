"""Normalizer mapping raw guest entries to the display schema."""
import logging
from typing import Any, Iterable, Optional

from processor.models import PLACEHOLDER, GuestCollection, NormalizedGuest

logger = logging.getLogger(__name__)


class GuestNormalizer:
    """Normalizer for raw guest list entries."""

    def normalize(self, entry: Any) -> NormalizedGuest:
        """
        Normalize a single raw guest entry.

        Never raises: a missing or malformed ``user`` sub-record is treated
        as if every field were absent.

        Args:
            entry: Raw entry from the guest list endpoint

        Returns:
            NormalizedGuest with placeholders for absent fields
        """
        user = entry.get('user') if isinstance(entry, dict) else None
        if not isinstance(user, dict):
            user = {}

        return NormalizedGuest(
            name=self._text(user.get('name')) or PLACEHOLDER,
            twitter=self._handle(user.get('twitter_handle'), prefix='@'),
            linkedin=self._handle(user.get('linkedin_handle')),
            instagram=self._handle(user.get('instagram_handle'), prefix='@'),
            bio=self._text(user.get('bio_short')) or PLACEHOLDER
        )

    def normalize_all(self, entries: Iterable[Any]) -> GuestCollection:
        """
        Normalize entries preserving arrival order.

        Args:
            entries: Raw entries accumulated across pages

        Returns:
            Tuple of NormalizedGuest objects
        """
        guests = tuple(self.normalize(entry) for entry in entries)
        logger.info(f"Normalized {len(guests)} guest entries")
        return guests

    def _handle(self, value: Any, prefix: str = '') -> str:
        text = self._text(value)
        if not text:
            return PLACEHOLDER
        return f"{prefix}{text}"

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        # falsy scalars (False, 0, "") count as absent
        if not value or isinstance(value, (dict, list)):
            return None
        return value if isinstance(value, str) else str(value)
