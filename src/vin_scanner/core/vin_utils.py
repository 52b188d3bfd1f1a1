"""
VIN Utilities
=============

VIN pattern matching over OCR transcriptions.

The accepted shape is the registration-card VIN printed on the target
document class: ``NA`` followed by fifteen characters from ``[A-Z0-9]``,
bounded by word boundaries. Letters I, O and Q are accepted and no check
digit is verified.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class VINConstants:
    """VIN shape constants for the scanned card format."""

    LENGTH: int = 17
    PREFIX: str = "NA"
    CHARSET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


VIN_LENGTH = VINConstants.LENGTH

# re.ASCII keeps \b aligned with [A-Za-z0-9_] so Persian/Arabic letters
# next to a VIN still count as a boundary
VIN_PATTERN = re.compile(
    r"\b" + VINConstants.PREFIX + r"[A-Z0-9]{" + str(VIN_LENGTH - len(VINConstants.PREFIX)) + r"}\b",
    re.ASCII,
)


@dataclass(frozen=True)
class VinMatch:
    """Result of scanning one transcription."""
    vin: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.vin is not None

    @classmethod
    def not_found(cls) -> "VinMatch":
        return cls(None)


def match_vin(text: Optional[str]) -> VinMatch:
    """
    Find the first VIN in a transcription.

    Args:
        text: OCR transcription (may be empty or multi-line)

    Returns:
        VinMatch with the 17-character VIN, or VinMatch.not_found()
    """
    if not text:
        return VinMatch.not_found()

    match = VIN_PATTERN.search(text)
    if match is None:
        logger.debug("No VIN pattern in %d characters of text", len(text))
        return VinMatch.not_found()

    return VinMatch(match.group(0))


def extract_vin_from_text(text: Optional[str]) -> Optional[str]:
    """Return the first VIN in ``text`` or None."""
    return match_vin(text).vin
