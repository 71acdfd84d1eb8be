from __future__ import annotations

import unicodedata

from loguru import logger

from ..shard.enums import Provider

# ---------------------------------------------------------------------------
# Prompt sanitization
# ---------------------------------------------------------------------------

# Printable ASCII range accepted by the strict filter (space through tilde).
_ASCII_MIN = 32
_ASCII_MAX = 126

# Control characters that separate words; these become a space instead of vanishing.
_WHITESPACE_CONTROLS = frozenset("\t\n\r\x0b\x0c\x85")


def strict_ascii(text: str) -> str:
    """Replace every character outside printable ASCII with a single space.

    Length-preserving and idempotent: nothing is ever deleted, so word
    boundaries around stripped characters survive.
    """
    return "".join(ch if _ASCII_MIN <= ord(ch) <= _ASCII_MAX else " " for ch in text)


def strip_control_characters(text: str) -> str:
    """Drop Unicode control characters, keeping printable text of any script.

    Whitespace-like controls (tab, newline, ...) map to a space; the rest of
    category ``Cc`` is removed.
    """
    out: list[str] = []
    for ch in text:
        if ch in _WHITESPACE_CONTROLS:
            out.append(" ")
        elif unicodedata.category(ch) == "Cc":
            continue
        else:
            out.append(ch)
    return "".join(out)


def is_blank(text: str | None) -> bool:
    return not text or not text.strip()


def sanitize_prompt(prompt: str, provider: Provider | str | None) -> str:
    """Apply the provider's prompt filter.

    xAI rejects anything beyond printable ASCII, so it gets :func:`strict_ascii`.
    Every other provider (including unrecognized ids) gets the loose filter.
    """
    resolved = provider if isinstance(provider, Provider) else Provider.from_str(provider)
    cleaned = strict_ascii(prompt) if resolved == Provider.XAI else strip_control_characters(prompt)
    if cleaned != prompt:
        logger.debug(f"Sanitized prompt for {resolved or provider}: {len(prompt)} -> {len(cleaned)} chars")
    return cleaned


__all__ = ["strict_ascii", "strip_control_characters", "is_blank", "sanitize_prompt"]
