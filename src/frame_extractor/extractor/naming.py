"""
Output filename rendering.

Filename templates use printf-style formatting with exactly one integer
placeholder, e.g. "frame%04d.jpg" or "out%02i.raw". "%%" is a literal
percent sign.
"""

import re


_PLACEHOLDER = re.compile(r"%(?:%|[-#0 +]*\d*(?:\.\d+)?([a-zA-Z]))")

RAW_EXTENSION = ".raw"


def validate_template(template: str) -> str:
    """
    Check that a filename template has exactly one integer placeholder.

    Args:
        template: printf-style filename template

    Returns:
        The template, unchanged

    Raises:
        ValueError: If the template has no, several, or non-integer placeholders
    """
    conversions = [
        match.group(1)
        for match in _PLACEHOLDER.finditer(template)
        if match.group(0) != "%%"
    ]

    if len(conversions) != 1:
        raise ValueError(
            f"Filename template {template!r} must contain exactly one integer "
            f"placeholder, found {len(conversions)}"
        )
    if conversions[0] not in ("d", "i", "u"):
        raise ValueError(
            f"Filename template {template!r} placeholder must be an integer "
            f"conversion (%d, %i or %u), got %{conversions[0]}"
        )
    if template.count("%") != sum(
        2 if m.group(0) == "%%" else 1 for m in _PLACEHOLDER.finditer(template)
    ):
        raise ValueError(f"Filename template {template!r} has a stray '%'")

    return template


def render_filename(template: str, sequence: int) -> str:
    """Substitute a sequence number into a filename template."""
    if sequence < 0:
        raise ValueError("sequence must be >= 0")
    return template % sequence


def is_raw_filename(filename: str) -> bool:
    """Whether the filename ends in the literal ".raw" extension."""
    return len(filename) >= 4 and filename[-4:] == RAW_EXTENSION
