"""URL-safe slug generation utilities."""

import re
import unicodedata


def slugify(text: str) -> str:
    """Convert a pick'em game name to a URL-safe slug.

    Args:
        text: Game name (e.g. "Office Pool 2025!").

    Returns:
        Slugified text (e.g. "office-pool-2025").
    """
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")
