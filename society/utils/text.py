import re
from typing import List, Optional

HASHTAG_RE = re.compile(r"(?<![\w#])#(\w{1,100})")
MENTION_RE = re.compile(r"(?<![\w@])@([a-zA-Z0-9_]{3,30})")


def _unique(matches) -> List[str]:
    seen = []
    for match in matches:
        name = match.lower()
        if name not in seen:
            seen.append(name)
    return seen


def extract_hashtags(text: Optional[str]) -> List[str]:
    """Lowercased tag names in order of first appearance, without the ``#``."""
    if not text:
        return []
    return _unique(HASHTAG_RE.findall(text))


def extract_mentions(text: Optional[str], limit: int = 10) -> List[str]:
    if not text:
        return []
    return _unique(MENTION_RE.findall(text))[:limit]
