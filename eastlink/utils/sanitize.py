import re
from typing import Any

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.I)
_JS_PROTOCOL = re.compile(r"javascript:", re.I)
_INLINE_HANDLER = re.compile(r"on\w+\s*=", re.I)


def clean_text(value: Any) -> Any:
    """Strip script blocks, ``javascript:`` and inline event handlers from a string."""
    if not isinstance(value, str):
        return value
    value = _SCRIPT_BLOCK.sub("", value)
    value = _JS_PROTOCOL.sub("", value)
    value = _INLINE_HANDLER.sub("", value)
    return value.strip()


def mongo_safe(value: Any) -> Any:
    """Replace ``$`` prefixes and dots in dict keys so user data cannot carry operators."""
    if isinstance(value, dict):
        safe = {}
        for key, item in value.items():
            key = str(key)
            if key.startswith("$"):
                key = "_" + key[1:]
            safe[key.replace(".", "_")] = mongo_safe(item)
        return safe
    if isinstance(value, list):
        return [mongo_safe(v) for v in value]
    return value


def search_regex(term: str) -> dict:
    return {"$regex": re.escape(term.strip()), "$options": "i"}
