"""
Brand-name sanitizer applied to every string in a snapshot.

Rules are literal, case-insensitive substring replacements applied in
order. A rule set is rejected when a replacement text itself matches a
pattern. Because a replacement can still join with its neighbours into a
new match, the rules are re-applied until the text stops changing, which
keeps sanitize(sanitize(v)) == sanitize(v).
"""
import re
from typing import Any, Iterable, List, Pattern, Sequence, Tuple

from storefront.core.config import DEFAULT_SANITIZE_RULES
from storefront.utils.logger import get_logger

logger = get_logger("snapshot.sanitizer")

MAX_PASSES = 16


class Sanitizer:
    def __init__(self, rules: Iterable[Sequence[str]] = DEFAULT_SANITIZE_RULES):
        self.rules: List[Tuple[str, str]] = [(str(p), str(r)) for p, r in rules]
        self._compiled: List[Tuple[Pattern, str]] = [
            (re.compile(re.escape(pattern), re.IGNORECASE), replacement)
            for pattern, replacement in self.rules
        ]
        self._check_rules()

    def _check_rules(self) -> None:
        for _, replacement in self.rules:
            for regex, _ in self._compiled:
                if regex.search(replacement):
                    raise ValueError(
                        f"Sanitizer rule output {replacement!r} matches pattern {regex.pattern!r}"
                    )

    def _apply_once(self, text: str) -> str:
        for regex, replacement in self._compiled:
            # Callable replacement: the text is literal, never a backreference.
            text = regex.sub(lambda _m, r=replacement: r, text)
        return text

    def sanitize_text(self, text: str) -> str:
        for _ in range(MAX_PASSES):
            result = self._apply_once(text)
            if result == text:
                return result
            text = result
        logger.warning(f"Sanitizer did not settle after {MAX_PASSES} passes: {text[:80]!r}")
        return text

    def sanitize(self, value: Any) -> Any:
        """Return `value` with every string leaf sanitized; other leaves pass through."""
        if isinstance(value, str):
            return self.sanitize_text(value)
        if isinstance(value, list):
            return [self.sanitize(v) for v in value]
        if isinstance(value, dict):
            return {k: self.sanitize(v) for k, v in value.items()}
        return value
