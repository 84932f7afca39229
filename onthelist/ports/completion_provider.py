from __future__ import annotations
from typing import Protocol, Optional


class CompletionProvider(Protocol):
    """Abstracts the language model behind classification for testability."""

    def complete_json(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        """Return the raw text of a JSON-object completion (may be None or empty).

        Implementations raise ``ServiceUnavailable`` for transport, timeout and
        credential failures.
        """
        ...
