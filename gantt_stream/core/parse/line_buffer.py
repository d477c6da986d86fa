from __future__ import annotations


class LineReconstructor:
    """Turn arbitrarily split text fragments into complete lines.

    The unterminated tail of the last fragment is kept until a later fragment
    supplies its newline (or flush() is called at end of stream).
    """

    def __init__(self) -> None:
        self._partial = ""

    @property
    def partial(self) -> str:
        return self._partial

    def feed(self, chunk: str) -> list[str]:
        if not chunk:
            return []
        combined = self._partial + chunk
        parts = combined.split("\n")
        self._partial = parts.pop()
        return [p[:-1] if p.endswith("\r") else p for p in parts]

    def flush(self) -> list[str]:
        if not self._partial:
            return []
        tail = self._partial
        self._partial = ""
        return [tail]

    def reset(self) -> None:
        self._partial = ""
