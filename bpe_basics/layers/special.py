from functools import lru_cache
from typing import Optional

import regex as re

from .errors import LoadError


class SpecialTokenRegistry:
    """
    特殊 token 表：字面字符串 -> id，以及 id -> 字面字符串的 UTF-8 字节。
    构建后不可变，可以在多个线程之间共享。
    """

    def __init__(self, special_tokens: dict[str, int]):
        encoder: dict[str, int] = {}
        decoder: dict[int, bytes] = {}
        for literal, token_id in special_tokens.items():
            if not literal:
                raise LoadError("Special token literal must not be empty")
            if token_id in decoder:
                raise LoadError(
                    f"Special tokens {decoder[token_id].decode('utf-8')!r} and {literal!r} share id {token_id}"
                )
            encoder[literal] = token_id
            decoder[token_id] = literal.encode("utf-8")

        self.encoder = encoder
        self.decoder = decoder
        self.literals = frozenset(encoder)
        # 按注册顺序组成的交替式，最左优先、不重叠
        self.pattern = self._compile(tuple(encoder))

    @staticmethod
    def _compile(literals: tuple[str, ...]) -> Optional[re.Pattern]:
        if not literals:
            return None
        return re.compile("|".join(re.escape(t) for t in literals))

    @lru_cache(maxsize=32)
    def matcher_for(self, literals: frozenset) -> Optional[re.Pattern]:
        """只识别给定子集的匹配器，保持注册顺序。"""
        return self._compile(tuple(t for t in self.encoder if t in literals))

    def __len__(self):
        return len(self.encoder)

    def __contains__(self, literal):
        return literal in self.encoder
