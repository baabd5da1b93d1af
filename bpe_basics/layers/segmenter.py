from collections.abc import Collection, Iterator
from typing import NamedTuple, Union

import regex as re

from .errors import DisallowedSpecialTokenError, LoadError, SegmentationError
from .special import SpecialTokenRegistry


class Piece(NamedTuple):
    """text[start:end]，由切分正则得到的一个片段（字符下标）。"""
    start: int
    end: int


SpecialSet = Union[str, Collection[str]]


class Segmenter:
    """
    预分词：先按允许的特殊 token 把文本切成若干段，再用切分正则把每段切成 Piece。
    编译好的正则是无状态的，可被多个线程同时使用。
    """

    def __init__(self, pat_str: str, registry: SpecialTokenRegistry):
        try:
            self.pattern = re.compile(pat_str)
        except re.error as e:
            raise LoadError(f"Invalid split pattern: {e}") from e
        self.registry = registry

    def resolve_special(self, allowed_special: SpecialSet, disallowed_special: SpecialSet) -> tuple[frozenset, frozenset]:
        """把 "all" 展开为全部特殊 token；disallowed="all" 表示除 allowed 之外的全部。"""
        names = self.registry.literals
        if allowed_special == "all":
            allowed = names
        elif isinstance(allowed_special, str):
            raise ValueError(f"allowed_special={allowed_special!r} not understood")
        else:
            allowed = frozenset(allowed_special) & names

        if disallowed_special == "all":
            disallowed = names - allowed
        elif isinstance(disallowed_special, str):
            raise ValueError(f"disallowed_special={disallowed_special!r} not understood")
        else:
            disallowed = frozenset(disallowed_special) & names
        return allowed, disallowed

    def check_disallowed(self, text: str, disallowed: frozenset) -> None:
        """在切分之前整体扫描一遍，出现任何禁止的特殊 token 就立即失败。"""
        if not disallowed:
            return
        matcher = self.registry.matcher_for(disallowed)
        match = matcher.search(text)
        if match:
            position = match.start()
            byte_offset = len(text[:position].encode("utf-8"))
            raise DisallowedSpecialTokenError(match.group(), position, byte_offset)

    def split(
        self,
        text: str,
        allowed_special: SpecialSet = (),
        disallowed_special: SpecialSet = "all",
    ) -> list[Union[Piece, int]]:
        """
        返回按原文顺序交错的 Piece（待 BPE 编码）和特殊 token id（原样输出）。

        只有 allowed 中的特殊 token 才作为边界；既不在 allowed 也不在 disallowed 中的
        特殊 token 被当作普通文本，扫描从它的起点后一个字符继续。
        """
        allowed, disallowed = self.resolve_special(allowed_special, disallowed_special)
        self.check_disallowed(text, disallowed)

        special = self.registry.pattern
        out: list[Union[Piece, int]] = []
        start = 0
        while True:
            match = None
            if allowed:
                find_from = start
                while True:
                    match = special.search(text, find_from)
                    if match is None or match.group() in allowed:
                        break
                    find_from = match.start() + 1

            end = match.start() if match else len(text)
            out.extend(self.split_ordinary(text, start, end))
            if match is None:
                break
            out.append(self.registry.encoder[match.group()])
            start = match.end()
        return out

    def split_ordinary(self, text: str, start: int = 0, end: int = None) -> Iterator[Piece]:
        """用切分正则把 text[start:end] 切成连续、无遗漏的 Piece。"""
        segment = text[start:end]
        pos = 0
        for m in self.pattern.finditer(segment):
            if m.start() != pos:
                raise SegmentationError(segment, pos)
            if m.end() == pos:
                continue
            yield Piece(start + pos, start + m.end())
            pos = m.end()
        if pos != len(segment):
            raise SegmentationError(segment, pos)
