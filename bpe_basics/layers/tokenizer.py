import logging
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache, partial
from typing import Optional, Union

from .config import DECODE_ERROR_POLICIES, TokenizerConfig
from .errors import DecodeError, LoadError, UnknownTokenIdError
from .merge import byte_pair_encode
from .segmenter import Segmenter, SpecialSet
from .special import SpecialTokenRegistry
from .vocab import check_byte_coverage, load_ranks

logger = logging.getLogger(__name__)


class Tokenizer:
    def __init__(
        self,
        pat_str: str,
        mergeable_ranks: dict[bytes, int],
        special_tokens: Optional[dict[str, int]] = None,
        name: str = "",
        config: Optional[TokenizerConfig] = None,
    ):
        """
        从切分正则、bytes -> rank 词表和特殊 token 表构建分词器。

        所有表先在局部变量里构建并校验，全部通过后才挂到实例上；
        任何一步失败都抛出 LoadError，不存在半初始化的分词器。
        """
        config = config or TokenizerConfig()

        encoder = dict(mergeable_ranks)
        decoder = {}
        for token, rank in encoder.items():
            if not isinstance(rank, int) or rank < 0:
                raise LoadError(f"Rank of {token!r} must be a non-negative int, got {rank!r}")
            if rank in decoder:
                raise LoadError(f"Tokens {decoder[rank]!r} and {token!r} share rank {rank}")
            decoder[rank] = token
        check_byte_coverage(encoder)

        registry = SpecialTokenRegistry(special_tokens or {})
        clash = sorted(registry.decoder.keys() & decoder.keys())
        if clash:
            raise LoadError(f"Special token ids collide with vocabulary ranks: {clash[:8]}")

        segmenter = Segmenter(pat_str, registry)

        self.name = name
        self.pat_str = pat_str
        self.config = config
        self._encoder = encoder
        self._decoder = decoder
        self._registry = registry
        self._segmenter = segmenter
        if config.piece_cache_size:
            self._encode_piece = lru_cache(maxsize=config.piece_cache_size)(self._encode_piece_uncached)
        else:
            self._encode_piece = self._encode_piece_uncached
        logger.info(
            "Tokenizer %r ready: %d ranks, %d special tokens", name, len(decoder), len(registry)
        )
        logger.debug("piece cache size: %d", config.piece_cache_size)

    @classmethod
    def from_compact(
        cls,
        pat_str: str,
        special_tokens: dict[str, int],
        bpe_ranks: str,
        name: str = "",
        config: Optional[TokenizerConfig] = None,
    ) -> "Tokenizer":
        """从紧凑格式的 rank 表字符串构建分词器（格式见 vocab.load_ranks）。"""
        config = config or TokenizerConfig()
        _, encoder = load_ranks(bpe_ranks, sentinel=config.rank_sentinel)
        return cls(pat_str, encoder, special_tokens, name=name, config=config)

    def __repr__(self) -> str:
        return f"<Tokenizer {self.name!r}>"

    # ------------------------------------------------------------------
    # 编码
    # ------------------------------------------------------------------

    def encode(
        self,
        text: str,
        allowed_special: SpecialSet = (),
        disallowed_special: SpecialSet = "all",
    ) -> list[int]:
        """
        将输入字符串分词为 token ID 列表。

        allowed_special 中的特殊 token 编码为各自的 id；文本中出现 disallowed_special
        中的特殊 token 时抛出 DisallowedSpecialTokenError，不产生任何输出。
        两者都可以是 "all" 或字符串集合。
        """
        text = _fix_surrogates(text)
        ids = []
        for item in self._segmenter.split(text, allowed_special, disallowed_special):
            if isinstance(item, int):
                ids.append(item)
            else:
                ids.extend(self._encode_piece(text[item.start:item.end].encode("utf-8")))
        return ids

    def encode_ordinary(self, text: str) -> list[int]:
        """忽略特殊 token 的编码：特殊 token 的字面量按普通文本处理。"""
        text = _fix_surrogates(text)
        ids = []
        for piece in self._segmenter.split_ordinary(text):
            ids.extend(self._encode_piece(text[piece.start:piece.end].encode("utf-8")))
        return ids

    def encode_iterable(
        self,
        iterable: Iterable[str],
        allowed_special: SpecialSet = (),
        disallowed_special: SpecialSet = "all",
    ) -> Iterator[int]:
        """
        给定一个可迭代的字符串（例如 Python 文件句柄），返回一个生成器，惰性地输出 token ID。
        每个字符串独立编码，片段不会跨越字符串边界。
        """
        for text in iterable:
            yield from self.encode(text, allowed_special, disallowed_special)

    def encode_batch(
        self,
        texts: Sequence[str],
        num_threads: Optional[int] = None,
        allowed_special: SpecialSet = (),
        disallowed_special: SpecialSet = "all",
    ) -> list[list[int]]:
        """多线程批量编码，输出顺序与输入一致。"""
        num_threads = num_threads or self.config.num_threads
        encoder = partial(self.encode, allowed_special=allowed_special, disallowed_special=disallowed_special)
        with ThreadPoolExecutor(max_workers=num_threads) as pool:
            return list(pool.map(encoder, texts))

    def count_tokens(
        self,
        text: str,
        allowed_special: SpecialSet = (),
        disallowed_special: SpecialSet = "all",
    ) -> int:
        return len(self.encode(text, allowed_special, disallowed_special))

    def encode_single_token(self, text_or_bytes: Union[str, bytes]) -> int:
        """整段字面量对应的单个 token（普通 rank 或特殊 token id）。"""
        if isinstance(text_or_bytes, str):
            text_or_bytes = text_or_bytes.encode("utf-8")
        if text_or_bytes in self._encoder:
            return self._encoder[text_or_bytes]
        literal = text_or_bytes.decode("utf-8", errors="replace")
        if literal in self._registry.encoder:
            return self._registry.encoder[literal]
        raise KeyError(text_or_bytes)

    def _encode_piece_uncached(self, piece: bytes) -> list[int]:
        # 整个片段本身就是一个 token 时不进入合并循环
        rank = self._encoder.get(piece)
        if rank is not None:
            return [rank]
        return byte_pair_encode(piece, self._encoder)

    # ------------------------------------------------------------------
    # 解码
    # ------------------------------------------------------------------

    def decode_single_token_bytes(self, token: int) -> bytes:
        part = self._decoder.get(token)
        if part is None:
            part = self._registry.decoder.get(token)
            if part is None:
                raise UnknownTokenIdError(token)
        return part

    def decode_tokens_bytes(self, ids: Iterable[int]) -> list[bytes]:
        return [self.decode_single_token_bytes(token) for token in ids]

    def decode_bytes(self, ids: Iterable[int]) -> bytes:
        return b"".join(self.decode_tokens_bytes(ids))

    def decode(self, ids: Iterable[int], errors: Optional[str] = None) -> str:
        """
        将 token ID 列表解码回文本字符串。

        先把所有 token 的字节拼接起来，再整体做一次 UTF-8 解码，因为一个字符的
        编码可能跨越 token 边界。非法 UTF-8 的处理方式由 errors 决定，默认取
        config.decode_errors（"replace"）；"strict" 时抛出 DecodeError。
        """
        errors = errors or self.config.decode_errors
        if errors not in DECODE_ERROR_POLICIES:
            raise ValueError(f"errors={errors!r} not understood, expected one of {DECODE_ERROR_POLICIES}")
        data = self.decode_bytes(ids)
        try:
            return data.decode("utf-8", errors=errors)
        except UnicodeDecodeError as e:
            raise DecodeError(f"Token bytes are not valid UTF-8: {e}") from e

    # ------------------------------------------------------------------
    # 其它
    # ------------------------------------------------------------------

    def token_byte_values(self) -> list[bytes]:
        """按 rank 排序的全部普通 token 字节。"""
        return [self._decoder[rank] for rank in sorted(self._decoder)]

    def is_special_token(self, token: int) -> bool:
        return token in self._registry.decoder

    @property
    def special_tokens_set(self) -> frozenset:
        return self._registry.literals

    @property
    def special_tokens(self) -> dict[str, int]:
        return dict(self._registry.encoder)

    @property
    def max_token_value(self) -> int:
        return max(max(self._decoder), max(self._registry.decoder, default=0))

    @property
    def n_vocab(self) -> int:
        return self.max_token_value + 1


def _fix_surrogates(text: str) -> str:
    # 孤立代理项无法编码为 UTF-8，按 U+FFFD 处理
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        text = text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")
    return text
