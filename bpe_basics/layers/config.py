from dataclasses import dataclass

# GPT-2 / r50k 预分词正则
GPT2_PATTERN = r"""'(?:[sdmt]|ll|ve|re)| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|\s+(?!\S)|\s+"""

# cl100k_base
CL100K_PATTERN = r"""'(?i:[sdmt]|ll|ve|re)|[^\r\n\p{L}\p{N}]?+\p{L}+|\p{N}{1,3}| ?[^\s\p{L}\p{N}]++[\r\n]*|\s*[\r\n]|\s+(?!\S)|\s+"""

# o200k_base
O200K_PATTERN = "|".join(
    [
        r"""[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]*[\p{Ll}\p{Lm}\p{Lo}\p{M}]+(?i:'s|'t|'re|'ve|'m|'ll|'d)?""",
        r"""[^\r\n\p{L}\p{N}]?[\p{Lu}\p{Lt}\p{Lm}\p{Lo}\p{M}]+[\p{Ll}\p{Lm}\p{Lo}\p{M}]*(?i:'s|'t|'re|'ve|'m|'ll|'d)?""",
        r"""\p{N}{1,3}""",
        r""" ?[^\s\p{L}\p{N}]+[\r\n/]*""",
        r"""\s*[\r\n]+""",
        r"""\s+(?!\S)""",
        r"""\s+""",
    ]
)

ENDOFTEXT = "<|endoftext|>"

DECODE_ERROR_POLICIES = ("replace", "strict", "ignore", "backslashreplace")


@dataclass(frozen=True)
class TokenizerConfig:
    """Runtime options of a loaded tokenizer."""
    # UTF-8 error handling for decode(); "replace" substitutes U+FFFD
    decode_errors: str = "replace"
    # marker that opens a block in the compact rank table
    rank_sentinel: str = "!"
    # piece bytes -> ids LRU cache, 0 disables
    piece_cache_size: int = 4096
    num_threads: int = 8

    def __post_init__(self):
        if self.decode_errors not in DECODE_ERROR_POLICIES:
            raise ValueError(
                f"decode_errors={self.decode_errors!r} not understood, expected one of {DECODE_ERROR_POLICIES}"
            )
        if not self.rank_sentinel or any(c.isspace() for c in self.rank_sentinel):
            raise ValueError("rank_sentinel must be a non-empty string without whitespace")
        if self.piece_cache_size < 0:
            raise ValueError(f"piece_cache_size must be >= 0, got {self.piece_cache_size}")
        if self.num_threads < 1:
            raise ValueError(f"num_threads must be >= 1, got {self.num_threads}")
