class TokenizerError(ValueError):
    """所有分词器错误的基类。继承 ValueError，兼容只捕获 ValueError 的调用方。"""


class LoadError(TokenizerError):
    """词表或特殊 token 表无法加载，整个引擎不可用。"""


class DisallowedSpecialTokenError(TokenizerError):
    def __init__(self, token: str, position: int, byte_offset: int):
        self.token = token
        self.position = position
        self.byte_offset = byte_offset
        super().__init__(
            f"Encountered text corresponding to disallowed special token {token!r} "
            f"at byte offset {byte_offset}. "
            "Pass it in allowed_special to encode it as a special token, "
            "or remove it from disallowed_special to encode it as normal text."
        )


class SegmentationError(TokenizerError):
    def __init__(self, segment: str, position: int):
        self.segment = segment
        self.position = position
        super().__init__(
            f"Split pattern does not cover segment at position {position}: {segment[position:position + 30]!r}"
        )


class UnknownTokenIdError(TokenizerError, KeyError):
    def __init__(self, token_id: int):
        self.token_id = token_id
        super().__init__(f"Invalid token id: {token_id}")

    def __str__(self):
        return self.args[0]


class InternalConsistencyError(TokenizerError, RuntimeError):
    """合并结束后某个 span 在词表中找不到 rank。加载成功时不应出现。"""


class DecodeError(TokenizerError):
    """decode_errors="strict" 时，拼接后的字节不是合法 UTF-8。"""
