import base64
import binascii
import logging

from .errors import LoadError

logger = logging.getLogger(__name__)


def load_ranks(compact: str, sentinel: str = "!") -> tuple[dict[int, bytes], dict[bytes, int]]:
    """
    解压紧凑格式的 rank 表。

    格式：空白分隔的字段。字段等于 `sentinel` 时开启一个新块，紧随其后的字段是
    非负整数起始偏移 offset；之后直到下一个 sentinel（或输入结束）的每个字段都是
    base64 编码的字节序列，依次分配 rank offset, offset+1, ...

    返回：
        (decoder, encoder): rank -> bytes 与 bytes -> rank 两张表。
    任何格式错误都抛出 LoadError，不会返回部分结果。
    """
    decoder: dict[int, bytes] = {}
    encoder: dict[bytes, int] = {}

    fields = compact.split()
    next_rank = None
    n_blocks = 0
    i = 0
    while i < len(fields):
        field = fields[i]
        if field == sentinel:
            if i + 1 >= len(fields):
                raise LoadError(f"Block marker at field {i} is missing its offset")
            offset_field = fields[i + 1]
            if not (offset_field.isascii() and offset_field.isdigit()):
                raise LoadError(f"Invalid block offset {offset_field!r} at field {i + 1}")
            next_rank = int(offset_field)
            n_blocks += 1
            logger.debug("rank block %d starts at offset %d", n_blocks, next_rank)
            i += 2
            continue

        if next_rank is None:
            raise LoadError(f"Token field {field!r} appears before any block marker")
        try:
            token = base64.b64decode(field, validate=True)
        except binascii.Error as e:
            raise LoadError(f"Invalid base64 token {field!r} at field {i}: {e}") from e
        if not token:
            raise LoadError(f"Empty token at field {i}")
        if token in encoder:
            raise LoadError(f"Duplicate token {token!r} (ranks {encoder[token]} and {next_rank})")
        if next_rank in decoder:
            raise LoadError(f"Rank {next_rank} assigned twice (overlapping blocks)")
        decoder[next_rank] = token
        encoder[token] = next_rank
        next_rank += 1
        i += 1

    check_byte_coverage(encoder)
    logger.info("Loaded %d ranks from %d block(s)", len(decoder), n_blocks)
    return decoder, encoder


def check_byte_coverage(encoder: dict[bytes, int]) -> None:
    """每个字节值 0-255 都必须有且仅有一个单字节 token，否则编码不再是全函数。"""
    missing = [b for b in range(256) if bytes([b]) not in encoder]
    if missing:
        preview = ", ".join(str(b) for b in missing[:8])
        raise LoadError(f"Vocabulary is missing {len(missing)} single-byte token(s): {preview}")


def dump_ranks(ranks: dict[bytes, int], sentinel: str = "!") -> str:
    """
    load_ranks 的逆操作：把 bytes -> rank 写成紧凑格式。
    连续的 rank 合成一个块，每个块占一行。
    """
    lines = []
    block: list[str] = []
    prev = None
    for token, rank in sorted(ranks.items(), key=lambda kv: kv[1]):
        if prev is None or rank != prev + 1:
            if block:
                lines.append(" ".join(block))
            block = [sentinel, str(rank)]
        block.append(base64.b64encode(token).decode("ascii"))
        prev = rank
    if block:
        lines.append(" ".join(block))
    return "\n".join(lines)
