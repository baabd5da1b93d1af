import pytest

from bpe_basics.layers.config import CL100K_PATTERN, ENDOFTEXT, GPT2_PATTERN
from bpe_basics.layers.errors import DisallowedSpecialTokenError, LoadError, SegmentationError
from bpe_basics.layers.segmenter import Piece, Segmenter
from bpe_basics.layers.special import SpecialTokenRegistry

from conftest import SPECIAL_TOKENS


@pytest.fixture
def segmenter():
    return Segmenter(GPT2_PATTERN, SpecialTokenRegistry(SPECIAL_TOKENS))


def pieces_text(text, items):
    return [text[item.start:item.end] if isinstance(item, Piece) else item for item in items]


def test_split_plain_text(segmenter):
    text = "hello world"
    assert segmenter.split(text) == [Piece(0, 5), Piece(5, 11)]


@pytest.mark.parametrize("pattern", [GPT2_PATTERN, CL100K_PATTERN])
def test_pieces_are_contiguous_and_exhaustive(pattern):
    segmenter = Segmenter(pattern, SpecialTokenRegistry({}))
    text = "I'm here!  Numbers 12345,\n\n\tand ünïcödé 日本語  "
    pieces = list(segmenter.split_ordinary(text))
    assert pieces[0].start == 0
    assert pieces[-1].end == len(text)
    for a, b in zip(pieces, pieces[1:]):
        assert a.end == b.start
    assert "".join(text[p.start:p.end] for p in pieces) == text


def test_allowed_special_is_a_boundary(segmenter):
    text = "hi" + ENDOFTEXT + " there"
    items = segmenter.split(text, allowed_special={ENDOFTEXT})
    assert pieces_text(text, items) == ["hi", 1000, " there"]


def test_allowed_all(segmenter):
    text = ENDOFTEXT + "<|fim|>"
    assert segmenter.split(text, allowed_special="all") == [1000, 1002]


def test_disallowed_special_fails_before_any_output(segmenter):
    text = "héllo " + ENDOFTEXT
    with pytest.raises(DisallowedSpecialTokenError) as exc_info:
        segmenter.split(text)
    err = exc_info.value
    assert err.token == ENDOFTEXT
    assert err.position == 6
    assert err.byte_offset == 7


def test_disallowed_wins_over_allowed(segmenter):
    with pytest.raises(DisallowedSpecialTokenError):
        segmenter.split(ENDOFTEXT, allowed_special="all", disallowed_special={ENDOFTEXT})


def test_disallowed_all_excludes_allowed(segmenter):
    text = ENDOFTEXT + "<|fim|>"
    with pytest.raises(DisallowedSpecialTokenError) as exc_info:
        segmenter.split(text, allowed_special={ENDOFTEXT})
    assert exc_info.value.token == "<|fim|>"
    assert exc_info.value.byte_offset == len(ENDOFTEXT)


def test_neither_allowed_nor_disallowed_is_plain_text(segmenter):
    text = "a" + ENDOFTEXT + "<|fim|>"
    items = segmenter.split(text, allowed_special={"<|fim|>"}, disallowed_special=())
    assert items[-1] == 1002
    plain = pieces_text(text, items[:-1])
    assert "".join(plain) == "a" + ENDOFTEXT
    assert all(isinstance(p, str) for p in plain)


def test_skipped_literal_resumes_one_character_after_its_start():
    segmenter = Segmenter(GPT2_PATTERN, SpecialTokenRegistry({"ab": 1000, "b": 1001}))
    items = segmenter.split("ab", allowed_special={"b"}, disallowed_special=())
    assert pieces_text("ab", items) == ["a", 1001]


def test_uncovered_segment_raises():
    segmenter = Segmenter(r"[a-z]+", SpecialTokenRegistry({}))
    with pytest.raises(SegmentationError) as exc_info:
        list(segmenter.split_ordinary("ab cd"))
    assert exc_info.value.position == 2


def test_uncovered_tail_raises():
    segmenter = Segmenter(r"[a-z]+", SpecialTokenRegistry({}))
    with pytest.raises(SegmentationError):
        segmenter.split("abc!")


def test_invalid_pattern():
    with pytest.raises(LoadError):
        Segmenter("(", SpecialTokenRegistry({}))


def test_resolve_special(segmenter):
    names = frozenset(SPECIAL_TOKENS)
    assert segmenter.resolve_special((), "all") == (frozenset(), names)
    assert segmenter.resolve_special("all", "all") == (names, frozenset())
    assert segmenter.resolve_special({ENDOFTEXT}, ()) == (frozenset({ENDOFTEXT}), frozenset())
    assert segmenter.resolve_special({"<|unknown|>"}, "all") == (frozenset(), names)
    with pytest.raises(ValueError):
        segmenter.resolve_special("none", "all")
