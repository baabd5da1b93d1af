import base64

import pytest

from bpe_basics.layers.config import ENDOFTEXT, GPT2_PATTERN
from bpe_basics.layers.tokenizer import Tokenizer

MERGES = [b"he", b"ll", b"hell", b"hello", b" w", b"or", b" wor", b"in", b"ing", b"aa", b"aaaa"]

SPECIAL_TOKENS = {ENDOFTEXT: 1000, "<|fim|>": 1002}


def make_ranks(merges=MERGES):
    ranks = {bytes([i]): i for i in range(256)}
    for token in merges:
        ranks[token] = len(ranks)
    return ranks


def byte_block(offset=0):
    fields = [base64.b64encode(bytes([i])).decode("ascii") for i in range(256)]
    return f"! {offset} " + " ".join(fields)


@pytest.fixture
def ranks():
    return make_ranks()


@pytest.fixture
def tokenizer(ranks):
    return Tokenizer(GPT2_PATTERN, ranks, SPECIAL_TOKENS, name="test")
