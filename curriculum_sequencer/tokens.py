"""
Token estimates for chunk sizing and prompt budgets.
"""

import logging
from functools import lru_cache

import tiktoken

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


@lru_cache(maxsize=4)
def get_tokenizer(encoding_name: str) -> "tiktoken.Encoding":
    logger.debug(f"Initialized tiktoken tokenizer: {encoding_name}")
    return tiktoken.get_encoding(encoding_name)


def count_tokens(text: str, encoding_name: str = "cl100k_base") -> int:
    """Token count of ``text``; with no encoding name, a characters/4 estimate."""
    if not text:
        return 0
    if not encoding_name:
        return -(-len(text) // CHARS_PER_TOKEN)
    return len(get_tokenizer(encoding_name).encode(text, disallowed_special=()))
