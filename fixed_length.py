import logging

import pandas as pd

from config import FEATURE_LENGTH

logger = logging.getLogger(__name__)


def resize_vector(vector, target_length):
    """
    Truncates or zero-pads an integer vector to exactly target_length elements.
    """
    if target_length < 0:
        raise ValueError(f"target_length must be non-negative, got {target_length}")

    values = list(vector)
    current_len = len(values)
    if current_len >= target_length:
        if current_len > target_length:
            logger.debug(f"Truncating vector from {current_len} to {target_length} elements.")
        return values[:target_length]
    return values + [0] * (target_length - current_len)


def load_word_index(csv_path):
    """Loads a headerless `word,id` CSV into a word -> id dictionary."""
    df = pd.read_csv(
        csv_path,
        header=None,
        names=["word", "id"],
        dtype={"word": str, "id": "int64"},
        keep_default_na=False,
    )
    word_index = {word: int(word_id) for word, word_id in zip(df["word"], df["id"])}
    logger.info(f"Loaded {len(word_index)} words from {csv_path}")
    return word_index


def encode_text(text, word_index, target_length=FEATURE_LENGTH):
    """Maps whitespace-separated words to ids (unknown words -> 0), then resizes."""
    ids = [word_index.get(word, 0) for word in (text or "").split()]
    return resize_vector(ids, target_length)
