import enum
import logging
import unicodedata
from dataclasses import dataclass
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

# --- Header Signatures ---
MZ_SIGNATURE = "MZ" # DOS/PE executables
PK_SIGNATURE = "PK" # ZIP containers (docx, xlsx, jar, ...)
SIGNATURE_LENGTH = 2

# Control characters that still count as text
TEXT_CONTROL_CHARS = frozenset("\r\n")


class Category(enum.IntEnum):
    EXECUTABLE = 0
    DOCUMENT = 1
    SCRIPT = 2


# Canonical (is_binary, is_mz_header, is_pk_header) per category.
# Used only to probe a trained clustering model, never for real samples.
CATEGORY_PROFILES = {
    Category.EXECUTABLE: (1, 1, 0),
    Category.DOCUMENT: (1, 0, 1),
    Category.SCRIPT: (0, 0, 0),
}

# Filename substring -> label, checked in order
FILENAME_LABEL_RULES = (
    ("ps1", Category.SCRIPT),
    ("exe", Category.EXECUTABLE),
    ("doc", Category.DOCUMENT),
)

FEATURE_NAMES = ("is_binary", "is_mz_header", "is_pk_header")


@dataclass(frozen=True)
class SignatureFeatureVector:
    label: Optional[Category]
    is_binary: int
    is_mz_header: int
    is_pk_header: int

    def features(self):
        return (self.is_binary, self.is_mz_header, self.is_pk_header)

    def to_array(self):
        """Feature flags as the float32 row the clustering model is fitted on."""
        return np.array(self.features(), dtype=np.float32)

    def to_record(self):
        record = dict(zip(FEATURE_NAMES, self.features()))
        record["label"] = None if self.label is None else int(self.label)
        return record

    def __str__(self):
        flags = f"{self.is_binary}, {self.is_mz_header}, {self.is_pk_header}"
        if self.label is None:
            return flags
        return f"{int(self.label)}, {flags}"


def has_binary_content(data: bytes) -> bool:
    """True when the UTF-8 view of the bytes holds a control char other than CR/LF."""
    text = bytes(data).decode("utf-8", errors="replace")
    return any(
        unicodedata.category(c) == "Cc" and c not in TEXT_CONTROL_CHARS
        for c in text
    )


def has_header_bytes(data: bytes, signature: str) -> bool:
    if len(data) < SIGNATURE_LENGTH:
        return False
    header = bytes(data[:SIGNATURE_LENGTH]).decode("utf-8", errors="replace")
    return header == signature


def label_from_filename(filename) -> Optional[Category]:
    """Weak label from a training filename, or None when nothing matches."""
    if not filename:
        return None
    for substring, category in FILENAME_LABEL_RULES:
        if substring in filename:
            return category
    return None


def from_bytes(data: bytes, label: Optional[Category] = None) -> SignatureFeatureVector:
    if data is None:
        data = b""
    return SignatureFeatureVector(
        label=label,
        is_binary=int(has_binary_content(data)),
        is_mz_header=int(has_header_bytes(data, MZ_SIGNATURE)),
        is_pk_header=int(has_header_bytes(data, PK_SIGNATURE)),
    )


def from_bytes_for_training(data: bytes, filename) -> SignatureFeatureVector:
    label = label_from_filename(filename)
    if label is None:
        logger.debug(f"No label substring found in training filename: {filename}")
    return from_bytes(data, label=label)


def from_category(category: Category) -> SignatureFeatureVector:
    """Builds the synthetic exemplar for a category from CATEGORY_PROFILES."""
    is_binary, is_mz_header, is_pk_header = CATEGORY_PROFILES[category]
    return SignatureFeatureVector(
        label=Category(category),
        is_binary=is_binary,
        is_mz_header=is_mz_header,
        is_pk_header=is_pk_header,
    )
