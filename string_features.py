import logging
import re

from config import MIN_STRING_LENGTH, STRING_ENCODING

logger = logging.getLogger(__name__)

# --- Pre-compiled Regex ---
# Runs of printable ASCII (space through tilde) or tab
STRING_RUN_REGEX = re.compile(r"[ -~\t]{%d,}" % MIN_STRING_LENGTH)

# Characters removed from every line before scanning
STRIPPED_CHARS_TABLE = str.maketrans("", "", "^)-")

MALICIOUS_MARKER = "malicious"


def extract_strings(data) -> str:
    """
    Condenses raw bytes into a single "strings-style" text feature.

    The bytes are decoded as code page 1252, split into lines, stripped of
    '^', ')' and '-', and every maximal run of at least MIN_STRING_LENGTH
    printable characters is appended to the output with no separator.
    Undecodable bytes become replacement characters and simply end a run.
    """
    if not data:
        return ""

    text = bytes(data).decode(STRING_ENCODING, errors="replace")
    tokens = []
    for line in text.splitlines():
        if not line:
            continue
        line = line.translate(STRIPPED_CHARS_TABLE)
        for match in STRING_RUN_REGEX.finditer(line):
            token = match.group(0)
            if token and not token.isspace():
                tokens.append(token)

    logger.debug(f"Extracted {len(tokens)} string tokens from {len(data)} bytes.")
    return "".join(tokens)


def malicious_label_from_filename(filename) -> int:
    """1 if the training filename marks the sample as malicious, else 0."""
    return int(MALICIOUS_MARKER in (filename or "").lower())
