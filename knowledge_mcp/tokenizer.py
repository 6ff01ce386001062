"""Query and field tokenization."""

import re
from typing import List

# \w is Unicode-aware: letters, digits and underscore survive.
_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> List[str]:
    """Split text into lower-cased word tokens.

    Every character that is not a letter, digit, underscore or whitespace is
    replaced by a space before splitting, so ``"camelCase-vars"`` becomes
    ``["camelcase", "vars"]``. Never fails; an all-punctuation string gives
    an empty list.
    """
    return _NON_WORD.sub(" ", text.lower()).split()
