"""Content fingerprints used for cheap change detection."""

import hashlib

FINGERPRINT_PREFIX = "sha256:"


def fingerprint(content: str) -> str:
    """Return a deterministic digest of *content*.

    No normalisation is applied: any difference in the text, including
    line endings and trailing whitespace, changes the result. The prefix is
    a label only and callers must not treat the value as an integrity check.
    """
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return FINGERPRINT_PREFIX + digest
