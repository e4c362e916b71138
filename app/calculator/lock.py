# ==============================================================================
# app/calculator/lock.py
# ------------------------------------------------------------------------------
# Build-time guard for the tier resolver: the sha256 of tiers.py (line endings
# normalised to LF) must equal the hash stored in commission.lock.
# ==============================================================================

import hashlib
import os

LOCKED_MODULE = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'tiers.py')


class CommissionLockError(Exception):
    """The locked module does not match its pinned hash."""


def hash_file(path):
    with open(path, encoding='utf-8', newline='') as fh:
        content = fh.read()
    normalized = content.replace('\r\n', '\n')
    return hashlib.sha256(normalized.encode('utf-8')).hexdigest()

def verify_lock(lock_path, target_path=LOCKED_MODULE):
    """
    Returns the digest when target_path matches the hash in lock_path.

    Raises:
        CommissionLockError: lock file missing or empty, or hash mismatch.
    """
    try:
        with open(lock_path, encoding='utf-8') as fh:
            expected = fh.read().strip()
    except OSError as e:
        raise CommissionLockError(f"Failed to read lock file {lock_path}: {e}") from e

    if not expected:
        raise CommissionLockError(f"Missing expected hash in {lock_path}")

    actual = hash_file(target_path)
    if actual != expected:
        raise CommissionLockError(f"expected={expected} actual={actual}")
    return actual
