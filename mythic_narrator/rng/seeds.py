"""Seed derivation.

Every random decision in the narrator derives from a seed that is a pure
function of declared inputs: campaign seed, session id and event id. No
wall-clock entropy is ever folded in, so a call replays bit-for-bit.
"""

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
UINT32_MASK = 0xFFFFFFFF
SEED_MASK = 0x7FFFFFFF  # 31-bit seed space


def hash32(text: str) -> int:
    """FNV-1a 32-bit hash of a string.

    Args:
        text: Input string.

    Returns:
        Unsigned 32-bit hash.

    Examples:
        >>> hash32("")
        2166136261
    """
    value = FNV_OFFSET_BASIS
    for char in text:
        value ^= ord(char)
        value = (value * FNV_PRIME) & UINT32_MASK
    return value


def build_seed_key(campaign_seed: str, session_id: str, event_id: str) -> str:
    """Join the declared seed inputs into the canonical seed key."""
    return f"{campaign_seed}::{session_id}::{event_id}"


def build_narration_seed(campaign_seed: str, session_id: str, event_id: str) -> int:
    """Hash (campaign seed, session id, event id) into the 31-bit seed space.

    Args:
        campaign_seed: Campaign-level seed string.
        session_id: Session identifier.
        event_id: Event identifier for this invocation.

    Returns:
        Non-negative integer below 2**31.
    """
    return hash32(build_seed_key(campaign_seed, session_id, event_id)) & SEED_MASK


def stable_int(seed_key: str, salt: str = "") -> int:
    """Deterministic unsigned integer for a key and salt."""
    return hash32(f"{seed_key}::{salt}")


def stable_float(seed_key: str, salt: str = "") -> float:
    """Deterministic float in [0, 1) for a key and salt."""
    return (stable_int(seed_key, salt) % 1_000_000) / 1_000_000
