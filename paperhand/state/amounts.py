"""
Shared scalar types for persisted records.
"""

# Type aliases
AccountId = str  # 32-byte id as 0x-prefixed lowercase hex
Amount = int  # Non-negative integer, u64 range

U64_MAX = (1 << 64) - 1


def require_u64(name: str, value: int) -> None:
    """Reject anything that is not an int in [0, U64_MAX]."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    if value > U64_MAX:
        raise ValueError(f"{name} exceeds u64 range: {value}")
