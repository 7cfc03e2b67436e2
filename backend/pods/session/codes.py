"""Room code generation."""

from pods.pairing import rng

# Uppercase letters and digits without look-alikes (I, L, O, 0, 1).
ROOM_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def generate_room_code(length: int) -> str:
    """Random room code drawn from the system CSPRNG."""
    if length < 1:
        raise ValueError(f"code length must be positive, got {length}")
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    return code.strip().upper()
