"""
Near-duplicate helpers for perceptual hashes (pHash)
Compares hashes by Hamming distance
"""

PHASH_BITS = 64


def calculate_hamming_distance(phash_hex_a: str, phash_hex_b: str) -> int:
    """
    Calculate the exact Hamming distance between two pHash values.

    Args:
        phash_hex_a: First image's pHash as hex string
        phash_hex_b: Second image's pHash as hex string

    Returns:
        Hamming distance (number of different bits); the maximum
        distance when either value is missing or not hex
    """
    if not phash_hex_a or not phash_hex_b:
        return PHASH_BITS

    try:
        a, b = int(phash_hex_a, 16), int(phash_hex_b, 16)
        return bin(a ^ b).count("1")
    except (ValueError, TypeError):
        return PHASH_BITS


def is_near_duplicate(phash_hex_a: str, phash_hex_b: str, threshold: int = 8) -> bool:
    """
    Check if two perceptual hashes represent near-duplicate images.

    Args:
        phash_hex_a: First image's pHash as hex string
        phash_hex_b: Second image's pHash as hex string
        threshold: Maximum Hamming distance to consider as duplicate (default: 8)

    Returns:
        True if images are considered near-duplicates
    """
    if not phash_hex_a or not phash_hex_b:
        return False
    return calculate_hamming_distance(phash_hex_a, phash_hex_b) <= threshold
