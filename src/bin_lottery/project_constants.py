"""
Project-wide immutable parameters for the bin lottery.

These values define the public rules of the game.
Changing them changes leaf hashes and proof validity and MUST be publicly announced.
"""

# Contract identity, saved at instantiation and checked on migration
CONTRACT_NAME = "bin-lottery:merkle-airdrop-game"
CONTRACT_VERSION = "0.1.0"

# Leaf and node hash; off-chain tree generators must use the same one
HASH_NAME = "sha256"

# Merkle roots and proof elements are 32-byte digests (64 hex chars)
ROOT_BYTES = 32

# Amounts are unsigned 128-bit integers
UINT128_MAX = 2**128 - 1

# Native denom assumed for a ticket price given without one
DEFAULT_DENOM = "lamports"

# Solana-style addresses are base58-encoded 32-byte public keys
ADDRESS_BYTES = 32
