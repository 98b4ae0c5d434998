"""
Poseidon hash over the BN254 scalar field, circomlib parameters.

x^5 S-box, 8 full rounds, and circomlib's partial-round count per width. The
round constants and Cauchy MDS matrix are regenerated from the reference Grain
LFSR (field=1, sbox=0, n=254), which is how circomlib's constant tables were
produced. Each width is generated once and cached.

poseidon_hash() adds zkLogin's rule for more than 16 inputs: hash each half,
then hash the two digests.
"""

from __future__ import annotations

from collections import deque
from functools import lru_cache
from typing import Sequence

BN254_FIELD_SIZE = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FULL_ROUNDS = 8
PARTIAL_ROUNDS = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)
MAX_WIDTH_INPUTS = len(PARTIAL_ROUNDS)
FIELD_BITS = 254


class _Grain:
    """Self-shrinking 80-bit Grain LFSR seeded with the instance parameters."""

    def __init__(self, width: int, rounds_f: int, rounds_p: int) -> None:
        seed = f"{1:02b}{0:04b}{FIELD_BITS:012b}{width:012b}{rounds_f:010b}{rounds_p:010b}" + "1" * 30
        self._bits = deque(int(b) for b in seed)
        for _ in range(160):
            self._step()

    def _step(self) -> int:
        b = self._bits
        new_bit = b[62] ^ b[51] ^ b[38] ^ b[23] ^ b[13] ^ b[0]
        b.popleft()
        b.append(new_bit)
        return new_bit

    def _bit(self) -> int:
        while self._step() == 0:
            self._step()
        return self._step()

    def random_bits(self, n: int = FIELD_BITS) -> int:
        value = 0
        for _ in range(n):
            value = (value << 1) | self._bit()
        return value

    def field_element(self) -> int:
        """Rejection-sampled, as for round constants."""
        value = self.random_bits()
        while value >= BN254_FIELD_SIZE:
            value = self.random_bits()
        return value


@lru_cache(maxsize=None)
def _parameters(width: int) -> tuple[tuple[int, ...], tuple[tuple[int, ...], ...], int]:
    rounds_p = PARTIAL_ROUNDS[width - 2]
    grain = _Grain(width, FULL_ROUNDS, rounds_p)
    constants = tuple(grain.field_element() for _ in range((FULL_ROUNDS + rounds_p) * width))
    while True:
        samples = [grain.random_bits() % BN254_FIELD_SIZE for _ in range(2 * width)]
        while len(set(samples)) != len(samples):
            samples = [grain.random_bits() % BN254_FIELD_SIZE for _ in range(2 * width)]
        xs, ys = samples[:width], samples[width:]
        if any((x + y) % BN254_FIELD_SIZE == 0 for x in xs for y in ys):
            continue
        mds = tuple(tuple(pow(x + y, -1, BN254_FIELD_SIZE) for y in ys) for x in xs)
        return constants, mds, rounds_p


def _pow5(x: int) -> int:
    return pow(x, 5, BN254_FIELD_SIZE)


def poseidon(inputs: Sequence[int]) -> int:
    """circomlib Poseidon of 1..16 field elements (capacity element 0, output state[0])."""
    if not 1 <= len(inputs) <= MAX_WIDTH_INPUTS:
        raise ValueError(f"Poseidon takes 1 to {MAX_WIDTH_INPUTS} inputs, got {len(inputs)}")
    for x in inputs:
        if not 0 <= x < BN254_FIELD_SIZE:
            raise ValueError("Poseidon input is not a BN254 field element")
    width = len(inputs) + 1
    constants, mds, rounds_p = _parameters(width)
    half_f = FULL_ROUNDS // 2
    state = [0, *inputs]
    for r in range(FULL_ROUNDS + rounds_p):
        state = [(s + constants[r * width + i]) % BN254_FIELD_SIZE for i, s in enumerate(state)]
        if r < half_f or r >= half_f + rounds_p:
            state = [_pow5(s) for s in state]
        else:
            state[0] = _pow5(state[0])
        state = [sum(m * s for m, s in zip(row, state)) % BN254_FIELD_SIZE for row in mds]
    return state[0]


def poseidon_hash(inputs: Sequence[int]) -> int:
    """zkLogin's Poseidon: up to 16 inputs directly, up to 32 as a hash of two halves."""
    if len(inputs) <= MAX_WIDTH_INPUTS:
        return poseidon(inputs)
    if len(inputs) <= 2 * MAX_WIDTH_INPUTS:
        return poseidon([poseidon(inputs[:MAX_WIDTH_INPUTS]), poseidon_hash(inputs[MAX_WIDTH_INPUTS:])])
    raise ValueError(f"Poseidon hash takes at most {2 * MAX_WIDTH_INPUTS} inputs")
