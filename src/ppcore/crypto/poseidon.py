"""
Poseidon hash over the BN254 scalar field (circomlib-compatible).

The permutation follows the circomlib reference construction:

    state = [0, x_1, ..., x_n]          (width t = n + 1)
    for each round r:
        state += C[r]                   (round constants)
        state = S-box(state)            (x^5 on every cell in full rounds,
                                         on state[0] only in partial rounds)
        state = M * state               (MDS mix)
    output = state[0]

Parameters:
    - Full rounds: 8 (4 before and 4 after the partial rounds)
    - Partial rounds: 56, 57, 56 for t = 2, 3, 4
    - S-box: x^5

Round constants and the MDS matrix are produced by the Grain LFSR procedure
of the Poseidon reference parameter script (field=1, sbox=0, n=254). They are
generated lazily per width and cached, so the first hash of each arity pays a
one-off setup cost.

Example:
    >>> from ppcore.crypto.poseidon import poseidon
    >>> poseidon([1, 2])
    7853200120776062878684798364095072458815029376092732009249414926327459813530
"""

from collections import deque
from functools import lru_cache
from typing import Iterator, List, Sequence, Tuple

SNARK_SCALAR_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FIELD_BITS = 254
FULL_ROUNDS = 8
PARTIAL_ROUNDS = {2: 56, 3: 57, 4: 56}

# Grain LFSR taps, indexed from the oldest bit
_GRAIN_TAPS = (62, 51, 38, 23, 13, 0)


def _bits(value: int, width: int) -> List[int]:
    return [int(b) for b in bin(value)[2:].zfill(width)]


def _grain_bits(t: int, full_rounds: int, partial_rounds: int) -> Iterator[int]:
    """
    Yield the self-shrinking Grain LFSR output for the given parameters.

    The 80-bit register is seeded with the parameter encoding, clocked 160
    times, then bits are emitted in pairs: a leading 1 emits the second bit,
    a leading 0 discards it.
    """
    seed = (
        _bits(1, 2)  # prime field
        + _bits(0, 4)  # x^alpha S-box
        + _bits(FIELD_BITS, 12)
        + _bits(t, 12)
        + _bits(full_rounds, 10)
        + _bits(partial_rounds, 10)
        + [1] * 30
    )
    register = deque(seed, maxlen=80)

    def clock() -> int:
        new_bit = 0
        for tap in _GRAIN_TAPS:
            new_bit ^= register[tap]
        register.append(new_bit)
        return new_bit

    for _ in range(160):
        clock()

    while True:
        first = clock()
        second = clock()
        if first == 1:
            yield second


def _random_field_bits(stream: Iterator[int], n: int) -> int:
    value = 0
    for _ in range(n):
        value = (value << 1) | next(stream)
    return value


@lru_cache(maxsize=None)
def get_parameters(t: int) -> Tuple[Tuple[int, ...], Tuple[Tuple[int, ...], ...]]:
    """
    Return (round_constants, mds_matrix) for state width t.

    Args:
        t: State width (arity + 1), 2 to 4

    Returns:
        Tuple of flat round constants ((R_F + R_P) * t entries) and the
        t x t MDS matrix as nested tuples.

    Raises:
        ValueError: If the width is unsupported
    """
    if t not in PARTIAL_ROUNDS:
        raise ValueError(f"Unsupported Poseidon width: {t}")

    partial_rounds = PARTIAL_ROUNDS[t]
    stream = _grain_bits(t, FULL_ROUNDS, partial_rounds)

    constants = []
    for _ in range((FULL_ROUNDS + partial_rounds) * t):
        candidate = _random_field_bits(stream, FIELD_BITS)
        while candidate >= SNARK_SCALAR_FIELD:
            candidate = _random_field_bits(stream, FIELD_BITS)
        constants.append(candidate)

    # Cauchy matrix M[i][j] = 1 / (x_i + y_j)
    while True:
        samples = [
            _random_field_bits(stream, FIELD_BITS) % SNARK_SCALAR_FIELD
            for _ in range(2 * t)
        ]
        if len(set(samples)) != len(samples):
            continue
        xs, ys = samples[:t], samples[t:]
        if any((x + y) % SNARK_SCALAR_FIELD == 0 for x in xs for y in ys):
            continue
        break

    mds = tuple(
        tuple(pow(x + y, SNARK_SCALAR_FIELD - 2, SNARK_SCALAR_FIELD) for y in ys)
        for x in xs
    )
    return tuple(constants), mds


def poseidon(inputs: Sequence[int]) -> int:
    """
    Hash 1 to 3 field elements.

    Inputs are taken as-is; range checks belong to the caller
    (see ppcore.utils.hash).

    Args:
        inputs: Field elements in [0, SNARK_SCALAR_FIELD)

    Returns:
        int: Field element digest
    """
    t = len(inputs) + 1
    constants, mds = get_parameters(t)
    partial_rounds = PARTIAL_ROUNDS[t]
    half_full = FULL_ROUNDS // 2
    p = SNARK_SCALAR_FIELD

    state = [0] + [int(x) for x in inputs]

    for r in range(FULL_ROUNDS + partial_rounds):
        offset = r * t
        state = [(s + constants[offset + i]) % p for i, s in enumerate(state)]

        if r < half_full or r >= half_full + partial_rounds:
            state = [pow(s, 5, p) for s in state]
        else:
            state[0] = pow(state[0], 5, p)

        state = [sum(row[j] * state[j] for j in range(t)) % p for row in mds]

    return state[0]
