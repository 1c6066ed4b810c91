"""Append-only Merkle accumulator mirroring the pool's state tree.

Tree Structure:
    - Level 0 holds the leaves (note commitments) in insertion order
    - Each level pairs adjacent nodes left to right with Hash2
    - An unpaired last node is promoted unchanged to the next level
      (never duplicated, never hashed with a zero)
    - The root is the single node of the top level; an empty tree has
      root 0 and depth 0

Proofs:
    The raw sibling list has one entry per actual level. A level where the
    node had no sibling contributes 0. The list is then right-padded with 0
    to the circuit depth, so every exported proof has the same length.
    When recomputing the root, a 0 sibling means "carry the node upward".

Example:
    >>> tree = MerkleTree([10, 20, 30])
    >>> proof = tree.prove(2)
    >>> len(proof.siblings)
    32
    >>> proof.verify(tree.root)
    True
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ppcore.exceptions import (
    InvalidInputError,
    InvalidLeafIndexError,
    TreeHeightExceededError,
)
from ppcore.utils.encoding import ensure_field_element
from ppcore.utils.hash import hash2

logger = logging.getLogger(__name__)

EMPTY_NODE = 0
CIRCUIT_DEPTH = 32


@dataclass
class MerkleProof:
    """Inclusion proof handed to the proving system."""

    leaf: int
    leaf_index: int
    siblings: List[int]  # padded to the circuit depth
    root: int
    depth: int = 0  # actual tree depth when the proof was built

    def compute_root(self) -> int:
        """Recompute the root from leaf and siblings."""
        node = self.leaf
        position = self.leaf_index

        for sibling in self.siblings:
            if sibling != EMPTY_NODE:
                if position & 1:
                    node = hash2(sibling, node)
                else:
                    node = hash2(node, sibling)
            position >>= 1

        return node

    def verify(self, root: Optional[int] = None) -> bool:
        """Verify proof against root (defaults to the stored root)."""
        expected = self.root if root is None else root
        try:
            return self.compute_root() == expected
        except InvalidInputError:
            return False

    def to_dict(self) -> dict:
        """Decimal-string form expected by circuit input builders."""
        return {
            "leaf": str(self.leaf),
            "leafIndex": self.leaf_index,
            "siblings": [str(s) for s in self.siblings],
            "root": str(self.root),
            "depth": self.depth,
        }


class MerkleTree:
    """
    Incremental Merkle tree with unpaired-node promotion.

    Mutated only by appending leaves. Insertion updates the path from the
    new leaf to the root in O(depth).
    """

    def __init__(self, leaves: Optional[Iterable[int]] = None, max_depth: int = CIRCUIT_DEPTH):
        """
        Initialize tree, optionally from an existing leaf sequence.

        Args:
            leaves: Initial leaves in tree order
            max_depth: Circuit depth proofs are padded to (default 32)

        Raises:
            ValueError: If max_depth is invalid
        """
        if max_depth < 1 or max_depth > 64:
            raise ValueError("Tree depth must be between 1 and 64")

        self.max_depth = max_depth
        self.max_leaves = 2**max_depth
        self._levels: List[List[int]] = [[]]

        if leaves is not None:
            self._build(list(leaves))

    @staticmethod
    def _check_leaf(leaf: int) -> int:
        ensure_field_element(leaf, "leaf")
        if leaf == EMPTY_NODE:
            raise InvalidInputError("Leaf cannot be zero (reserved for empty nodes)")
        return leaf

    def _build(self, leaves: List[int]) -> None:
        """Build all levels from scratch."""
        for leaf in leaves:
            self._check_leaf(leaf)
        if len(leaves) > self.max_leaves:
            raise TreeHeightExceededError(f"Tree is full (max {self.max_leaves} leaves)")

        levels = [list(leaves)]
        while len(levels[-1]) > 1:
            current = levels[-1]
            upper = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    upper.append(hash2(current[i], current[i + 1]))
                else:
                    upper.append(current[i])
            levels.append(upper)
        self._levels = levels
        logger.debug("Built tree with %d leaves (depth %d)", len(leaves), self.depth)

    def insert(self, leaf: int) -> int:
        """
        Append a leaf and return its index.

        Raises:
            InvalidInputError: If leaf is zero or outside the field
            TreeHeightExceededError: If the tree would exceed max_depth
        """
        self._check_leaf(leaf)
        if len(self) >= self.max_leaves:
            raise TreeHeightExceededError(f"Tree is full (max {self.max_leaves} leaves)")

        leaf_index = len(self._levels[0])
        self._levels[0].append(leaf)

        # The new leaf and all its ancestors are the last node of their level,
        # so a left-positioned node never has a right sibling here.
        node = leaf
        position = leaf_index
        level = 0
        while len(self._levels[level]) > 1:
            if position & 1:
                node = hash2(self._levels[level][position - 1], node)
            parent = position >> 1
            if level + 1 == len(self._levels):
                self._levels.append([])
            upper = self._levels[level + 1]
            if parent < len(upper):
                upper[parent] = node
            else:
                upper.append(node)
            position = parent
            level += 1

        return leaf_index

    def insert_many(self, leaves: Iterable[int]) -> List[int]:
        """Append leaves in order; returns their indices."""
        return [self.insert(leaf) for leaf in leaves]

    @property
    def leaves(self) -> List[int]:
        """Copy of the leaf sequence."""
        return list(self._levels[0])

    @property
    def levels(self) -> List[List[int]]:
        """Copy of all levels, leaves first."""
        return [list(level) for level in self._levels]

    @property
    def root(self) -> int:
        """Current root (0 for an empty tree)."""
        if not self._levels[0]:
            return EMPTY_NODE
        return self._levels[-1][0]

    @property
    def depth(self) -> int:
        """Number of hashing levels above the leaves."""
        return len(self._levels) - 1

    def index_of(self, leaf: int) -> Optional[int]:
        """First index holding leaf, or None."""
        try:
            return self._levels[0].index(leaf)
        except ValueError:
            return None

    def get_path(self, leaf_index: int) -> List[int]:
        """
        Return the unpadded sibling list for a leaf.

        Length equals the tree depth; 0 marks a level where the node was
        promoted without a sibling.

        Raises:
            InvalidLeafIndexError: If leaf index is invalid
        """
        if isinstance(leaf_index, bool) or not isinstance(leaf_index, int):
            raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index!r}")
        if leaf_index < 0 or leaf_index >= len(self):
            raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")

        path = []
        position = leaf_index
        for level in self._levels[:-1]:
            sibling_position = position ^ 1
            path.append(level[sibling_position] if sibling_position < len(level) else EMPTY_NODE)
            position >>= 1
        return path

    def prove(self, leaf_index: int) -> MerkleProof:
        """
        Build an inclusion proof padded to max_depth siblings.

        Raises:
            InvalidLeafIndexError: If leaf index is invalid
        """
        path = self.get_path(leaf_index)
        padded = path + [EMPTY_NODE] * (self.max_depth - len(path))
        return MerkleProof(
            leaf=self._levels[0][leaf_index],
            leaf_index=leaf_index,
            siblings=padded,
            root=self.root,
            depth=self.depth,
        )

    def verify_proof(self, proof: MerkleProof) -> bool:
        """Check a proof against the current root."""
        return proof.verify(self.root)

    def get_state(self) -> dict:
        """
        Get the current state of the tree for serialization.

        Returns:
            dict: Tree state including leaves, depth, and root
        """
        return {
            "max_depth": self.max_depth,
            "depth": self.depth,
            "num_leaves": len(self),
            "leaves": [str(leaf) for leaf in self._levels[0]],
            "root": str(self.root),
        }

    def __len__(self) -> int:
        """Return the number of leaves in the tree."""
        return len(self._levels[0])

    def __repr__(self) -> str:
        """String representation of the tree."""
        return f"MerkleTree(depth={self.depth}, leaves={len(self)}, root={str(self.root)[:16]}...)"


def build_tree(leaves: Iterable[int], max_depth: int = CIRCUIT_DEPTH) -> MerkleTree:
    """Convenience constructor used by callers mirroring chain state."""
    return MerkleTree(leaves, max_depth=max_depth)
