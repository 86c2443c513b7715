"""Bounding Volume Hierarchy construction (host side).

The hierarchy is a binary tree built top-down over the bounding boxes of the
scene primitives with a median split:

1. Enclose the boxes of the current index range [start, end).
2. Split along the longest axis of that box (higher axis wins ties).
3. One object: both children alias the same leaf.
4. Two objects: one leaf per child.
5. Otherwise: stable-sort the range by the minimum of the split axis and
   recurse on both halves around the arithmetic midpoint.

Every internal node therefore has exactly two children. Node boxes are
computed once and never updated; the scene is static.

For the device, the tree is flattened in pre-order (see flatten_bvh). Each
entry stores an escape link: the index of the first entry after its subtree.
Traversal needs no stack: a hit internal node continues to the next entry
(its left child), while a missed node or a leaf continues at its escape link.

Example:
    >>> from bvhtracer.geometry.aabb import AABB
    >>> from bvhtracer.geometry.bvh import build_bvh, flatten_bvh
    >>> boxes = [AABB.from_points((i, 0, 0), (i + 1, 1, 1)) for i in range(5)]
    >>> root = build_bvh(boxes)
    >>> flat = flatten_bvh(root)
    >>> flat.node_count
    11
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import numpy.typing as npt

from bvhtracer.geometry.aabb import AABB

logger = logging.getLogger(__name__)

# Relative padding applied to flattened boxes
BOX_PADDING = 1e-5


class IntersectableKind(IntEnum):
    """Closed set of things a ray can be tested against.

    Used to tag flattened BVH entries (SPHERE leaves and BVH_NODE internal
    nodes) and the root of the scene (LIST or BVH_NODE).
    """

    SPHERE = 0
    LIST = 1
    BVH_NODE = 2


@dataclass(frozen=True)
class BVHLeaf:
    """Leaf referencing one primitive.

    Attributes:
        primitive: Index of the primitive in the scene storage.
        box: Bounding box of the primitive.
    """

    primitive: int
    box: AABB


@dataclass(frozen=True)
class BVHNode:
    """Internal node with exactly two children.

    Both children are the same object when the node covers a single
    primitive.

    Attributes:
        box: Union of the children's boxes.
        left: Left child (visited first).
        right: Right child.
    """

    box: AABB
    left: BVHChild
    right: BVHChild


BVHChild = BVHNode | BVHLeaf


def _build(
    boxes: Sequence[AABB],
    order: list[int],
    start: int,
    end: int,
) -> BVHNode:
    bbox = AABB.EMPTY
    for i in range(start, end):
        bbox = AABB.enclosing(bbox, boxes[order[i]])

    axis = bbox.longest_axis()
    object_span = end - start

    left: BVHChild
    right: BVHChild
    if object_span == 1:
        left = right = BVHLeaf(order[start], boxes[order[start]])
    elif object_span == 2:
        left = BVHLeaf(order[start], boxes[order[start]])
        right = BVHLeaf(order[start + 1], boxes[order[start + 1]])
    else:
        # sorted() is stable; only the minimum of the split axis is compared
        order[start:end] = sorted(
            order[start:end],
            key=lambda i: boxes[i].axis_interval(axis).min,
        )
        mid = start + object_span // 2
        left = _build(boxes, order, start, mid)
        right = _build(boxes, order, mid, end)

    return BVHNode(AABB.enclosing(left.box, right.box), left, right)


def build_bvh(boxes: Sequence[AABB]) -> BVHNode:
    """Build a BVH over primitives given by their bounding boxes.

    Args:
        boxes: Bounding box of each primitive; leaf indices refer to
            positions in this sequence.

    Returns:
        The root node.

    Raises:
        ValueError: If boxes is empty.
    """
    if len(boxes) == 0:
        raise ValueError("Cannot build a BVH over an empty primitive list")

    order = list(range(len(boxes)))
    root = _build(boxes, order, 0, len(boxes))
    logger.debug(
        "Built BVH over %d primitives (depth %d)", len(boxes), tree_depth(root)
    )
    return root


def tree_depth(node: BVHChild) -> int:
    """Number of internal levels above the deepest leaf."""
    if isinstance(node, BVHLeaf):
        return 0
    return 1 + max(tree_depth(node.left), tree_depth(node.right))


def count_nodes(node: BVHChild) -> int:
    """Number of internal nodes and leaves in a subtree, counting aliased leaves twice."""
    if isinstance(node, BVHLeaf):
        return 1
    return 1 + count_nodes(node.left) + count_nodes(node.right)


def iter_leaves(node: BVHChild):
    """Yield the leaves of a subtree from left to right (aliases included)."""
    if isinstance(node, BVHLeaf):
        yield node
    else:
        yield from iter_leaves(node.left)
        yield from iter_leaves(node.right)


@dataclass
class FlatBVH:
    """Pre-order array layout of a BVH for device traversal.

    Attributes:
        kinds: IntersectableKind of each entry (SPHERE or BVH_NODE).
        primitives: Primitive index for leaves, -1 for internal nodes.
        box_min: Minimum corner of each entry's box, shape (n, 3).
        box_max: Maximum corner of each entry's box, shape (n, 3).
        escape: Index of the first entry after each subtree, or -1.
    """

    kinds: npt.NDArray[np.int32]
    primitives: npt.NDArray[np.int32]
    box_min: npt.NDArray[np.float32]
    box_max: npt.NDArray[np.float32]
    escape: npt.NDArray[np.int32]

    @property
    def node_count(self) -> int:
        return int(self.kinds.shape[0])


def flatten_bvh(root: BVHNode) -> FlatBVH:
    """Flatten a BVH into pre-order arrays with escape links.

    A leaf aliased by both children of a node appears twice; the second
    visit can never record a closer hit than the first.

    Args:
        root: Root node returned by build_bvh().

    Returns:
        The flattened hierarchy; entry 0 is the root.
    """
    entries: list[BVHChild] = []
    subtree_end: list[int] = []

    def visit(node: BVHChild) -> None:
        index = len(entries)
        entries.append(node)
        subtree_end.append(0)
        if isinstance(node, BVHNode):
            visit(node.left)
            visit(node.right)
        subtree_end[index] = len(entries)

    visit(root)

    n = len(entries)
    kinds = np.zeros(n, dtype=np.int32)
    primitives = -np.ones(n, dtype=np.int32)
    box_min = np.zeros((n, 3), dtype=np.float32)
    box_max = np.zeros((n, 3), dtype=np.float32)
    escape = -np.ones(n, dtype=np.int32)

    for i, node in enumerate(entries):
        if isinstance(node, BVHLeaf):
            kinds[i] = int(IntersectableKind.SPHERE)
            primitives[i] = node.primitive
        else:
            kinds[i] = int(IntersectableKind.BVH_NODE)
        box_min[i] = node.box.min_corner()
        box_max[i] = node.box.max_corner()
        if subtree_end[i] < n:
            escape[i] = subtree_end[i]

    # Widen boxes so float32 rounding in the slab test never culls a primitive
    # that the exhaustive scan would hit
    box_min -= BOX_PADDING * np.maximum(1.0, np.abs(box_min))
    box_max += BOX_PADDING * np.maximum(1.0, np.abs(box_max))

    return FlatBVH(
        kinds=kinds,
        primitives=primitives,
        box_min=box_min,
        box_max=box_max,
        escape=escape,
    )
