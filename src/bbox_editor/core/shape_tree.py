"""
Category/shape tree kept in sync with flat per-image shape lists.

Any path from the root downwards alternates between category-group nodes
and shape nodes: root, category-group, shape, category-group, shape, ...
A shape's parts are attached below the shape's own node.

Nodes live in an arena keyed by integer ids; parents and children refer to
each other by id only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from .models import BoundingShapeData, ObjectCategory

logger = logging.getLogger(__name__)

ROOT_ID = 0


class NodeKind(str, Enum):
    """Kind of a tree node."""

    ROOT = "root"
    CATEGORY = "category"
    SHAPE = "shape"


@dataclass
class TreeNode:
    """
    A node of the shape tree.

    Category-group nodes carry a category, shape nodes carry the shape's data
    (without parts) and a 1-based position among their group's children.
    """

    node_id: int
    kind: NodeKind
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    category: Optional[ObjectCategory] = None
    shape: Optional[BoundingShapeData] = None
    position: int = 0


class ShapeTree:
    """Arena-backed tree of category groups and bounding shapes."""

    def __init__(self) -> None:
        self._nodes: Dict[int, TreeNode] = {}
        self._next_id = ROOT_ID
        self.reset()

    def __len__(self) -> int:
        """Number of shape nodes."""
        return sum(1 for node in self._nodes.values() if node.kind == NodeKind.SHAPE)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def reset(self) -> None:
        """Remove every node except a fresh root."""
        self._nodes = {ROOT_ID: TreeNode(ROOT_ID, NodeKind.ROOT)}
        self._next_id = ROOT_ID + 1

    def build(self, shapes: Iterable[BoundingShapeData]) -> None:
        """Reset the tree and insert the top-level shapes of one image in order."""
        self.reset()
        for shape in shapes:
            self.insert(shape)

    def node(self, node_id: int) -> TreeNode:
        """
        Get a node by id.

        Raises:
            KeyError: If there is no such node
        """
        try:
            return self._nodes[node_id]
        except KeyError:
            raise KeyError(f"No tree node with id {node_id}") from None

    def children(self, node_id: int) -> List[int]:
        return list(self.node(node_id).children)

    def positions(self, group_id: int) -> List[int]:
        """Positions of the shape nodes in a category group, in child order."""
        return [self._nodes[child].position for child in self.node(group_id).children]

    def category_group(self, parent_id: int, category: ObjectCategory) -> Optional[int]:
        """Return the id of the category-group child of a node matching a category, if any."""
        for child_id in self.node(parent_id).children:
            child = self._nodes[child_id]
            if child.kind == NodeKind.CATEGORY and child.category.name == category.name:
                return child_id
        return None

    def insert(self, shape: BoundingShapeData, parent_id: int = ROOT_ID) -> int:
        """
        Attach a shape (and, recursively, its parts) below a node.

        The shape goes into the category group of the parent that matches its
        category; the group is created if it does not exist yet.

        Args:
            shape: Shape to insert
            parent_id: Root or shape node to attach to

        Returns:
            Id of the new shape node

        Raises:
            ValueError: If parent_id is a category-group node
        """
        parent = self.node(parent_id)
        if parent.kind == NodeKind.CATEGORY:
            raise ValueError("Shapes can only be attached to the root or to another shape")

        group_id = self.category_group(parent_id, shape.category)
        if group_id is None:
            group_id = self._add_node(TreeNode(self._next_id, NodeKind.CATEGORY, category=shape.category), parent_id)

        group = self._nodes[group_id]
        node_id = self._add_node(TreeNode(self._next_id, NodeKind.SHAPE, shape=shape.without_parts()), group_id)
        self._nodes[node_id].position = len(group.children)

        for part in shape.parts:
            self.insert(part, node_id)

        return node_id

    def remove(self, node_id: int) -> None:
        """
        Remove a shape node together with its parts.

        Later siblings in the same category group move up by one position.
        A category group left without children is removed as well; this
        collapse never goes further up the tree.

        Raises:
            ValueError: If node_id is not a shape node
        """
        node = self.node(node_id)
        if node.kind != NodeKind.SHAPE:
            raise ValueError(f"Only shape nodes can be removed, got a {node.kind.value} node")

        group = self._nodes[node.parent]
        index = group.children.index(node_id)
        del group.children[index]
        self._drop_subtree(node_id)

        for sibling_id in group.children[index:]:
            self._nodes[sibling_id].position -= 1

        if not group.children:
            self._nodes[group.parent].children.remove(group.node_id)
            del self._nodes[group.node_id]
            logger.debug(f"Removed empty category group '{group.category.name}'")

    def reassign_category(self, node_id: int, category: ObjectCategory) -> int:
        """
        Move a shape (with its parts) into another category.

        The shape is appended to the matching group under the same parent.

        Returns:
            Id of the re-inserted shape node
        """
        node = self.node(node_id)
        if node.kind != NodeKind.SHAPE:
            raise ValueError(f"Only shape nodes have a category to change, got a {node.kind.value} node")

        parent_id = self._nodes[node.parent].parent
        shape = self._to_shape_data(node_id)
        shape.category = category
        self.remove(node_id)
        return self.insert(shape, parent_id)

    def extract(self, root_id: int = ROOT_ID) -> List[BoundingShapeData]:
        """
        Rebuild shape data from the tree, nested parts included.

        Shapes come out grouped by category in group order, and in
        insertion order within a group.

        Args:
            root_id: Root, shape or category-group node to extract below

        Returns:
            The top-level shapes below root_id
        """
        root = self.node(root_id)
        if root.kind == NodeKind.CATEGORY:
            shape_ids = list(root.children)
        else:
            shape_ids = [
                shape_id
                for group_id in root.children
                for shape_id in self._nodes[group_id].children
            ]
        return [self._to_shape_data(shape_id) for shape_id in shape_ids]

    def shape_node_ids(self, root_id: int = ROOT_ID) -> Iterator[int]:
        """Yield the ids of all shape nodes below a node, depth-first pre-order."""
        stack = list(reversed(self.node(root_id).children))
        while stack:
            node_id = stack.pop()
            node = self._nodes[node_id]
            if node.kind == NodeKind.SHAPE:
                yield node_id
            stack.extend(reversed(node.children))

    def _add_node(self, node: TreeNode, parent_id: int) -> int:
        node.parent = parent_id
        self._nodes[node.node_id] = node
        self._nodes[parent_id].children.append(node.node_id)
        self._next_id += 1
        return node.node_id

    def _drop_subtree(self, node_id: int) -> None:
        stack = [node_id]
        while stack:
            node = self._nodes.pop(stack.pop())
            stack.extend(node.children)

    def _to_shape_data(self, node_id: int) -> BoundingShapeData:
        shape = self._nodes[node_id].shape.without_parts()
        shape.parts = self.extract(node_id)
        return shape
