"""Account/category trees flattened into grids.

A tree is made of :class:`TreeNode` objects: branches carry children, leaves
carry a mapping of column name to value. For example a balance sheet::

    tree = TreeNode.from_mapping(
        "Assets",
        {
            "Current": {
                "Cash": {"2023": 100.0, "2024": 150.0},
                "Receivables": {"2023": 40.0, "2024": 35.0},
            },
            "Property": {"2023": 900.0, "2024": 880.0},
        },
    )
    write_workbook({"Balance": tree_grid(tree)}, "balance.xlsx")

renders one row per node, labels indented by depth and branch rows in bold
with the totals of their leaves.
"""

import numbers
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .conf import DEFAULT_HEADER_STYLE
from .grid import cell
from .spec import SpecCell
from .style import deep_merge

_BRANCH_STYLE = {"font": {"bold": True}}


@dataclass(frozen=True, slots=True)
class TreeNode:
    label: str
    children: tuple["TreeNode", ...] = ()
    values: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @classmethod
    def from_mapping(cls, label: str, mapping: Mapping[str, Any]) -> "TreeNode":
        """
        Build a tree from nested mappings. A mapping whose values are all plain
        values is a leaf; a mapping whose values are all mappings is a branch.
        """
        l_nested = [isinstance(_val, Mapping) for _val in mapping.values()]
        if not any(l_nested):
            return cls(label=str(label), values=dict(mapping))
        if not all(l_nested):
            raise ValueError(
                f"Tree node {label!r} mixes child nodes and leaf values: "
                f"{list(mapping)!r}"
            )
        return cls(
            label=str(label),
            children=tuple(
                cls.from_mapping(_key, _val) for _key, _val in mapping.items()
            ),
        )

    def generate_leaves(self):
        if self.is_leaf:
            yield self
            return
        for _child in self.children:
            yield from _child.generate_leaves()

    def calculate_totals(self) -> dict[str, float]:
        """Per-column sums of the numeric leaf values under this node."""
        dict_totals: dict[str, float] = {}
        for _leaf in self.generate_leaves():
            for _col, _val in _leaf.values.items():
                if isinstance(_val, numbers.Number) and not isinstance(_val, bool):
                    dict_totals[_col] = dict_totals.get(_col, 0.0) + float(_val)  # type: ignore[arg-type]
        return dict_totals


def collect_columns(trees: Sequence[TreeNode]) -> list[str]:
    """Union of leaf value keys, in first-seen order."""
    dict_cols: dict[str, None] = {}
    for _tree in trees:
        for _leaf in _tree.generate_leaves():
            for _col in _leaf.values:
                dict_cols.setdefault(_col, None)
    return list(dict_cols)


def tree_grid(
    tree: TreeNode | Sequence[TreeNode],
    *,
    headers: Sequence[str] | None = None,
    if_totals: bool = True,
    indent_step: int = 1,
    header_style: Mapping[str, Any] | None = DEFAULT_HEADER_STYLE,
    value_style: Mapping[str, Any] | None = None,
) -> list[list[Any | SpecCell]]:
    """
    Flatten one tree (or several, one after the other) into a grid.

    The first row holds the headers: an empty label column, then ``headers``
    (default: every leaf value key in first-seen order). Each node becomes one
    row. Branch rows are bold and, when ``if_totals``, show the per-column
    totals of their leaves.
    """
    l_trees = [tree] if isinstance(tree, TreeNode) else list(tree)
    l_columns = list(headers) if headers is not None else collect_columns(l_trees)

    l_rows: list[list[Any | SpecCell]] = [
        [cell("", header_style)] + [cell(_col, header_style) for _col in l_columns]
    ]

    def _walk(node: TreeNode, depth: int) -> None:
        style_label: dict[str, Any] = {"indent": depth * indent_step} if depth else {}
        if node.is_leaf:
            dict_vals: Mapping[str, Any] = node.values
            style_row = value_style
        else:
            style_label = deep_merge(style_label, _BRANCH_STYLE)
            dict_vals = node.calculate_totals() if if_totals else {}
            style_row = deep_merge(value_style, _BRANCH_STYLE)

        l_row: list[Any | SpecCell] = [cell(node.label, style_label)]
        for _col in l_columns:
            val = dict_vals.get(_col)
            l_row.append(cell(val, style_row) if style_row else val)
        l_rows.append(l_row)

        for _child in node.children:
            _walk(_child, depth + 1)

    for _tree in l_trees:
        _walk(_tree, 0)
    return l_rows
