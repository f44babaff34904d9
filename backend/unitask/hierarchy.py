"""
Hierarchy governance for V13 task trees.

Pure helpers over task documents (camelCase dicts, see ``Task.to_document``).
Enforces the structural rules the V13 migration introduced alongside the
shadow progress field:

1. The ancestor chain must not contain the task's own id (no cycles).
2. ``parentId`` must match the last ancestor when ancestors exist.
3. Depth (ancestors + self) must not exceed ``MAX_HIERARCHY_DEPTH``.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from unitask.data_migration import ResolvedProgress, resolve_progress

MAX_HIERARCHY_DEPTH = 5
REINDEX_EPSILON = 0.005


@dataclass(frozen=True)
class HierarchyCheck:
    valid: bool
    error: Optional[str] = None


@dataclass
class TreeNode:
    task: dict
    progress: ResolvedProgress
    children: List["TreeNode"] = field(default_factory=list)
    level: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.task.get("id"),
            "friendly_id": self.task.get("friendlyId"),
            "title": self.task.get("title"),
            "type": self.task.get("type") or "task",
            "status": self.task.get("status"),
            "order": self.task.get("order"),
            "level": self.level,
            "progress": self.progress.to_dict(),
            "children": [child.to_dict() for child in self.children],
        }


def assert_valid_hierarchy(task: dict) -> HierarchyCheck:
    """
    Validate the hierarchy integrity of a task.

    Intended for imports, migrations and re-parenting. A task without
    ``ancestorIds`` is a root or detached task and is always valid.
    """
    ancestor_ids = task.get("ancestorIds")
    if ancestor_ids is None:
        return HierarchyCheck(valid=True)

    task_id = task.get("id")
    if task_id and task_id in ancestor_ids:
        return HierarchyCheck(
            valid=False,
            error=f"Cycle detected: Task {task_id} is in its own ancestor path.",
        )

    parent_id = task.get("parentId")
    if parent_id:
        last_ancestor = ancestor_ids[-1] if ancestor_ids else None
        if last_ancestor != parent_id:
            return HierarchyCheck(
                valid=False,
                error=f"Integrity Mismatch: ParentId ({parent_id}) != Last Ancestor ({last_ancestor})",
            )
    elif ancestor_ids:
        return HierarchyCheck(valid=False, error="Orphaned Task: Has ancestors but no ParentID")

    depth = len(ancestor_ids) + 1
    if depth > MAX_HIERARCHY_DEPTH:
        return HierarchyCheck(
            valid=False,
            error=f"Depth Limit Exceeded: Current {depth} > Max {MAX_HIERARCHY_DEPTH}",
        )

    return HierarchyCheck(valid=True)


def recalculate_ancestors(parent_task: Optional[dict]) -> List[str]:
    """Ancestor path for a task placed under ``parent_task``; the caller fetches the parent."""
    if not parent_task:
        return []
    return list(parent_task.get("ancestorIds") or []) + [parent_task["id"]]


def calculate_midpoint_order(prev_order: float, next_order: float) -> Tuple[float, bool]:
    """
    Order value halfway between two siblings.

    The second element is True when the siblings have crowded so close that
    the list should be re-indexed.
    """
    mid = (prev_order + next_order) / 2
    needs_reindex = abs(prev_order - next_order) < REINDEX_EPSILON
    return mid, needs_reindex


def _sort_key(node: TreeNode) -> float:
    return node.task.get("order") or 0


def build_tree(tasks: List[dict], project_id: Optional[str] = None) -> List[TreeNode]:
    """
    Build the project map from flat task documents.

    Tasks whose parent is not in the set become roots. Siblings are sorted by
    ``order`` (missing order sorts as 0) and every node carries its resolved
    progress.
    """
    if project_id:
        tasks = [t for t in tasks if t.get("projectId") == project_id]

    node_map: Dict[str, TreeNode] = {}
    for task in tasks:
        node_map[task["id"]] = TreeNode(task=task, progress=resolve_progress(task))

    roots: List[TreeNode] = []
    for task in tasks:
        node = node_map[task["id"]]
        parent_id = task.get("parentId")
        if parent_id and parent_id in node_map and parent_id != task["id"]:
            node_map[parent_id].children.append(node)
        else:
            roots.append(node)

    def assign_level(nodes: List[TreeNode], level: int, seen: set):
        nodes.sort(key=_sort_key)
        for node in nodes:
            node_id = node.task["id"]
            if node_id in seen:
                continue
            seen.add(node_id)
            node.level = level
            assign_level(node.children, level + 1, seen)

    assign_level(roots, 0, set())
    return roots
