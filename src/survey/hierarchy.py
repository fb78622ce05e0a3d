"""
Electrical Hierarchy Validation

Checks every parent/child pair in the equipment list for voltage step-up
and amperage coordination, and flags panels with no service disconnect
upstream. Integrity problems are reported as issues, never raised.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from algorithms.nec_calculations import (
    parse_amperage,
    parse_voltage,
    validate_amperage_step,
    validate_voltage_step,
)

from .models import (
    EquipmentEdit,
    EquipmentNode,
    EquipmentType,
    HierarchyIssues,
    Severity,
    ValidationIssue,
)


def _index_by_id(nodes: Iterable[EquipmentNode]) -> Dict[str, EquipmentNode]:
    """Map id -> node. The first node with a given id wins."""
    by_id: Dict[str, EquipmentNode] = {}
    for node in nodes:
        by_id.setdefault(node.id, node)
    return by_id


def walk_ancestors(node: EquipmentNode,
                   by_id: Dict[str, EquipmentNode]) -> Tuple[List[EquipmentNode], bool]:
    """
    Follow parent_id pointers upward from a node.

    Stops at a root or an unresolvable parent. Returns (ancestors nearest
    first, cycle_detected).
    """
    ancestors = []
    visited = {node.id}
    current = node

    while current.parent_id:
        parent = by_id.get(current.parent_id)
        if parent is None:
            break
        if parent.id in visited:
            return ancestors, True
        visited.add(parent.id)
        ancestors.append(parent)
        current = parent

    return ancestors, False


def has_ancestor_of_type(node: EquipmentNode, nodes: List[EquipmentNode],
                         ancestor_type: EquipmentType) -> bool:
    """True if some ancestor has the given type. Cycles count as not found."""
    ancestors, cyclic = walk_ancestors(node, _index_by_id(nodes))
    if cyclic:
        return False
    return any(a.type == ancestor_type for a in ancestors)


def validate_electrical_hierarchy(nodes: List[EquipmentNode]) -> HierarchyIssues:
    """
    Validate the electrical hierarchy.

    Per node with a parent:
        - unresolvable parent  -> missing_parent warning
        - voltage step-up      -> voltage_step_up error
        - amperage mismatch    -> amperage_mismatch warning
        - parent cycle         -> invalid_hierarchy warning
    Per non-root panel:
        - no service disconnect ancestor -> missing_disconnect info

    Issues are emitted in input order, so repeated calls on the same list
    give identical results.

    Args:
        nodes: Equipment nodes (skipped/unknown items already removed)

    Returns:
        HierarchyIssues with errors, warnings and info lists
    """
    issues = HierarchyIssues()
    if not nodes:
        return issues

    by_id = _index_by_id(nodes)

    for node in nodes:
        ancestors, cyclic = walk_ancestors(node, by_id)

        if node.parent_id:
            parent = by_id.get(node.parent_id)

            if parent is None:
                issues.add(ValidationIssue(
                    equipment_id=node.id,
                    type="missing_parent",
                    severity=Severity.WARNING,
                    message=f"Cannot find parent equipment ({node.parent_id}) for {node.type.value}",
                    suggested_action="Verify electrical hierarchy relationships",
                ))
            else:
                _check_pair(issues, parent, node)

            if cyclic:
                issues.add(ValidationIssue(
                    equipment_id=node.id,
                    parent_id=node.parent_id,
                    type="invalid_hierarchy",
                    severity=Severity.WARNING,
                    message=f"Circular parent reference detected above {node.label}",
                    suggested_action="Correct the parent assignment so the hierarchy ends at a root",
                ))

        if node.type == EquipmentType.PANEL and node.hierarchy_level > 0:
            has_disconnect = not cyclic and any(
                a.type == EquipmentType.SERVICE_DISCONNECT for a in ancestors
            )
            if not has_disconnect:
                issues.add(ValidationIssue(
                    equipment_id=node.id,
                    type="missing_disconnect",
                    severity=Severity.INFO,
                    message=f'Panel "{node.user_inputs.designation}" has no service disconnect in hierarchy',
                    suggested_action="Add service disconnect photo or verify if panel is fed from utility directly",
                ))

    return issues


def _check_pair(issues: HierarchyIssues, parent: EquipmentNode, child: EquipmentNode) -> None:
    voltage = validate_voltage_step(parse_voltage(parent.voltage), parse_voltage(child.voltage))
    if not voltage["valid"]:
        issues.add(ValidationIssue(
            equipment_id=child.id,
            parent_id=parent.id,
            type=voltage["violation_type"],
            severity=Severity.ERROR,
            message=voltage["error"],
            suggested_action="Verify voltage ratings or parent-child relationship",
        ))

    amperage = validate_amperage_step(parse_amperage(parent.rating), parse_amperage(child.rating))
    if not amperage["valid"]:
        issues.add(ValidationIssue(
            equipment_id=child.id,
            parent_id=parent.id,
            type=amperage["violation_type"],
            severity=Severity.WARNING,
            message=amperage["error"],
            suggested_action=amperage.get("warning"),
        ))


def assign_hierarchy_levels(nodes: List[EquipmentNode]) -> List[EquipmentNode]:
    """
    Recompute hierarchy_level from parent_id pointers.

    Level is the number of resolvable ancestors. A cycle stops the walk,
    so nodes in a cycle get the depth reached before it closed.

    Returns:
        New list of node copies
    """
    by_id = _index_by_id(nodes)
    result = []
    for node in nodes:
        ancestors, _ = walk_ancestors(node, by_id)
        level = len(ancestors)
        if node.parent_id and not ancestors:
            # Parent not in this list; still not a root
            level = max(node.hierarchy_level, 1)
        result.append(node.model_copy(update={"hierarchy_level": level}))
    return result


def build_hierarchy_tree(nodes: List[EquipmentNode],
                         issues: Optional[HierarchyIssues] = None) -> List[Dict[str, Any]]:
    """
    Nest equipment by parent_id for display.

    Roots are nodes without a parent, at level 0, or whose parent is not in
    the list. Each entry is {"node", "has_issues", "children"}; a node is
    flagged when it has any error or warning. Each node appears once.
    """
    by_id = _index_by_id(nodes)
    flagged = set()
    if issues is not None:
        flagged = {i.equipment_id for i in issues.errors + issues.warnings}

    placed = set()

    def build(node: EquipmentNode) -> Dict[str, Any]:
        placed.add(node.id)
        children = [
            build(child) for child in nodes
            if child.parent_id == node.id and child.id not in placed
        ]
        return {
            "node": node,
            "has_issues": node.id in flagged,
            "children": children,
        }

    roots = [
        node for node in nodes
        if not node.parent_id or node.hierarchy_level == 0 or node.parent_id not in by_id
    ]
    return [build(root) for root in roots if root.id not in placed]


def get_path(data: Dict[str, Any], path: str) -> Any:
    """Read a dot-path value from nested dicts, None when absent."""
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def apply_edit(nodes: List[EquipmentNode], edit: EquipmentEdit) -> List[EquipmentNode]:
    """
    Apply one field edit and return a new equipment list.

    The path uses record (camelCase) keys, e.g. "userInputs.designation",
    "parentId" or "extractedData.electrical.voltage". Missing intermediate
    objects are created. An unknown equipment id leaves the list unchanged.

    Raises:
        ValueError: If the path is empty or the edited node no longer validates
    """
    if not edit.path:
        raise ValueError("Edit path is required")

    parts = edit.path.split(".")
    result = []
    for node in nodes:
        if node.id != edit.equipment_id:
            result.append(node)
            continue

        record = node.to_record()
        target = record
        for key in parts[:-1]:
            if not isinstance(target.get(key), dict):
                target[key] = {}
            target = target[key]
        target[parts[-1]] = edit.value

        result.append(EquipmentNode.model_validate(record))

    return result
