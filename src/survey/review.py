"""
Review Helpers

Statistics and formatting for the review stage, and the project summary
written at save time.
"""

from typing import Any, Dict, List, Optional

from .hierarchy import get_path
from .models import (
    ElectricalSummary,
    EquipmentNode,
    HierarchyIssues,
    ValidationIssue,
)

# userInputs paths counted toward completion
COMPLETION_FIELDS = ["designation", "location", "wireSize.phase", "conduitSize"]

DEFAULT_CONFIDENCE = 0.5

SEVERITY_ICONS = {
    "error": "✗",
    "warning": "!",
    "info": "i",
}


def completion_percentage(nodes: List[EquipmentNode]) -> int:
    """Percent of required user fields filled in, rounded to an integer."""
    if not nodes:
        return 0

    total = 0
    completed = 0
    for node in nodes:
        inputs = node.user_inputs.to_record()
        for field in COMPLETION_FIELDS:
            total += 1
            if get_path(inputs, field):
                completed += 1

    return round(completed / total * 100) if total else 0


def review_stats(nodes: List[EquipmentNode], issues: Optional[HierarchyIssues]) -> Dict[str, int]:
    issues = issues or HierarchyIssues()
    return {
        "total_errors": len(issues.errors),
        "total_warnings": len(issues.warnings),
        "total_info": len(issues.info),
        "total_equipment": len(nodes),
        "completion_percentage": completion_percentage(nodes),
    }


def can_save(issues: Optional[HierarchyIssues]) -> bool:
    """Saving is blocked only by error-severity issues."""
    return issues is None or not issues.has_errors


def equipment_has_issues(equipment_id: str, issues: HierarchyIssues) -> bool:
    """True if the equipment has any error or warning."""
    return any(i.equipment_id == equipment_id for i in issues.errors + issues.warnings)


def confidence_level(score: Optional[float]) -> Optional[str]:
    """Bucket a 0-1 confidence score as high, medium or low."""
    if score is None:
        return None
    if score < 0.5:
        return "low"
    if score < 0.7:
        return "medium"
    return "high"


def format_issue(issue: ValidationIssue, nodes: Optional[List[EquipmentNode]] = None) -> str:
    """One-line text rendering of an issue card."""
    label = issue.equipment_id
    for node in nodes or []:
        if node.id == issue.equipment_id:
            label = node.label
            break

    text = f"[{SEVERITY_ICONS[issue.severity.value]}] {label}: {issue.message}"
    if issue.suggested_action:
        text += f" -> {issue.suggested_action}"
    return text


def format_report(nodes: List[EquipmentNode], issues: HierarchyIssues) -> List[str]:
    """Text lines for the review screen: counts, then issues by severity."""
    stats = review_stats(nodes, issues)
    lines = [
        f"Equipment: {stats['total_equipment']}  "
        f"Errors: {stats['total_errors']}  "
        f"Warnings: {stats['total_warnings']}  "
        f"Info: {stats['total_info']}  "
        f"Complete: {stats['completion_percentage']}%"
    ]
    for issue in issues.errors + issues.warnings + issues.info:
        lines.append(format_issue(issue, nodes))
    return lines


def format_tree(tree: List[Dict[str, Any]], indent: int = 0) -> List[str]:
    """Render build_hierarchy_tree() output as indented lines."""
    lines = []
    for entry in tree:
        node = entry["node"]
        marker = " (!)" if entry["has_issues"] else ""
        lines.append(f"{'  ' * indent}- {node.label} [{node.type.value}]{marker}")
        lines.extend(format_tree(entry["children"], indent + 1))
    return lines


def build_electrical_summary(nodes: List[EquipmentNode],
                             issues: Optional[HierarchyIssues] = None) -> ElectricalSummary:
    """
    Project-level aggregates over all saved equipment.

    Average confidence uses confidenceScores.overall, counting 0.5 for
    equipment without one. The hierarchy is complete when there is at
    least one root and no missing-parent warnings.
    """
    issues = issues or HierarchyIssues()
    by_type: Dict[str, int] = {}
    confidence_total = 0.0

    for node in nodes:
        by_type[node.type.value] = by_type.get(node.type.value, 0) + 1
        score = node.extracted_data.overall_confidence if node.extracted_data else None
        confidence_total += score if score else DEFAULT_CONFIDENCE

    has_root = any(not node.parent_id for node in nodes)
    missing_parents = any(w.type == "missing_parent" for w in issues.warnings)

    return ElectricalSummary(
        total_equipment=len(nodes),
        by_type=by_type,
        average_confidence=confidence_total / len(nodes) if nodes else 0.0,
        total_validation_warnings=len(issues.warnings),
        hierarchy_complete=has_root and not missing_parents,
    )
