"""
MEP Survey - Electrical Equipment Survey Workflow

This package provides tools for:
1. Classifying and extracting nameplate data from equipment photos
2. Collecting surveyor inputs and validating them against NEC tables
3. Validating the electrical hierarchy and saving equipment to projects
"""

__version__ = "1.0.0"

from .analysis_adapter import AnalysisAdapter
from .exceptions import SurveyError
from .hierarchy import (
    apply_edit,
    assign_hierarchy_levels,
    build_hierarchy_tree,
    validate_electrical_hierarchy,
)
from .models import EquipmentEdit, EquipmentNode, HierarchyIssues, Project, UserInputs
from .project_store import InMemoryProjectStore, JSONProjectStore, ProjectRepository
from .workflow import Stage, SurveyWorkflow

__all__ = [
    "AnalysisAdapter",
    "SurveyError",
    "apply_edit",
    "assign_hierarchy_levels",
    "build_hierarchy_tree",
    "validate_electrical_hierarchy",
    "EquipmentEdit",
    "EquipmentNode",
    "HierarchyIssues",
    "Project",
    "UserInputs",
    "InMemoryProjectStore",
    "JSONProjectStore",
    "ProjectRepository",
    "Stage",
    "SurveyWorkflow",
]
