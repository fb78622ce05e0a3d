"""Data models for the electrical survey workflow."""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from algorithms.nec_calculations import tables


class SurveyModel(BaseModel):
    """Base model: snake_case in Python, camelCase in stored/exchanged JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        """Serialize to a JSON-ready dict using camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class EquipmentType(str, Enum):
    """Equipment types that may appear in the electrical hierarchy."""
    TRANSFORMER = "transformer"
    SERVICE_DISCONNECT = "service_disconnect"
    METER = "meter"
    PANEL = "panel"


class ClassificationType(str, Enum):
    """Image classification labels returned by the vision model."""
    TRANSFORMER = "TRANSFORMER"
    SERVICE_DISCONNECT = "SERVICE_DISCONNECT"
    METER_ENCLOSURE = "METER_ENCLOSURE"
    PANEL_NAMEPLATE = "PANEL_NAMEPLATE"
    PANEL_INTERIOR = "PANEL_INTERIOR"
    UNKNOWN = "UNKNOWN"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


# Classification label -> extraction prompt type
CLASSIFICATION_TO_EXTRACTION_TYPE = {
    "TRANSFORMER": "transformer",
    "SERVICE_DISCONNECT": "service_disconnect",
    "METER_ENCLOSURE": "meter",
    "PANEL_NAMEPLATE": "electrical",
    "PANEL_INTERIOR": "electrical",
}

# Classification label -> hierarchy equipment type
CLASSIFICATION_TO_EQUIPMENT_TYPE = {
    "TRANSFORMER": EquipmentType.TRANSFORMER,
    "SERVICE_DISCONNECT": EquipmentType.SERVICE_DISCONNECT,
    "METER_ENCLOSURE": EquipmentType.METER,
    "PANEL_NAMEPLATE": EquipmentType.PANEL,
    "PANEL_INTERIOR": EquipmentType.PANEL,
}


def map_classification_to_extraction_type(classification_type: str) -> Optional[str]:
    """Extraction prompt for a classification label (None for UNKNOWN)."""
    if classification_type == ClassificationType.UNKNOWN.value:
        return None
    return CLASSIFICATION_TO_EXTRACTION_TYPE.get(classification_type, "electrical")


def map_classification_to_equipment_type(classification_type: str) -> EquipmentType:
    """Hierarchy equipment type for a classification label, panel by default."""
    return CLASSIFICATION_TO_EQUIPMENT_TYPE.get(classification_type, EquipmentType.PANEL)


# Form options

WIRE_SIZE_OPTIONS = tables.wire_sizes

CONDUIT_SIZE_OPTIONS = tables.conduit_sizes

LOCATION_OPTIONS = [
    "Electrical Room",
    "Mechanical Room",
    "Kitchen",
    "Basement",
    "Exterior - Building",
    "Roof",
    "Utility Closet",
    "Hallway",
    "Warehouse",
    "Office",
]

CONDITION_OPTIONS = ["Good", "Fair", "Poor", "Hazardous"]

MOUNTING_OPTIONS = {
    "PANEL_NAMEPLATE": ["Surface", "Flush", "Semi-Flush", "Within Switchboard"],
    "PANEL_INTERIOR": ["Surface", "Flush", "Semi-Flush", "Within Switchboard"],
    "TRANSFORMER": ["Pole", "Pad", "Vault", "Interior Wall", "Floor"],
    "SERVICE_DISCONNECT": ["Surface", "Recessed", "Pole Mount", "Pad Mount"],
}

DEFAULT_MOUNTING_OPTIONS = ["Surface", "Recessed", "Wall Mount", "Floor Mount"]


def mounting_options_for(classification_type: Optional[str]) -> List[str]:
    """Mounting choices offered for a classification label."""
    return MOUNTING_OPTIONS.get(classification_type or "", DEFAULT_MOUNTING_OPTIONS)


# Extraction service payloads

class Classification(SurveyModel):
    """Classification result for one image."""
    equipment_type: str
    confidence: Optional[str] = None
    image_quality: Optional[str] = None
    extraction_feasibility: Optional[str] = None
    issues: List[str] = Field(default_factory=list)


class ElectricalData(SurveyModel):
    """Electrical ratings read from a nameplate. Unlisted fields are kept."""
    model_config = ConfigDict(extra="allow")

    voltage: Optional[str] = None
    phase: Optional[str] = None
    bus_rating: Optional[str] = None
    amp_rating: Optional[str] = None
    main_breaker: Optional[str] = None

    @field_validator("voltage", "phase", "bus_rating", "amp_rating", "main_breaker", mode="before")
    @classmethod
    def numbers_as_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class MountingInfo(SurveyModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None


class ExtractedData(SurveyModel):
    """
    Nameplate data inferred by the vision model.

    Every field is optional; validators read only voltage and rating.
    """
    model_config = ConfigDict(extra="allow")

    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    electrical: Optional[ElectricalData] = None
    mounting: Optional[MountingInfo] = None
    confidence_scores: Dict[str, Any] = Field(default_factory=dict)
    extraction_quality: Dict[str, Any] = Field(default_factory=dict)
    missing_fields: List[str] = Field(default_factory=list)
    classification: Optional[Classification] = None

    @field_validator("manufacturer", "model", "serial_number", mode="before")
    @classmethod
    def numbers_as_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def voltage(self) -> Optional[str]:
        return self.electrical.voltage if self.electrical else None

    @property
    def rating(self) -> Optional[str]:
        """Bus rating, falling back to amp rating."""
        if not self.electrical:
            return None
        return self.electrical.bus_rating or self.electrical.amp_rating

    @property
    def overall_confidence(self) -> Optional[float]:
        value = self.confidence_scores.get("overall")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return None


# User inputs

class Mounting(SurveyModel):
    type: str = ""
    ai_suggested: str = ""
    user_override: bool = False


class WireSizes(SurveyModel):
    phase: str = ""
    neutral: str = ""
    ground: str = ""


class PhysicalDimensions(SurveyModel):
    width: str = ""
    height: str = ""
    depth: str = ""
    distance_from_wall: str = ""


class UserInputs(SurveyModel):
    """Fields the surveyor supplies that cannot be read from a photo."""
    designation: str = ""
    location: str = ""
    mounting: Mounting = Field(default_factory=Mounting)
    wire_size: WireSizes = Field(default_factory=WireSizes)
    conduit_size: str = ""
    physical_dimensions: PhysicalDimensions = Field(default_factory=PhysicalDimensions)
    condition: str = "Good"
    notes: str = ""


# Hierarchy

class GapFlags(SurveyModel):
    has_unreadable_fields: bool = False
    missing_critical_data: bool = False
    conflicting_data: bool = False
    incomplete_user_inputs: bool = False


class EquipmentNode(SurveyModel):
    """One piece of equipment in the electrical hierarchy."""
    id: str
    type: EquipmentType
    parent_id: Optional[str] = None
    hierarchy_level: int = Field(default=0, ge=0)
    equipment_number: Optional[int] = None
    extracted_data: Optional[ExtractedData] = None
    user_inputs: UserInputs = Field(default_factory=UserInputs)
    classification: Optional[Classification] = None
    gap_flags: GapFlags = Field(default_factory=GapFlags)
    captured_at: Optional[str] = None
    last_modified: Optional[str] = None

    @property
    def voltage(self) -> Optional[str]:
        return self.extracted_data.voltage if self.extracted_data else None

    @property
    def rating(self) -> Optional[str]:
        return self.extracted_data.rating if self.extracted_data else None

    @property
    def label(self) -> str:
        """Designation, or type and number when none was entered."""
        if self.user_inputs.designation:
            return self.user_inputs.designation
        return f"{self.type.value} #{self.equipment_number or ''}".rstrip(" #")


class ValidationIssue(SurveyModel):
    equipment_id: str
    type: str
    message: str
    severity: Severity
    parent_id: Optional[str] = None
    suggested_action: Optional[str] = None


class HierarchyIssues(SurveyModel):
    """Validation issues grouped by severity."""
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    info: List[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def add(self, issue: ValidationIssue) -> None:
        if issue.severity == Severity.ERROR:
            self.errors.append(issue)
        elif issue.severity == Severity.WARNING:
            self.warnings.append(issue)
        else:
            self.info.append(issue)

    def for_equipment(self, equipment_id: str) -> List[ValidationIssue]:
        return [
            issue for issue in self.errors + self.warnings + self.info
            if issue.equipment_id == equipment_id
        ]


class EquipmentEdit(SurveyModel):
    """A single field change on one equipment node, addressed by dot path."""
    equipment_id: str
    path: str
    value: Any = None


# Workflow / persistence

class SurveyItem(SurveyModel):
    """One uploaded image as it moves through classification and extraction."""
    image_index: int
    image_data: str = Field(repr=False)
    equipment_id: str
    classification: Optional[Classification] = None
    extracted_data: Optional[ExtractedData] = None
    skipped: bool = False
    skip_reason: Optional[str] = None


class ElectricalSummary(SurveyModel):
    total_equipment: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    average_confidence: float = 0.0
    total_validation_warnings: int = 0
    hierarchy_complete: bool = False


class Project(SurveyModel):
    """A survey project record. Fields owned by other tools are preserved."""
    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    address: Optional[str] = None
    created_at: Optional[str] = None
    last_modified: Optional[str] = None
    electrical_equipment: List[EquipmentNode] = Field(default_factory=list)
    electrical_summary: Optional[ElectricalSummary] = None
