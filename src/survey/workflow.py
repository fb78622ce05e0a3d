"""
Survey Workflow

Drives one electrical survey through its stages:

    IMAGE_UPLOAD -> CLASSIFICATION -> AI_ANALYSIS -> USER_INPUTS -> REVIEW -> SAVE

Backward moves are limited to USER_INPUTS -> AI_ANALYSIS (cancel on the
first item) and REVIEW -> USER_INPUTS (revise before saving). Failures at
a stage boundary are stored in `error` and leave the workflow in the last
stable stage.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from algorithms.nec_calculations import (
    Conductor,
    parse_amperage,
    validate_conduit_fill,
    validate_wire_size,
)

from .analysis_adapter import AnalysisAdapter
from .exceptions import (
    ClassificationError,
    EmptyInputError,
    ExtractionError,
    InvalidTransitionError,
    NoValidEquipmentError,
    SurveyError,
)
from .hierarchy import apply_edit, assign_hierarchy_levels, validate_electrical_hierarchy
from .models import (
    ClassificationType,
    EquipmentEdit,
    EquipmentNode,
    ExtractedData,
    GapFlags,
    HierarchyIssues,
    Mounting,
    Project,
    SurveyItem,
    UserInputs,
    map_classification_to_equipment_type,
    map_classification_to_extraction_type,
)
from .project_store import ProjectRepository, utc_now
from .review import build_electrical_summary, can_save

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    IMAGE_UPLOAD = "image_upload"
    CLASSIFICATION = "classification"
    AI_ANALYSIS = "ai_analysis"
    USER_INPUTS = "user_inputs"
    REVIEW = "review"
    SAVE = "save"


SKIP_UNKNOWN = "Equipment type could not be identified"
SKIP_POOR_QUALITY = "Image quality too poor for data extraction"

SAVE_BLOCKED_MESSAGE = (
    "Please resolve critical validation errors before saving. "
    "Go back to edit equipment details."
)


def generate_equipment_id() -> str:
    """Generate an equipment ID like EQ-20250101-ab12cd34."""
    return f"EQ-{datetime.now(timezone.utc).strftime('%Y%m%d')}-{uuid.uuid4().hex[:8]}"


def resolve_mounting(selected_type: str, ai_suggested: str = "") -> Mounting:
    """Mounting record for a user selection; override when it differs from the suggestion."""
    return Mounting(
        type=selected_type,
        ai_suggested=ai_suggested,
        user_override=selected_type != ai_suggested,
    )


def default_user_inputs(extracted_data: Optional[ExtractedData]) -> UserInputs:
    """Blank form for an item, with mounting preset to the model's suggestion."""
    suggested = ""
    if extracted_data and extracted_data.mounting and extracted_data.mounting.type:
        suggested = extracted_data.mounting.type
    return UserInputs(mounting=Mounting(type=suggested, ai_suggested=suggested))


def validate_user_inputs(inputs: UserInputs,
                         extracted_data: Optional[ExtractedData] = None) -> Dict[str, str]:
    """
    Check one item's user inputs.

    Required: designation, location, phase and ground wire size, conduit size.
    The phase wire is checked as a continuous load against the nameplate
    rating when one was read. Conduit fill is checked for three phase
    conductors plus the neutral (if given) and ground.

    Returns:
        Field errors keyed designation, location, wireSize.phase,
        wireSize.ground, conduitSize; empty when valid.
    """
    errors: Dict[str, str] = {}

    if not inputs.designation.strip():
        errors["designation"] = "Designation is required"
    if not inputs.location.strip():
        errors["location"] = "Location is required"
    if not inputs.wire_size.phase:
        errors["wireSize.phase"] = "Phase wire size is required"
    if not inputs.wire_size.ground:
        errors["wireSize.ground"] = "Ground wire size is required"
    if not inputs.conduit_size:
        errors["conduitSize"] = "Conduit size is required"

    if inputs.wire_size.phase and extracted_data is not None:
        amperage = parse_amperage(extracted_data.rating)
        if amperage > 0:
            result = validate_wire_size(inputs.wire_size.phase, amperage, continuous_load=True)
            if not result["valid"]:
                errors["wireSize.phase"] = result["error"]

    if inputs.wire_size.phase and inputs.conduit_size:
        conductors = [Conductor(inputs.wire_size.phase, 3)]
        if inputs.wire_size.neutral:
            conductors.append(Conductor(inputs.wire_size.neutral, 1))
        if inputs.wire_size.ground:
            conductors.append(Conductor(inputs.wire_size.ground, 1))

        result = validate_conduit_fill(inputs.conduit_size, conductors)
        if not result["valid"]:
            errors["conduitSize"] = result["error"]

    return errors


def input_errors(error: ValidationError) -> Dict[str, str]:
    """Field errors keyed by camelCase dot path from a UserInputs ValidationError."""
    errors: Dict[str, str] = {}
    for err in error.errors():
        field = ".".join(str(p) for p in err["loc"]) or "userInputs"
        errors.setdefault(field, err["msg"])
    return errors


class SurveyWorkflow:
    """
    State machine for one survey session on one project.

    Network calls go through the analysis adapter one image at a time;
    the project record is read at start and written only at SAVE.
    """

    def __init__(self, project_id: str, repository: ProjectRepository,
                 adapter: Optional[AnalysisAdapter] = None,
                 progress_callback: Optional[Callable[[str], None]] = None,
                 id_factory: Callable[[], str] = generate_equipment_id):
        self.project_id = project_id
        self.repository = repository
        self.adapter = adapter or AnalysisAdapter()
        self.progress_callback = progress_callback
        self.id_factory = id_factory

        self.project: Optional[Project] = None
        self.stage = Stage.IMAGE_UPLOAD
        self.images: List[str] = []
        self.classified: List[SurveyItem] = []
        self.items: List[SurveyItem] = []
        self.user_inputs: Dict[str, UserInputs] = {}
        self.current_index = 0
        self.field_errors: Dict[str, str] = {}
        self.equipment: List[EquipmentNode] = []
        self.issues: Optional[HierarchyIssues] = None
        self.error: Optional[str] = None
        self.progress_message = ""
        self.saved_project: Optional[Project] = None
        self.cancelled = False

    # Helpers

    def _extra(self) -> Dict[str, str]:
        return {"project_id": self.project_id, "stage": self.stage.value}

    def _require(self, *stages: Stage) -> None:
        if self.cancelled:
            raise InvalidTransitionError("Survey was cancelled")
        if self.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise InvalidTransitionError(
                f"Cannot do this in stage {self.stage.value} (allowed: {allowed})"
            )

    def _set_stage(self, stage: Stage) -> None:
        logger.info("Stage %s -> %s", self.stage.value, stage.value, extra=self._extra())
        self.stage = stage

    def _progress(self, message: str) -> None:
        self.progress_message = message
        logger.info(message, extra=self._extra())
        if self.progress_callback:
            self.progress_callback(message)

    def _fail(self, error: SurveyError) -> bool:
        self.error = str(error)
        self.progress_message = ""
        logger.warning("%s", self.error, extra=self._extra())
        return False

    @property
    def valid_items(self) -> List[SurveyItem]:
        """Items that were not skipped during analysis."""
        return [item for item in self.items if not item.skipped]

    @property
    def skipped_items(self) -> List[SurveyItem]:
        return [item for item in self.items if item.skipped]

    @property
    def current_item(self) -> Optional[SurveyItem]:
        valid = self.valid_items
        if self.stage != Stage.USER_INPUTS or not 0 <= self.current_index < len(valid):
            return None
        return valid[self.current_index]

    @property
    def current_inputs(self) -> Optional[UserInputs]:
        """Saved inputs for the current item, or a prefilled blank form."""
        item = self.current_item
        if item is None:
            return None
        if item.equipment_id in self.user_inputs:
            return self.user_inputs[item.equipment_id]
        return default_user_inputs(item.extracted_data)

    @property
    def can_save(self) -> bool:
        return self.stage == Stage.REVIEW and can_save(self.issues)

    @property
    def completed(self) -> bool:
        return self.stage == Stage.SAVE and self.saved_project is not None

    # IMAGE_UPLOAD

    def start(self) -> bool:
        """Load the project record. Returns False if it cannot be read."""
        self._require(Stage.IMAGE_UPLOAD)
        try:
            self.project = self.repository.load(self.project_id)
        except SurveyError as e:
            return self._fail(e)
        logger.info("Survey started for %s", self.project.name or self.project_id, extra=self._extra())
        return True

    def upload_images(self, images: List[str]) -> None:
        """Add base64-encoded images to the upload list."""
        self._require(Stage.IMAGE_UPLOAD)
        self.images.extend(images)
        self.error = None

    def remove_image(self, index: int) -> None:
        self._require(Stage.IMAGE_UPLOAD)
        del self.images[index]

    def proceed_to_classification(self) -> bool:
        """
        Classify every uploaded image, then extract data from them.

        Classification runs image by image; any failure discards the pass
        and returns to IMAGE_UPLOAD. On success the workflow moves straight
        into AI_ANALYSIS.
        """
        self._require(Stage.IMAGE_UPLOAD)
        self.error = None

        if not self.images:
            return self._fail(EmptyInputError("Please upload at least one image"))

        self._set_stage(Stage.CLASSIFICATION)
        classified = []
        try:
            for i, image in enumerate(self.images):
                self._progress(f"Classifying image {i + 1} of {len(self.images)}...")
                try:
                    classification = self.adapter.classify(image)
                except ClassificationError as e:
                    raise ClassificationError(f"Classification failed for image {i + 1}: {e}")
                classified.append(SurveyItem(
                    image_index=i,
                    image_data=image,
                    equipment_id=self.id_factory(),
                    classification=classification,
                ))
        except SurveyError as e:
            self._set_stage(Stage.IMAGE_UPLOAD)
            return self._fail(e)

        self.classified = classified
        self.progress_message = ""
        self._set_stage(Stage.AI_ANALYSIS)
        return self._extract()

    # AI_ANALYSIS

    def _extract(self) -> bool:
        self.error = None
        extracted = []
        try:
            for i, item in enumerate(self.classified):
                equipment_type = item.classification.equipment_type
                self._progress(f"Analyzing {equipment_type} ({i + 1} of {len(self.classified)})...")

                if equipment_type == ClassificationType.UNKNOWN.value:
                    extracted.append(self._skip(item, SKIP_UNKNOWN))
                    continue

                if item.classification.extraction_feasibility == "NONE":
                    extracted.append(self._skip(item, SKIP_POOR_QUALITY))
                    continue

                extraction_type = map_classification_to_extraction_type(equipment_type)
                try:
                    data = self.adapter.extract(item.image_data, extraction_type)
                except ExtractionError as e:
                    raise ExtractionError(f"Data extraction failed for image {i + 1}: {e}")

                extracted.append(item.model_copy(update={"extracted_data": data, "skipped": False}))
        except SurveyError as e:
            self.items = []
            return self._fail(e)

        self.items = extracted
        self.progress_message = ""
        logger.info(
            "Extraction complete: %d valid, %d skipped",
            len(self.valid_items), len(self.skipped_items), extra=self._extra(),
        )
        return True

    def _skip(self, item: SurveyItem, reason: str) -> SurveyItem:
        logger.info("Skipping image %d: %s", item.image_index + 1, reason, extra=self._extra())
        return item.model_copy(update={"extracted_data": None, "skipped": True, "skip_reason": reason})

    def retry_extraction(self) -> bool:
        """Re-run extraction over the classified images after a failure."""
        self._require(Stage.AI_ANALYSIS)
        return self._extract()

    def proceed_to_user_inputs(self) -> bool:
        self._require(Stage.AI_ANALYSIS)
        self.error = None

        if not self.valid_items:
            return self._fail(NoValidEquipmentError("No valid equipment found. All images were skipped."))

        self.current_index = 0
        self.field_errors = {}
        self._set_stage(Stage.USER_INPUTS)
        return True

    # USER_INPUTS

    def submit_user_inputs(self, inputs: Union[UserInputs, Dict[str, Any]]) -> bool:
        """
        Validate and store inputs for the current item.

        On success the cursor advances; after the last item the workflow
        moves to REVIEW and runs hierarchy validation. On failure the
        cursor stays put and `field_errors` holds per-field messages.
        """
        self._require(Stage.USER_INPUTS)
        if not isinstance(inputs, UserInputs):
            try:
                inputs = UserInputs.model_validate(inputs)
            except ValidationError as e:
                self.field_errors = input_errors(e)
                logger.info("User inputs malformed: %s", sorted(self.field_errors), extra=self._extra())
                return False

        item = self.current_item
        self.field_errors = validate_user_inputs(inputs, item.extracted_data)
        if self.field_errors:
            logger.info("User inputs rejected: %s", sorted(self.field_errors), extra=self._extra())
            return False

        self.user_inputs[item.equipment_id] = inputs

        if self.current_index < len(self.valid_items) - 1:
            self.current_index += 1
        else:
            self._set_stage(Stage.REVIEW)
            self.run_validation()
        return True

    def cancel_user_inputs(self) -> None:
        """Step back one item, or back to AI_ANALYSIS from the first."""
        self._require(Stage.USER_INPUTS)
        self.field_errors = {}
        if self.current_index > 0:
            self.current_index -= 1
        else:
            self._set_stage(Stage.AI_ANALYSIS)

    # REVIEW

    def _build_equipment(self) -> List[EquipmentNode]:
        previous = {node.id: node for node in self.equipment}
        nodes = []
        for index, item in enumerate(self.valid_items):
            prior = previous.get(item.equipment_id)
            nodes.append(EquipmentNode(
                id=item.equipment_id,
                type=map_classification_to_equipment_type(item.classification.equipment_type),
                parent_id=prior.parent_id if prior else None,
                hierarchy_level=prior.hierarchy_level if prior else 0,
                equipment_number=index + 1,
                extracted_data=item.extracted_data,
                user_inputs=self.user_inputs.get(item.equipment_id) or default_user_inputs(item.extracted_data),
                classification=item.classification,
            ))
        return nodes

    def run_validation(self) -> HierarchyIssues:
        """Rebuild the equipment list and run hierarchy validation over it."""
        self._require(Stage.REVIEW)
        self.equipment = assign_hierarchy_levels(self._build_equipment())
        self.issues = validate_electrical_hierarchy(self.equipment)
        logger.info(
            "Validation: %d errors, %d warnings, %d info",
            len(self.issues.errors), len(self.issues.warnings), len(self.issues.info),
            extra=self._extra(),
        )
        return self.issues

    def apply_edit(self, edit: EquipmentEdit) -> HierarchyIssues:
        """
        Apply a field edit to the equipment list and re-validate.

        An edit that leaves a node invalid is not applied; `error` holds
        the reason and the current issues are returned unchanged.
        """
        self._require(Stage.REVIEW)
        try:
            edited = assign_hierarchy_levels(apply_edit(self.equipment, edit))
        except ValueError as e:
            self.error = f"Invalid edit to {edit.path}: {e}"
            logger.info("%s", self.error, extra=self._extra())
            return self.issues

        by_id = {node.id: node for node in edited}
        for i, item in enumerate(self.items):
            node = by_id.get(item.equipment_id)
            if node is not None:
                self.user_inputs[node.id] = node.user_inputs
                self.items[i] = item.model_copy(update={"extracted_data": node.extracted_data})

        self.equipment = edited
        self.issues = validate_electrical_hierarchy(self.equipment)
        self.error = None
        return self.issues

    def back_to_user_inputs(self) -> None:
        """Return to the last item's form."""
        self._require(Stage.REVIEW)
        self.current_index = len(self.valid_items) - 1
        self.field_errors = {}
        self._set_stage(Stage.USER_INPUTS)

    def proceed_to_save(self) -> bool:
        """
        Save the equipment into the project. Blocked while any
        error-severity issue remains. A failed save returns to REVIEW.
        """
        self._require(Stage.REVIEW)

        if not can_save(self.issues):
            self.error = SAVE_BLOCKED_MESSAGE
            logger.warning("Save blocked by %d errors", len(self.issues.errors), extra=self._extra())
            return False

        self.error = None
        self._set_stage(Stage.SAVE)
        self._progress("Saving equipment to project...")
        try:
            self.saved_project = self._save()
        except (SurveyError, OSError) as e:
            self._set_stage(Stage.REVIEW)
            return self._fail(SurveyError(f"Failed to save equipment to project: {e}"))

        self.progress_message = ""
        logger.info(
            "Saved %d equipment to project", len(self.equipment), extra=self._extra(),
        )
        return True

    # SAVE

    def _save(self) -> Project:
        project = self.repository.load(self.project_id)
        now = utc_now()

        saved = list(project.electrical_equipment)
        for node in self.equipment:
            extracted = node.extracted_data or ExtractedData()
            extracted = extracted.model_copy(update={"classification": node.classification})
            saved.append(node.model_copy(update={
                "equipment_number": len(saved) + 1,
                "extracted_data": extracted,
                "gap_flags": GapFlags(has_unreadable_fields=len(extracted.missing_fields) > 0),
                "captured_at": now,
                "last_modified": now,
            }))

        project.electrical_equipment = saved
        project.electrical_summary = build_electrical_summary(
            saved, validate_electrical_hierarchy(saved)
        )
        project.last_modified = now

        self.repository.save(project)
        return project

    def cancel_survey(self) -> None:
        """Abandon the survey at any stage. Nothing is written."""
        logger.info("Survey cancelled", extra=self._extra())
        self.images = []
        self.classified = []
        self.items = []
        self.user_inputs = {}
        self.equipment = []
        self.issues = None
        self.field_errors = {}
        self.progress_message = ""
        self.cancelled = True


__all__ = [
    "Stage",
    "SurveyWorkflow",
    "validate_user_inputs",
    "resolve_mounting",
    "default_user_inputs",
    "generate_equipment_id",
]
