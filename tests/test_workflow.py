"""
Tests for the Survey Workflow

Drives the workflow with an in-memory project store and a mock-mode
analysis adapter fed scripted responses.
"""

import itertools
import sys
import unittest
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from survey.analysis_adapter import AnalysisAdapter
from survey.exceptions import InvalidTransitionError
from survey.models import (
    DEFAULT_MOUNTING_OPTIONS,
    EquipmentEdit,
    EquipmentType,
    Project,
    UserInputs,
    map_classification_to_equipment_type,
    map_classification_to_extraction_type,
    mounting_options_for,
)
from survey.project_store import InMemoryProjectStore
from survey.workflow import (
    SAVE_BLOCKED_MESSAGE,
    SKIP_POOR_QUALITY,
    SKIP_UNKNOWN,
    Stage,
    SurveyWorkflow,
    resolve_mounting,
    validate_user_inputs,
)


def classification(equipment_type, feasibility="FULL"):
    return {
        "equipmentType": equipment_type,
        "confidence": "high",
        "imageQuality": "good",
        "extractionFeasibility": feasibility,
        "issues": [],
    }


def extraction(voltage="480V", bus_rating="200A", overall=0.9, missing=None, mounting=None):
    data = {
        "manufacturer": "Square D",
        "model": "NQOD",
        "electrical": {"voltage": voltage, "busRating": bus_rating},
        "confidenceScores": {"overall": overall},
        "missingFields": missing or [],
    }
    if mounting:
        data["mounting"] = {"type": mounting}
    return data


def good_inputs(designation="LP-1", phase="250 kcmil", conduit='3"'):
    return {
        "designation": designation,
        "location": "Electrical Room",
        "wireSize": {"phase": phase, "neutral": "", "ground": "4 AWG"},
        "conduitSize": conduit,
    }


class WorkflowTestCase(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryProjectStore([Project(id="PRJ-1", name="Test Site")])
        self.messages = []
        counter = itertools.count(1)
        self.id_factory = lambda: f"EQ-{next(counter)}"

    def make_workflow(self, classifications, extractions):
        adapter = AnalysisAdapter(mock_responses={
            "classifications": classifications,
            "extractions": extractions,
        })
        workflow = SurveyWorkflow(
            "PRJ-1", self.store, adapter,
            progress_callback=self.messages.append,
            id_factory=self.id_factory,
        )
        self.assertTrue(workflow.start())
        return workflow


class TestClassificationAndAnalysis(WorkflowTestCase):

    def test_unknown_image_is_skipped(self):
        """UNKNOWN + PANEL_NAMEPLATE gives one skipped and one extracted item."""
        wf = self.make_workflow(
            [classification("UNKNOWN"), classification("PANEL_NAMEPLATE")],
            [extraction()],
        )
        wf.upload_images(["img-a", "img-b"])

        self.assertTrue(wf.proceed_to_classification())
        self.assertEqual(wf.stage, Stage.AI_ANALYSIS)
        self.assertEqual(len(wf.items), 2)

        skipped = wf.skipped_items
        self.assertEqual(len(skipped), 1)
        self.assertEqual(skipped[0].image_index, 0)
        self.assertEqual(skipped[0].skip_reason, SKIP_UNKNOWN)
        self.assertIsNone(skipped[0].extracted_data)

        self.assertEqual(len(wf.valid_items), 1)
        self.assertEqual(wf.valid_items[0].extracted_data.voltage, "480V")

        self.assertTrue(wf.proceed_to_user_inputs())
        self.assertEqual(wf.stage, Stage.USER_INPUTS)

    def test_infeasible_extraction_is_skipped(self):
        wf = self.make_workflow([classification("TRANSFORMER", feasibility="NONE")], [])
        wf.upload_images(["img"])
        self.assertTrue(wf.proceed_to_classification())
        self.assertEqual(wf.items[0].skip_reason, SKIP_POOR_QUALITY)

    def test_progress_messages(self):
        wf = self.make_workflow(
            [classification("PANEL_NAMEPLATE"), classification("TRANSFORMER")],
            [extraction(), extraction()],
        )
        wf.upload_images(["a", "b"])
        wf.proceed_to_classification()

        self.assertIn("Classifying image 1 of 2...", self.messages)
        self.assertIn("Classifying image 2 of 2...", self.messages)
        self.assertIn("Analyzing TRANSFORMER (2 of 2)...", self.messages)

    def test_no_images(self):
        wf = self.make_workflow([], [])
        self.assertFalse(wf.proceed_to_classification())
        self.assertEqual(wf.stage, Stage.IMAGE_UPLOAD)
        self.assertEqual(wf.error, "Please upload at least one image")

    def test_classification_failure_aborts_pass(self):
        wf = self.make_workflow(
            [classification("PANEL_NAMEPLATE"), {"error": "timeout"}],
            [extraction()],
        )
        wf.upload_images(["a", "b"])

        self.assertFalse(wf.proceed_to_classification())
        self.assertEqual(wf.stage, Stage.IMAGE_UPLOAD)
        self.assertIn("Classification failed for image 2", wf.error)
        self.assertEqual(wf.items, [])
        self.assertEqual(wf.images, ["a", "b"])

    def test_extraction_failure_and_retry(self):
        wf = self.make_workflow(
            [classification("PANEL_NAMEPLATE")],
            [{"success": False, "data": None}, extraction()],
        )
        wf.upload_images(["a"])

        self.assertFalse(wf.proceed_to_classification())
        self.assertEqual(wf.stage, Stage.AI_ANALYSIS)
        self.assertIn("Data extraction failed for image 1", wf.error)

        self.assertTrue(wf.retry_extraction())
        self.assertIsNone(wf.error)
        self.assertEqual(len(wf.valid_items), 1)
        self.assertEqual(wf.valid_items[0].equipment_id, "EQ-1")

    def test_malformed_extraction_is_reported(self):
        """Data that passes the response schema but not the model fails the stage."""
        for bad in ({"electrical": {"voltage": ["480V", "277V"]}}, {"mounting": "Surface"}):
            with self.subTest(extraction=bad):
                wf = self.make_workflow([classification("PANEL_NAMEPLATE")], [bad])
                wf.upload_images(["a"])

                self.assertFalse(wf.proceed_to_classification())
                self.assertEqual(wf.stage, Stage.AI_ANALYSIS)
                self.assertEqual(wf.items, [])
                self.assertIn("Data extraction failed for image 1", wf.error)

    def test_numeric_nameplate_text(self):
        data = extraction()
        data["serialNumber"] = 12345678
        wf = self.make_workflow([classification("PANEL_NAMEPLATE")], [data])
        wf.upload_images(["a"])

        self.assertTrue(wf.proceed_to_classification())
        self.assertEqual(wf.valid_items[0].extracted_data.serial_number, "12345678")

    def test_all_skipped(self):
        wf = self.make_workflow([classification("UNKNOWN")], [])
        wf.upload_images(["a"])
        wf.proceed_to_classification()

        self.assertFalse(wf.proceed_to_user_inputs())
        self.assertEqual(wf.stage, Stage.AI_ANALYSIS)
        self.assertEqual(wf.error, "No valid equipment found. All images were skipped.")

    def test_wrong_stage_raises(self):
        wf = self.make_workflow([], [])
        with self.assertRaises(InvalidTransitionError):
            wf.proceed_to_user_inputs()
        with self.assertRaises(InvalidTransitionError):
            wf.proceed_to_save()

    def test_missing_project(self):
        wf = SurveyWorkflow("PRJ-missing", self.store, AnalysisAdapter())
        self.assertFalse(wf.start())
        self.assertIn("PRJ-missing", wf.error)


class TestUserInputs(WorkflowTestCase):

    def setUp(self):
        super().setUp()
        self.wf = self.make_workflow(
            [classification("SERVICE_DISCONNECT"), classification("PANEL_NAMEPLATE")],
            [extraction(mounting="Surface"), extraction(voltage="600V", bus_rating="100A")],
        )
        self.wf.upload_images(["a", "b"])
        self.wf.proceed_to_classification()
        self.wf.proceed_to_user_inputs()

    def test_required_fields(self):
        self.assertFalse(self.wf.submit_user_inputs(UserInputs()))
        self.assertEqual(
            set(self.wf.field_errors),
            {"designation", "location", "wireSize.phase", "wireSize.ground", "conduitSize"},
        )
        self.assertEqual(self.wf.current_index, 0)

    def test_undersized_phase_wire(self):
        """200A continuous needs 250A of ampacity; 3/0 AWG is 200A."""
        self.assertFalse(self.wf.submit_user_inputs(good_inputs(phase="3/0 AWG")))
        self.assertIn("undersized", self.wf.field_errors["wireSize.phase"])

    def test_conduit_overfill(self):
        self.assertFalse(self.wf.submit_user_inputs(good_inputs(conduit='1"')))
        self.assertIn("exceeds", self.wf.field_errors["conduitSize"])

    def test_malformed_inputs_become_field_errors(self):
        inputs = good_inputs()
        inputs["designation"] = None
        inputs["wireSize"]["phase"] = 10

        self.assertFalse(self.wf.submit_user_inputs(inputs))
        self.assertIn("designation", self.wf.field_errors)
        self.assertIn("wireSize.phase", self.wf.field_errors)
        self.assertEqual(self.wf.stage, Stage.USER_INPUTS)
        self.assertEqual(self.wf.current_index, 0)

    def test_mounting_prefilled_from_suggestion(self):
        inputs = self.wf.current_inputs
        self.assertEqual(inputs.mounting.type, "Surface")
        self.assertEqual(inputs.mounting.ai_suggested, "Surface")
        self.assertFalse(inputs.mounting.user_override)

    def test_advance_and_cancel(self):
        self.assertTrue(self.wf.submit_user_inputs(good_inputs("MDS")))
        self.assertEqual(self.wf.current_index, 1)

        self.wf.cancel_user_inputs()
        self.assertEqual(self.wf.current_index, 0)
        self.assertEqual(self.wf.current_inputs.designation, "MDS")

        self.wf.cancel_user_inputs()
        self.assertEqual(self.wf.stage, Stage.AI_ANALYSIS)

    def test_last_item_moves_to_review(self):
        self.wf.submit_user_inputs(good_inputs("MDS"))
        self.wf.submit_user_inputs(good_inputs("LP-1", phase="1 AWG", conduit='2-1/2"'))

        self.assertEqual(self.wf.stage, Stage.REVIEW)
        self.assertEqual([n.id for n in self.wf.equipment], ["EQ-1", "EQ-2"])
        self.assertEqual([n.type.value for n in self.wf.equipment], ["service_disconnect", "panel"])
        self.assertIsNotNone(self.wf.issues)


class TestValidateUserInputs(unittest.TestCase):

    def test_unknown_rating_skips_ampacity_check(self):
        errors = validate_user_inputs(UserInputs.model_validate(good_inputs(phase="14 AWG", conduit='1"')))
        self.assertNotIn("wireSize.phase", errors)

    def test_ground_counted_in_fill(self):
        inputs = good_inputs(phase="10 AWG", conduit='1/2"')
        inputs["wireSize"]["ground"] = "14 AWG"
        self.assertIn("conduitSize", validate_user_inputs(UserInputs.model_validate(inputs)))

    def test_mounting_override(self):
        self.assertFalse(resolve_mounting("Surface", "Surface").user_override)
        self.assertTrue(resolve_mounting("Flush", "Surface").user_override)


class TestClassificationMapping(unittest.TestCase):

    def test_extraction_types(self):
        self.assertEqual(map_classification_to_extraction_type("TRANSFORMER"), "transformer")
        self.assertEqual(map_classification_to_extraction_type("METER_ENCLOSURE"), "meter")
        self.assertEqual(map_classification_to_extraction_type("PANEL_INTERIOR"), "electrical")
        self.assertEqual(map_classification_to_extraction_type("SWITCHGEAR"), "electrical")
        self.assertIsNone(map_classification_to_extraction_type("UNKNOWN"))

    def test_equipment_types(self):
        self.assertEqual(map_classification_to_equipment_type("SERVICE_DISCONNECT"),
                         EquipmentType.SERVICE_DISCONNECT)
        self.assertEqual(map_classification_to_equipment_type("SWITCHGEAR"), EquipmentType.PANEL)

    def test_mounting_options(self):
        self.assertIn("Pad", mounting_options_for("TRANSFORMER"))
        self.assertEqual(mounting_options_for(None), DEFAULT_MOUNTING_OPTIONS)


class TestReviewAndSave(WorkflowTestCase):

    def setUp(self):
        super().setUp()
        self.wf = self.make_workflow(
            [classification("SERVICE_DISCONNECT"), classification("PANEL_NAMEPLATE")],
            [
                extraction(voltage="480V", bus_rating="200A", overall=0.9),
                extraction(voltage="600V", bus_rating="100A", overall=None, missing=["serialNumber"]),
            ],
        )
        self.wf.upload_images(["a", "b"])
        self.wf.proceed_to_classification()
        self.wf.proceed_to_user_inputs()
        self.wf.submit_user_inputs(good_inputs("MDS"))
        self.wf.submit_user_inputs(good_inputs("LP-1", phase="1 AWG", conduit='2-1/2"'))
        self.wf.apply_edit(EquipmentEdit(equipment_id="EQ-2", path="parentId", value="EQ-1"))

    def test_save_gate(self):
        """An error blocks saving until the data is corrected."""
        self.assertEqual([e.type for e in self.wf.issues.errors], ["voltage_step_up"])
        self.assertFalse(self.wf.can_save)
        self.assertFalse(self.wf.proceed_to_save())
        self.assertEqual(self.wf.error, SAVE_BLOCKED_MESSAGE)
        self.assertEqual(self.wf.stage, Stage.REVIEW)

        self.wf.apply_edit(EquipmentEdit(
            equipment_id="EQ-2", path="extractedData.electrical.voltage", value="480V"))
        self.assertEqual(self.wf.issues.errors, [])
        self.assertTrue(self.wf.can_save)
        self.assertIsNone(self.wf.error)

    def test_invalid_edit_not_applied(self):
        before = self.wf.issues
        issues = self.wf.apply_edit(EquipmentEdit(equipment_id="EQ-2", path="type", value="hvac"))

        self.assertIs(issues, before)
        self.assertIn("Invalid edit to type", self.wf.error)
        self.assertEqual(self.wf.equipment[1].type.value, "panel")
        self.assertEqual(self.wf.stage, Stage.REVIEW)

    def test_edit_recomputes_levels(self):
        levels = {n.id: n.hierarchy_level for n in self.wf.equipment}
        self.assertEqual(levels, {"EQ-1": 0, "EQ-2": 1})

    def test_back_to_user_inputs_keeps_edits(self):
        self.wf.back_to_user_inputs()
        self.assertEqual(self.wf.stage, Stage.USER_INPUTS)
        self.assertEqual(self.wf.current_index, 1)

        self.wf.submit_user_inputs(good_inputs("LP-1A", phase="1 AWG", conduit='2-1/2"'))
        self.assertEqual(self.wf.stage, Stage.REVIEW)
        panel = self.wf.equipment[1]
        self.assertEqual(panel.parent_id, "EQ-1")
        self.assertEqual(panel.user_inputs.designation, "LP-1A")

    def test_save_merges_into_project(self):
        self.wf.apply_edit(EquipmentEdit(
            equipment_id="EQ-2", path="extractedData.electrical.voltage", value="208Y/120V"))
        self.assertTrue(self.wf.proceed_to_save())
        self.assertTrue(self.wf.completed)

        project = self.store.load("PRJ-1")
        equipment = project.electrical_equipment
        self.assertEqual([e.id for e in equipment], ["EQ-1", "EQ-2"])
        self.assertEqual([e.equipment_number for e in equipment], [1, 2])
        self.assertEqual(equipment[1].parent_id, "EQ-1")
        self.assertEqual(equipment[0].extracted_data.classification.equipment_type, "SERVICE_DISCONNECT")
        self.assertFalse(equipment[0].gap_flags.has_unreadable_fields)
        self.assertTrue(equipment[1].gap_flags.has_unreadable_fields)
        self.assertIsNotNone(equipment[0].captured_at)

        summary = project.electrical_summary
        self.assertEqual(summary.total_equipment, 2)
        self.assertEqual(summary.by_type, {"service_disconnect": 1, "panel": 1})
        self.assertAlmostEqual(summary.average_confidence, 0.7)
        self.assertTrue(summary.hierarchy_complete)

    def test_second_survey_numbers_continue(self):
        self.wf.apply_edit(EquipmentEdit(equipment_id="EQ-2", path="parentId", value=None))
        self.wf.proceed_to_save()

        wf = self.make_workflow([classification("METER_ENCLOSURE")], [extraction()])
        wf.upload_images(["c"])
        wf.proceed_to_classification()
        wf.proceed_to_user_inputs()
        wf.submit_user_inputs(good_inputs("M-1"))
        self.assertTrue(wf.proceed_to_save())

        project = self.store.load("PRJ-1")
        self.assertEqual([e.equipment_number for e in project.electrical_equipment], [1, 2, 3])
        self.assertEqual(project.electrical_equipment[2].type.value, "meter")

    def test_save_failure_returns_to_review(self):
        self.wf.apply_edit(EquipmentEdit(equipment_id="EQ-2", path="parentId", value=None))
        self.store.delete("PRJ-1")

        self.assertFalse(self.wf.proceed_to_save())
        self.assertEqual(self.wf.stage, Stage.REVIEW)
        self.assertIn("Failed to save equipment to project", self.wf.error)

    def test_cancel_discards_everything(self):
        self.wf.cancel_survey()
        self.assertTrue(self.wf.cancelled)
        self.assertEqual(self.wf.equipment, [])
        self.assertEqual(self.store.load("PRJ-1").electrical_equipment, [])
        with self.assertRaises(InvalidTransitionError):
            self.wf.proceed_to_save()


if __name__ == '__main__':
    unittest.main()
