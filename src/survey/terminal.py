"""
Terminal-based Survey Interface
Interactive prompts for the user-input, review and save stages using questionary.
"""

from typing import List, Optional

import questionary
from questionary import Style

from .hierarchy import build_hierarchy_tree
from .models import (
    CONDITION_OPTIONS,
    CONDUIT_SIZE_OPTIONS,
    LOCATION_OPTIONS,
    WIRE_SIZE_OPTIONS,
    EquipmentEdit,
    PhysicalDimensions,
    UserInputs,
    WireSizes,
    mounting_options_for,
)
from .review import format_report, format_tree
from .workflow import Stage, SurveyWorkflow, resolve_mounting


# Custom style for the terminal interface
custom_style = Style([
    ('qmark', 'fg:#1a5490 bold'),
    ('question', 'bold'),
    ('answer', 'fg:#06989a bold'),
    ('pointer', 'fg:#1a5490 bold'),
    ('highlighted', 'fg:#1a5490 bold'),
    ('selected', 'fg:#06989a'),
    ('separator', 'fg:#6c6c6c'),
    ('instruction', ''),
    ('text', ''),
    ('disabled', 'fg:#858585 italic')
])

CUSTOM_LOCATION = "Custom (Enter Below)"
NO_PARENT = "(none - fed from utility)"
NONE_CHOICE = "(none)"


class SurveyTerminalInterface:
    """Interactive terminal front end for a SurveyWorkflow."""

    def __init__(self, workflow: SurveyWorkflow):
        self.workflow = workflow

    def show_header(self):
        """Display the application header."""
        print("\n" + "=" * 70)
        print("║  MEP ELECTRICAL SURVEY".center(70) + "║")
        print("║  Terminal Interface".center(70) + "║")
        print("=" * 70 + "\n")

    def show_section_header(self, title: str):
        print("\n" + "─" * 70)
        print(f"  {title}")
        print("─" * 70 + "\n")

    def run_user_inputs(self) -> bool:
        """
        Collect inputs for each equipment item until REVIEW is reached.

        Returns:
            False if the user backed out to AI_ANALYSIS
        """
        wf = self.workflow
        while wf.stage == Stage.USER_INPUTS:
            item = wf.current_item
            self.show_section_header(
                f"EQUIPMENT {wf.current_index + 1} OF {len(wf.valid_items)}: "
                f"{item.classification.equipment_type}"
            )
            self.show_extracted(item.extracted_data)

            inputs = self.collect_user_inputs(
                wf.current_inputs, item.classification.equipment_type
            )
            if inputs is None:
                wf.cancel_user_inputs()
                continue

            if not wf.submit_user_inputs(inputs):
                for field, message in wf.field_errors.items():
                    print(f"  ✗ {field}: {message}")

        return wf.stage == Stage.REVIEW

    def show_extracted(self, extracted_data):
        if extracted_data is None:
            return
        print(f"  Manufacturer: {extracted_data.manufacturer or '-'}")
        print(f"  Model:        {extracted_data.model or '-'}")
        print(f"  Voltage:      {extracted_data.voltage or '-'}")
        print(f"  Rating:       {extracted_data.rating or '-'}")
        if extracted_data.missing_fields:
            print(f"  Unreadable:   {', '.join(extracted_data.missing_fields)}")
        print()

    def collect_user_inputs(self, defaults: UserInputs,
                            classification_type: str) -> Optional[UserInputs]:
        """
        Prompt for one item's inputs.

        Returns:
            UserInputs, or None if the user chose to go back
        """
        if not questionary.confirm("Enter details for this equipment?", default=True,
                                   style=custom_style).ask():
            return None

        designation = questionary.text(
            "Designation (e.g. Panel LP-1):", default=defaults.designation, style=custom_style
        ).ask()

        location = questionary.select(
            "Location:", choices=LOCATION_OPTIONS + [CUSTOM_LOCATION],
            default=defaults.location if defaults.location in LOCATION_OPTIONS else None,
            style=custom_style
        ).ask()
        if location == CUSTOM_LOCATION:
            location = questionary.text("Custom location:", style=custom_style).ask()

        mounting_choices = mounting_options_for(classification_type)
        suggested = defaults.mounting.ai_suggested
        mounting_type = questionary.select(
            f"Mounting type{f' (AI suggested: {suggested})' if suggested else ''}:",
            choices=mounting_choices,
            default=suggested if suggested in mounting_choices else None,
            style=custom_style
        ).ask()

        wire_choices = list(WIRE_SIZE_OPTIONS)
        phase = self._select_size("Phase wire size:", wire_choices, defaults.wire_size.phase)
        neutral = self._select_size("Neutral wire size:", [NONE_CHOICE] + wire_choices,
                                    defaults.wire_size.neutral or NONE_CHOICE)
        ground = self._select_size("Ground wire size:", wire_choices, defaults.wire_size.ground)
        conduit = self._select_size("Conduit size:", list(CONDUIT_SIZE_OPTIONS), defaults.conduit_size)

        condition = questionary.select(
            "Condition:", choices=CONDITION_OPTIONS, default=defaults.condition or "Good",
            style=custom_style
        ).ask()

        notes = questionary.text("Notes (optional):", default=defaults.notes, style=custom_style).ask()

        dimensions = defaults.physical_dimensions
        if questionary.confirm("Record physical dimensions?", default=False, style=custom_style).ask():
            dimensions = PhysicalDimensions(
                width=questionary.text("Width:", default=dimensions.width, style=custom_style).ask() or "",
                height=questionary.text("Height:", default=dimensions.height, style=custom_style).ask() or "",
                depth=questionary.text("Depth:", default=dimensions.depth, style=custom_style).ask() or "",
                distance_from_wall=questionary.text(
                    "Distance from wall:", default=dimensions.distance_from_wall, style=custom_style
                ).ask() or "",
            )

        return UserInputs(
            designation=designation or "",
            location=location or "",
            mounting=resolve_mounting(mounting_type or "", suggested),
            wire_size=WireSizes(
                phase=phase or "",
                neutral="" if neutral in (None, NONE_CHOICE) else neutral,
                ground=ground or "",
            ),
            conduit_size=conduit or "",
            physical_dimensions=dimensions,
            condition=condition or "Good",
            notes=notes or "",
        )

    def _select_size(self, prompt: str, choices: List[str], default: str) -> Optional[str]:
        return questionary.select(
            prompt, choices=choices, default=default if default in choices else None,
            style=custom_style
        ).ask()

    def run_review(self) -> bool:
        """
        Show validation results, let the user link parents, then offer to save.

        Returns:
            True if the equipment was saved
        """
        wf = self.workflow
        while wf.stage == Stage.REVIEW:
            self.show_section_header("REVIEW")
            for line in format_tree(build_hierarchy_tree(wf.equipment, wf.issues)):
                print(f"  {line}")
            print()
            for line in format_report(wf.equipment, wf.issues):
                print(f"  {line}")
            print()

            actions = ["Set parent equipment", "Edit equipment details"]
            if wf.can_save:
                actions.append("Save to project")
            actions.append("Cancel survey")

            action = questionary.select("Next step:", choices=actions, style=custom_style).ask()

            if action == "Set parent equipment":
                self.assign_parent()
            elif action == "Edit equipment details":
                wf.back_to_user_inputs()
                self.run_user_inputs()
            elif action == "Save to project":
                if not wf.proceed_to_save():
                    print(f"  ✗ {wf.error}")
            else:
                wf.cancel_survey()
                return False

        return wf.completed

    def assign_parent(self):
        wf = self.workflow
        labels = {f"{n.label} [{n.type.value}] {n.id}": n.id for n in wf.equipment}

        child = questionary.select("Equipment:", choices=list(labels), style=custom_style).ask()
        if child is None:
            return

        parents = [NO_PARENT] + [label for label in labels if labels[label] != labels[child]]
        parent = questionary.select("Fed from:", choices=parents, style=custom_style).ask()
        if parent is None:
            return

        wf.apply_edit(EquipmentEdit(
            equipment_id=labels[child],
            path="parentId",
            value=None if parent == NO_PARENT else labels[parent],
        ))


__all__ = ["SurveyTerminalInterface"]
