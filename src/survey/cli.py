"""
MEP Survey CLI Commands
Command-line interface for NEC checks, projects and electrical surveys.
"""

import json
import sys
from typing import List, Optional, Tuple

import click
from pydantic import ValidationError

from algorithms.nec_calculations import (
    Conductor,
    find_minimum_conduit_size,
    find_minimum_wire_size,
    get_wire_size_recommendation,
    validate_conduit_fill,
    validate_wire_size,
)

from .analysis_adapter import AnalysisAdapter
from .config import load_config
from .exceptions import SurveyError
from .hierarchy import build_hierarchy_tree, validate_electrical_hierarchy
from .image_processor import ImageProcessor
from .logging_config import setup_logging
from .models import EquipmentEdit, EquipmentNode
from .project_store import JSONProjectStore
from .review import format_report, format_tree
from .workflow import Stage, SurveyWorkflow


def _fail(message: str, code: int = 1):
    click.secho(f"✗ {message}", fg="red", err=True)
    sys.exit(code)


def _parse_conductors(values: Tuple[str, ...]) -> List[Conductor]:
    """Parse "GAUGE:COUNT" options, e.g. "10 AWG:3". Count defaults to 1."""
    conductors = []
    for value in values:
        gauge, sep, count = value.rpartition(":")
        if not sep:
            gauge, count = value, "1"
        try:
            count = int(count)
        except ValueError:
            raise click.BadParameter(f"Invalid conductor spec: {value!r} (expected GAUGE:COUNT)")
        if count < 1:
            raise click.BadParameter(f"Conductor count must be at least 1: {value!r}")
        conductors.append(Conductor(gauge.strip(), count))
    return conductors


def _store(ctx) -> JSONProjectStore:
    return JSONProjectStore(ctx.obj["config"]["store"]["path"])


@click.group()
@click.version_option(version='1.0.0')
@click.option('--config', 'config_path', type=click.Path(), help='YAML config file')
@click.option('--log-level', help='Logging level (DEBUG, INFO, WARNING, ERROR)')
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str]):
    """
    MEP Survey - electrical equipment survey and NEC validation CLI
    """
    try:
        config = load_config(config_path)
    except SurveyError as e:
        _fail(str(e))

    setup_logging(log_level or config["logging"]["level"], bool(config["logging"]["json"]))
    ctx.obj = {"config": config}


@cli.group()
def lookup():
    """Look up NEC table values."""
    pass


@lookup.command(name='wire-size')
@click.option('--amps', type=float, required=True, help='Load amperage (A)')
@click.option('--continuous/--non-continuous', default=True, help='Apply the 125% continuous load rule')
@click.option('--distance', type=float, default=100, help='One-way run length (ft)')
def lookup_wire_size(amps: float, continuous: bool, distance: float):
    """Find the minimum copper wire size for a load."""

    if continuous:
        rec = get_wire_size_recommendation(amps, distance_feet=distance)
        click.echo(f"\nMinimum wire size for {amps}A continuous load:")
        click.echo(f"  {rec['min_size_by_ampacity']} (requires {rec['required_amps']}A)")
        for note in rec["notes"]:
            click.echo(f"  • {note}")
    else:
        click.echo(f"\nMinimum wire size for {amps}A load:")
        click.echo(f"  {find_minimum_wire_size(amps)}")


@lookup.command(name='conduit-size')
@click.option('--conductor', 'conductors', multiple=True, required=True,
              help='Conductor group as "GAUGE:COUNT" (repeatable)')
def lookup_conduit_size(conductors: Tuple[str, ...]):
    """Find the minimum conduit size for a set of conductors."""

    size = find_minimum_conduit_size(_parse_conductors(conductors))
    if size is None:
        _fail("Unknown wire size in conductor list")

    click.echo(f"\nMinimum conduit size:")
    click.echo(f"  {size}")


@cli.group()
def validate():
    """Validate wiring and equipment hierarchies."""
    pass


@validate.command(name='wire')
@click.option('--size', required=True, help='Wire size (e.g., "3/0 AWG")')
@click.option('--amps', type=float, required=True, help='Load amperage (A)')
@click.option('--continuous/--non-continuous', default=True, help='Apply the 125% continuous load rule')
def validate_wire(size: str, amps: float, continuous: bool):
    """Check a wire size against a load."""

    result = validate_wire_size(size, amps, continuous_load=continuous)

    if result["valid"]:
        click.echo(f"✓ {size} OK: {result['actual_amps']}A capacity, "
                   f"{result['required_amps']}A required (margin {result['margin']:g}A)")
        return

    click.echo(f"✗ {result['error']}")
    if result.get("suggested_size"):
        click.echo(f"  Suggested size: {result['suggested_size']}")
    sys.exit(1)


@validate.command(name='conduit')
@click.option('--size', required=True, help='Conduit trade size (e.g., \'1"\')')
@click.option('--conductor', 'conductors', multiple=True, required=True,
              help='Conductor group as "GAUGE:COUNT" (repeatable)')
def validate_conduit(size: str, conductors: Tuple[str, ...]):
    """Check conduit fill for a set of conductors."""

    result = validate_conduit_fill(size, _parse_conductors(conductors))

    if result["valid"]:
        click.echo(f"✓ Fill {result['fill_percentage']}% (limit {result['max_fill_percentage']}%)")
        if result.get("warning"):
            click.echo(f"  ! {result['warning']}")
        return

    click.echo(f"✗ {result['error']}")
    if result.get("suggested_size"):
        click.echo(f"  Suggested size: {result['suggested_size']}")
    sys.exit(1)


@validate.command(name='hierarchy')
@click.argument('input_file', type=click.Path(exists=True))
def validate_hierarchy(input_file: str):
    """Validate a JSON list of equipment records."""

    with open(input_file, 'r') as f:
        try:
            records = json.load(f)
        except json.JSONDecodeError as e:
            _fail(f"Invalid JSON: {e}")

    if isinstance(records, dict):
        records = records.get("electricalEquipment", [])

    try:
        nodes = [EquipmentNode.model_validate(r) for r in records]
    except ValidationError as e:
        _fail(f"Invalid equipment record: {e}")

    issues = validate_electrical_hierarchy(nodes)

    for line in format_tree(build_hierarchy_tree(nodes, issues)):
        click.echo(line)
    click.echo()
    for line in format_report(nodes, issues):
        click.echo(line)

    if issues.has_errors:
        sys.exit(1)


@cli.group()
def project():
    """Manage survey projects."""
    pass


@project.command(name='create')
@click.argument('name')
@click.option('--address', help='Site address')
@click.pass_context
def project_create(ctx, name: str, address: Optional[str]):
    """Create a new project."""

    created = _store(ctx).create_project(name, address)
    click.echo(f"✓ Created project {created.id}")


@project.command(name='list')
@click.pass_context
def project_list(ctx):
    """List projects, newest first."""

    projects = _store(ctx).list_projects()
    if not projects:
        click.echo("No projects")
        return

    for p in projects:
        count = len(p.electrical_equipment)
        click.echo(f"{p.id}  {p.name}  ({count} equipment, modified {p.last_modified})")


@project.command(name='show')
@click.argument('project_id')
@click.pass_context
def project_show(ctx, project_id: str):
    """Show a project's equipment and summary."""

    try:
        p = _store(ctx).load(project_id)
    except SurveyError as e:
        _fail(str(e))

    click.echo(f"\n{p.name} ({p.id})")
    if p.address:
        click.echo(f"  {p.address}")

    summary = p.electrical_summary
    if summary:
        by_type = ", ".join(f"{k}: {v}" for k, v in sorted(summary.by_type.items()))
        click.echo(f"\n  Equipment: {summary.total_equipment} ({by_type})")
        click.echo(f"  Average confidence: {summary.average_confidence:.2f}")
        click.echo(f"  Validation warnings: {summary.total_validation_warnings}")
        click.echo(f"  Hierarchy complete: {'yes' if summary.hierarchy_complete else 'no'}")

    if p.electrical_equipment:
        click.echo()
        issues = validate_electrical_hierarchy(p.electrical_equipment)
        for line in format_tree(build_hierarchy_tree(p.electrical_equipment, issues)):
            click.echo(f"  {line}")


@cli.group()
def survey():
    """Run electrical surveys."""
    pass


@survey.command(name='run')
@click.argument('project_id')
@click.option('--image', 'images', multiple=True, type=click.Path(exists=True), required=True,
              help='Nameplate photo (repeatable)')
@click.option('--inputs', 'inputs_file', type=click.Path(exists=True),
              help='JSON list of user inputs, one per analysed item')
@click.option('--interactive', is_flag=True, help='Interactive terminal form')
@click.option('--mock-responses', type=click.Path(exists=True),
              help='JSON file of scripted analysis responses')
@click.pass_context
def survey_run(ctx, project_id: str, images: Tuple[str, ...], inputs_file: Optional[str],
               interactive: bool, mock_responses: Optional[str]):
    """
    Survey equipment photos into a project.

    Each entry in the --inputs file is a userInputs record; an optional
    "parentIndex" links the item to an earlier item by position.
    """
    if not inputs_file and not interactive:
        _fail("Must specify either --inputs or --interactive")

    analysis_config = dict(ctx.obj["config"]["analysis"])
    if mock_responses:
        analysis_config["mock_responses_path"] = mock_responses

    try:
        adapter = AnalysisAdapter(analysis_config)
    except SurveyError as e:
        _fail(str(e))

    encoded, rejected = ImageProcessor().prepare_uploads(list(images))
    for path, errors in rejected.items():
        click.secho(f"! Skipping {path}: {'; '.join(errors)}", fg="yellow")

    workflow = SurveyWorkflow(project_id, _store(ctx), adapter, progress_callback=click.echo)
    if not workflow.start():
        _fail(workflow.error)

    workflow.upload_images(encoded)
    if not workflow.proceed_to_classification():
        _fail(workflow.error)

    for item in workflow.skipped_items:
        click.secho(f"! Image {item.image_index + 1} skipped: {item.skip_reason}", fg="yellow")

    if not workflow.proceed_to_user_inputs():
        _fail(workflow.error)

    if interactive:
        from .terminal import SurveyTerminalInterface

        interface = SurveyTerminalInterface(workflow)
        interface.show_header()
        if not interface.run_user_inputs() or not interface.run_review():
            _fail(workflow.error or "Survey not saved")
    else:
        _run_from_inputs(workflow, inputs_file)

    click.echo(f"✓ Saved {len(workflow.equipment)} equipment to project {project_id}")


def _run_from_inputs(workflow: SurveyWorkflow, inputs_file: str):
    with open(inputs_file, 'r') as f:
        entries = json.load(f)

    parents = {}
    for index, entry in enumerate(entries):
        if workflow.stage != Stage.USER_INPUTS:
            break
        if not isinstance(entry, dict):
            _fail(f"Inputs entry {index + 1} must be a JSON object")
        entry = dict(entry)
        if entry.get("parentIndex") is not None:
            parents[index] = entry.pop("parentIndex")
        entry.pop("parentIndex", None)

        if not workflow.submit_user_inputs(entry):
            for field, message in workflow.field_errors.items():
                click.secho(f"  ✗ item {index + 1} {field}: {message}", fg="red")
            _fail("User inputs rejected")

    if workflow.stage != Stage.REVIEW:
        _fail(f"Inputs file covers {len(entries)} of {len(workflow.valid_items)} items")

    ids = [node.id for node in workflow.equipment]
    for child, parent in parents.items():
        if not isinstance(parent, int) or not 0 <= parent < len(ids):
            _fail(f"Invalid parentIndex {parent} for item {child + 1}")
        workflow.apply_edit(EquipmentEdit(equipment_id=ids[child], path="parentId", value=ids[parent]))

    for line in format_report(workflow.equipment, workflow.issues):
        click.echo(line)

    if not workflow.proceed_to_save():
        _fail(workflow.error)


if __name__ == '__main__':
    cli()
