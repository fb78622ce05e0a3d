import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from survey.hierarchy import assign_hierarchy_levels, validate_electrical_hierarchy
from survey.models import EquipmentNode


def build_feeder_tree(num_panels):
    """One service disconnect feeding a chain of panels, every fifth one back at the root."""
    nodes = [EquipmentNode.model_validate({
        "id": "sd", "type": "service_disconnect",
        "extractedData": {"electrical": {"voltage": "480V", "busRating": "2000A"}},
    })]
    for i in range(num_panels):
        parent = "sd" if i % 5 == 0 else f"p{i - 1}"
        nodes.append(EquipmentNode.model_validate({
            "id": f"p{i}", "type": "panel", "parentId": parent,
            "extractedData": {"electrical": {"voltage": "480V", "busRating": "400A"}},
        }))
    return nodes


def run_performance_test(num_panels=1000):
    nodes = build_feeder_tree(num_panels)
    start_time = time.time()
    nodes = assign_hierarchy_levels(nodes)
    issues = validate_electrical_hierarchy(nodes)
    end_time = time.time()
    print(f"Validated {len(nodes)} nodes in {end_time - start_time:.4f} seconds "
          f"({len(issues.errors)} errors, {len(issues.warnings)} warnings).")
    print(f"Average time per node: {(end_time - start_time) / len(nodes) * 1000:.4f} ms")


if __name__ == "__main__":
    print("Running performance test...")
    run_performance_test()
