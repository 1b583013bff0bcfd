"""
Seed Data Script - Creates a sample directory and functionality for testing
Run: python -m scripts.seed_data
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ticketflow.repositories.mongo_client import get_collection, create_indexes
from ticketflow.domain.models import Employee, WorkflowGraphDocument
from ticketflow.services.directory_service import DirectoryService
from ticketflow.services.functionality_service import FunctionalityService


SAMPLE_EMPLOYEES = [
    Employee(employee_id="E100", name="Asha Rao", email="asha.rao@example.com", department="IT"),
    Employee(employee_id="E200", name="Ben Ortiz", email="ben.ortiz@example.com", department="IT"),
    Employee(employee_id="E300", name="Chen Li", email="chen.li@example.com", department="IT"),
    Employee(employee_id="E400", name="Dana Kim", email="dana.kim@example.com", department="IT"),
]

# Start -> triage (sequential) -> fix team (parallel) -> End
SAMPLE_WORKFLOW = {
    "nodes": [
        {"id": "start", "type": "start", "data": {"label": "Start"}},
        {"id": "triage", "type": "employee", "data": {
            "label": "Triage", "nodeType": "sequential", "employeeId": "E100"
        }},
        {"id": "fix", "type": "employee", "data": {
            "label": "Fix Team", "nodeType": "parallel", "employeeId": "E200",
            "groupLead": "E200", "groupMembers": ["E300", "E400"]
        }},
        {"id": "end", "type": "end", "data": {"label": "Done"}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "triage"},
        {"id": "e2", "source": "triage", "target": "fix"},
        {"id": "e3", "source": "fix", "target": "end"},
    ],
}


def seed():
    """Seed employees and one functionality"""
    create_indexes()

    directory = DirectoryService()
    for employee in SAMPLE_EMPLOYEES:
        directory.upsert_employee(employee)
    print(f"Upserted {len(SAMPLE_EMPLOYEES)} employees")

    if get_collection("functionalities").count_documents({}) > 0:
        print("Functionalities already present. Skipping functionality seed.")
        return

    functionality = FunctionalityService().create_functionality(
        name="Laptop Repair",
        department="IT",
        description="Hardware faults on company laptops",
        workflow=WorkflowGraphDocument.model_validate(SAMPLE_WORKFLOW)
    )
    print(f"Created functionality {functionality.functionality_id} ({functionality.name})")


if __name__ == "__main__":
    seed()
