"""
Pytest Configuration and Fixtures

Repositories talk to an in-memory mongomock database patched into the
MongoDB client module, so every test starts from an empty store.
"""

import mongomock
import pytest

from ticketflow.config.settings import settings
from ticketflow.repositories import mongo_client
from ticketflow.domain.models import Credit, Employee, RaisedBy, WorkflowGraphDocument
from ticketflow.services.directory_service import DirectoryService
from ticketflow.services.functionality_service import FunctionalityService
from ticketflow.engine.engine import WorkflowEngine


EMPLOYEES = {
    "A": "Alice Adams",
    "B": "Bob Brown",
    "C": "Carol Chen",
    "D": "Dan Diaz",
    "E": "Eve Evans",
}


def graph_document(nodes, edges) -> dict:
    """Build an editor-style graph document from compact tuples"""
    return {
        "nodes": nodes,
        "edges": [
            {"id": f"e{i}", "source": source, "target": target}
            for i, (source, target) in enumerate(edges, start=1)
        ],
    }


def start_node(node_id="start"):
    return {"id": node_id, "type": "start", "data": {"label": "Start"}}


def end_node(node_id="end", label="End"):
    return {"id": node_id, "type": "end", "data": {"label": label}}


def sequential_node(node_id, employee_id, label=None):
    return {
        "id": node_id,
        "type": "employee",
        "data": {"label": label or node_id, "nodeType": "sequential", "employeeId": employee_id},
    }


def parallel_node(node_id, lead, members, label=None):
    return {
        "id": node_id,
        "type": "employee",
        "data": {
            "label": label or node_id,
            "nodeType": "parallel",
            "employeeId": lead,
            "groupLead": lead,
            "groupMembers": members,
        },
    }


@pytest.fixture
def mongo_db(monkeypatch):
    """Fresh in-memory database for each test"""
    client = mongomock.MongoClient(tz_aware=True)
    database = client[settings.mongo_db]
    monkeypatch.setattr(mongo_client, "_client", client)
    monkeypatch.setattr(mongo_client, "_database", database)
    yield database
    client.close()


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    """Local attachment folder, no mail transport, no background jobs"""
    monkeypatch.setattr(settings, "attachments_base_path", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "aad_tenant_id", "")
    monkeypatch.setattr(settings, "aad_client_id", "")
    monkeypatch.setattr(settings, "service_mailbox_email", "")
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    return settings


@pytest.fixture
def directory(mongo_db):
    """Directory seeded with employees A to E"""
    service = DirectoryService()
    for employee_id, name in EMPLOYEES.items():
        service.upsert_employee(Employee(
            employee_id=employee_id,
            name=name,
            email=f"{employee_id.lower()}@example.com",
            department="IT"
        ))
    return service


@pytest.fixture
def credit():
    """Credit factory for seeded employees"""
    def _credit(employee_id: str) -> Credit:
        return Credit(user_id=employee_id, name=EMPLOYEES[employee_id])
    return _credit


@pytest.fixture
def requester():
    return RaisedBy(user_id="R1", name="Rita Requester", email="rita@example.com")


@pytest.fixture
def sequential_workflow():
    """Start -> n1(A) -> n2(B) -> n3(C) -> End"""
    return graph_document(
        [
            start_node(),
            sequential_node("n1", "A", "Triage"),
            sequential_node("n2", "B", "Review"),
            sequential_node("n3", "C", "Fix"),
            end_node(),
        ],
        [("start", "n1"), ("n1", "n2"), ("n2", "n3"), ("n3", "end")],
    )


@pytest.fixture
def parallel_workflow():
    """Start -> n1(A) -> team(lead B, members C, D) -> End"""
    return graph_document(
        [
            start_node(),
            sequential_node("n1", "A", "Triage"),
            parallel_node("team", "B", ["C", "D"], "Fix Team"),
            end_node(),
        ],
        [("start", "n1"), ("n1", "team"), ("team", "end")],
    )


@pytest.fixture
def branching_workflow():
    """Start -> n1(A) -> {n2(B) -> done, rejected}"""
    return graph_document(
        [
            start_node(),
            sequential_node("n1", "A"),
            sequential_node("n2", "B"),
            end_node("done", "Done"),
            end_node("rejected", "Rejected"),
        ],
        [("start", "n1"), ("n1", "n2"), ("n2", "done"), ("n1", "rejected")],
    )


@pytest.fixture
def make_functionality(mongo_db):
    """Create a functionality from a graph document"""
    def _make(workflow: dict, name: str = "Laptop Repair"):
        return FunctionalityService().create_functionality(
            name=name,
            department="IT",
            workflow=WorkflowGraphDocument.model_validate(workflow),
            description="Hardware faults"
        )
    return _make


@pytest.fixture
def engine(mongo_db, directory):
    return WorkflowEngine()


@pytest.fixture
def make_ticket(engine, make_functionality, requester):
    """Create a ticket on a fresh functionality built from workflow"""
    def _make(workflow: dict, form_data: dict = None):
        functionality = make_functionality(workflow)
        return engine.create_ticket(
            functionality_id=functionality.functionality_id,
            raised_by=requester,
            form_data=form_data or {"summary": "Screen flickers"}
        )
    return _make
