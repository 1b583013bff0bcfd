"""Workflow Graph - Validated, read-only view over an editor graph document

The graph is validated once at construction so traversal calls can rely on:
- exactly one Start node, with no inbound edge and a single outbound edge
  leading to an Employee node (the first employee node)
- at least one End node
- every edge references known nodes
- no node has more than one inbound edge, which makes the predecessor of a
  node (and so revert) well defined
"""
from collections import deque
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ..domain.enums import NodeKind
from ..domain.errors import NodeNotFoundError, WorkflowValidationError
from ..domain.models import GraphNode, WorkflowGraphDocument
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NodeAssignment(BaseModel):
    """Holder set produced by an employee node"""
    current_assignee: str
    current_assignees: List[str] = Field(default_factory=list)
    group_lead: Optional[str] = None


class WorkflowGraph:
    """
    Traversal primitives over a validated workflow graph

    Construct with a WorkflowGraphDocument or the raw dict stored on a
    functionality. Raises WorkflowValidationError listing every structural
    problem found.
    """

    def __init__(self, document: Union[WorkflowGraphDocument, Dict[str, Any]]):
        if not isinstance(document, WorkflowGraphDocument):
            document = WorkflowGraphDocument.model_validate(document)

        self.document = document
        self._nodes: Dict[str, GraphNode] = {}
        self._incoming: Dict[str, List[str]] = {}
        self._outgoing: Dict[str, List[str]] = {}

        errors = self._index()
        if not errors:
            errors = self._validate()
        if errors:
            raise WorkflowValidationError(
                "Workflow graph is invalid",
                details={"errors": errors}
            )

    # =========================================================================
    # Construction
    # =========================================================================

    def _index(self) -> List[str]:
        errors: List[str] = []

        for node in self.document.nodes:
            if node.id in self._nodes:
                errors.append(f"Duplicate node id '{node.id}'")
                continue
            self._nodes[node.id] = node
            self._incoming[node.id] = []
            self._outgoing[node.id] = []

        for edge in self.document.edges:
            missing = [end for end in (edge.source, edge.target) if end not in self._nodes]
            if missing:
                errors.append(
                    f"Edge {edge.id or edge.source + '->' + edge.target} references unknown node(s): "
                    f"{', '.join(missing)}"
                )
                continue
            self._outgoing[edge.source].append(edge.target)
            self._incoming[edge.target].append(edge.source)

        return errors

    def _validate(self) -> List[str]:
        errors: List[str] = []

        starts = [n for n in self._nodes.values() if n.type == NodeKind.START]
        ends = [n for n in self._nodes.values() if n.type == NodeKind.END]

        if len(starts) != 1:
            errors.append(f"Workflow must have exactly one start node (found {len(starts)})")
        if not ends:
            errors.append("Workflow must have at least one end node")

        for node_id, sources in self._incoming.items():
            if len(sources) > 1:
                errors.append(
                    f"Node '{node_id}' has {len(sources)} inbound edges; at most one is allowed"
                )

        for node in self._nodes.values():
            if node.type != NodeKind.EMPLOYEE:
                continue
            if node.is_parallel:
                if not (node.data.group_lead or node.data.employee_id):
                    errors.append(f"Parallel node '{node.id}' has no group lead")
            elif not node.data.employee_id:
                errors.append(f"Employee node '{node.id}' has no employee assigned")

        if len(starts) == 1:
            start = starts[0]
            if self._incoming[start.id]:
                errors.append("Start node must not have inbound edges")
            targets = self._outgoing[start.id]
            if len(targets) != 1:
                errors.append(
                    f"Start node must have exactly one outbound edge (found {len(targets)})"
                )
            elif self._nodes[targets[0]].type != NodeKind.EMPLOYEE:
                errors.append("First node after start must be an employee node")

            if not errors:
                unreachable = set(self._nodes) - self._reachable_from(start.id)
                if unreachable:
                    logger.warning(
                        f"Workflow graph has nodes unreachable from start: {sorted(unreachable)}"
                    )

        return errors

    def _reachable_from(self, node_id: str) -> set:
        seen = {node_id}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for target in self._outgoing[current]:
                if target not in seen:
                    seen.add(target)
                    queue.append(target)
        return seen

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    @property
    def start_node(self) -> GraphNode:
        return next(n for n in self._nodes.values() if n.type == NodeKind.START)

    @property
    def end_nodes(self) -> List[GraphNode]:
        return [n for n in self._nodes.values() if n.type == NodeKind.END]

    @property
    def first_employee_node(self) -> GraphNode:
        return self._nodes[self._outgoing[self.start_node.id][0]]

    def has_node(self, node_id: Optional[str]) -> bool:
        return node_id in self._nodes

    def node(self, node_id: str) -> GraphNode:
        """Get node by id or raise NodeNotFoundError"""
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(
                f"Node {node_id} not found in workflow",
                details={"node_id": node_id}
            )
        return node

    def target_of(self, node_id: str) -> GraphNode:
        """Resolve a forwarding target"""
        if node_id not in self._nodes:
            raise NodeNotFoundError(
                "Target node not found in workflow",
                details={"to_node": node_id}
            )
        return self._nodes[node_id]

    def is_first_employee_node(self, node_id: Optional[str]) -> bool:
        """True iff the single edge leaving Start targets node_id"""
        return node_id is not None and self.first_employee_node.id == node_id

    def predecessor_of(self, node_id: str) -> GraphNode:
        """Follow the unique inbound edge of node_id"""
        node = self.node(node_id)
        sources = self._incoming[node.id]
        if node.type == NodeKind.START or not sources:
            raise NodeNotFoundError(
                f"Node {node_id} has no predecessor in workflow",
                details={"node_id": node_id}
            )
        return self._nodes[sources[0]]

    def successors_of(self, node_id: str) -> List[GraphNode]:
        node = self.node(node_id)
        return [self._nodes[target] for target in self._outgoing[node.id]]

    def assignment_for(self, node: GraphNode) -> NodeAssignment:
        """
        Holder set an employee node produces

        Parallel nodes yield the lead first followed by the remaining members;
        sequential nodes yield their single employee.
        """
        if node.type != NodeKind.EMPLOYEE:
            raise NodeNotFoundError(
                f"Node {node.id} is not an employee node",
                details={"node_id": node.id, "type": node.type}
            )

        if node.is_parallel:
            lead = node.data.group_lead or node.data.employee_id
            members = [lead] + [m for m in node.data.group_members if m != lead]
            return NodeAssignment(
                current_assignee=lead,
                current_assignees=list(dict.fromkeys(members)),
                group_lead=lead
            )

        return NodeAssignment(
            current_assignee=node.data.employee_id,
            current_assignees=[node.data.employee_id],
            group_lead=None
        )
