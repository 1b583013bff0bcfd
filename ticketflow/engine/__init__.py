"""Workflow Engine - Graph, credit rules and the action processor"""
from .engine import WorkflowEngine, ActionResult
from .graph import WorkflowGraph, NodeAssignment
from .credit_ledger import CreditLedger, CreditKind, decide_credit
from .actions import parse_action
from .history_writer import HistoryWriter

__all__ = [
    "WorkflowEngine",
    "ActionResult",
    "WorkflowGraph",
    "NodeAssignment",
    "CreditLedger",
    "CreditKind",
    "decide_credit",
    "parse_action",
    "HistoryWriter",
]
