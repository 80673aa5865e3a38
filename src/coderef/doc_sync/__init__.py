"""Doc Sync domain: reference scanning, validation and fixing."""

from coderef.doc_sync.engine import (
    DocumentReport,
    Engine,
    FixRunReport,
    RunReport,
    fix_paths,
    validate_paths,
)
from coderef.doc_sync.fences import FenceMap, FencedBlock
from coderef.doc_sync.fixer import (
    Decision,
    FixOutcome,
    FixPlan,
    FixPolicy,
    FixRequest,
    apply_edits,
    apply_plan,
    plan_fixes,
)
from coderef.doc_sync.scanner import ReferenceScanner, parse_payload
from coderef.doc_sync.validator import ComparisonPolicy, Validator

__all__ = [
    "ComparisonPolicy",
    "Decision",
    "DocumentReport",
    "Engine",
    "FenceMap",
    "FencedBlock",
    "FixOutcome",
    "FixPlan",
    "FixPolicy",
    "FixRequest",
    "FixRunReport",
    "ReferenceScanner",
    "RunReport",
    "Validator",
    "apply_edits",
    "apply_plan",
    "fix_paths",
    "parse_payload",
    "plan_fixes",
    "validate_paths",
]
