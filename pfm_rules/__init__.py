"""
pfm_rules -- transaction rule engine.

Trigger and action catalogues, the per-rule ``RuleProcessor`` and the batch
runners that apply a rule group (or a single rule) to a user's historical
journals.  Collaborators are described in ``pfm_rules.ports``.
"""

from pfm_rules.actions import ACTIONS, Action, build_action, register_action
from pfm_rules.processor import RuleProcessor
from pfm_rules.runner import BatchRuleGroupRunner, BatchRuleRunner, RuleRunSummary
from pfm_rules.triggers import TRIGGERS, Trigger, build_trigger, register_trigger

__all__ = [
    "ACTIONS",
    "Action",
    "BatchRuleGroupRunner",
    "BatchRuleRunner",
    "RuleProcessor",
    "RuleRunSummary",
    "TRIGGERS",
    "Trigger",
    "build_action",
    "build_trigger",
    "register_action",
    "register_trigger",
]
