from mdm.services.rules.rule_engine import (
    RuleEngine,
    RuleEvaluation,
    evaluate_condition,
    stringify,
)

__all__ = ["RuleEngine", "RuleEvaluation", "evaluate_condition", "stringify"]
