"""
Rule engine tests: operators, condition folding, rule matching and
approver resolution.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as SchemaValidationError

from mdm.config.settings import Settings
from mdm.schemas import ApprovalRule, Attribute, RuleCondition, User
from mdm.schemas.common.enums import ApprovalStatus, Operator, Status, UserRole
from mdm.services.common.errors import ValidationError
from mdm.services.rules import RuleEngine, evaluate_condition

STAMP = {"created_by": "system", "created_date": datetime(2024, 1, 1, tzinfo=timezone.utc)}


def cond(attribute_id, operator, value, logic=None):
    return RuleCondition(attribute_id=attribute_id, operator=operator, value=value, logic_operator=logic)


def rule(*conditions, entity_type="Product", roles=("role-finance",), users=(), **fields):
    return ApprovalRule(**{
        **STAMP,
        "id": fields.pop("id", "rule-1"),
        "rule_name": "Test rule",
        "entity_type": entity_type,
        "conditions": list(conditions),
        "assigned_roles": list(roles),
        "assigned_users": list(users),
        "approval_status": ApprovalStatus.APPROVED,
        **fields,
    })


def user(id, role_id="role-finance", user_role=UserRole.CHECKER, status=Status.ACTIVE):
    return User(**STAMP, id=id, full_name=id, email=f"{id}@example.com",
                role_id=role_id, user_role=user_role, status=status)


def product(**values):
    return {"name": "Widget", "entity_type": "Product", "attribute_values": values}


@pytest.fixture
def engine():
    return RuleEngine(Settings(_env_file=None, APPROVAL_FALLBACK_POLICY="fail_closed"))


@pytest.fixture
def price_attribute():
    return Attribute(**STAMP, id="attr-price", field_name="price", data_type="number")


class TestOperators:

    @pytest.mark.parametrize("operator,value,candidate,expected", [
        (Operator.EQUALS, "red", "red", True),
        (Operator.EQUALS, "red", "Red", False),
        (Operator.NOT_EQUALS, "red", "blue", True),
        (Operator.EQUALS, "899", 899, True),
        (Operator.IN, "red, green,blue", "green", True),
        (Operator.IN, ["red", "green"], "blue", False),
        (Operator.NOT_IN, "red,green", "blue", True),
        (Operator.REGEX, r"^SKU-\d{3}$", "SKU-042", True),
        (Operator.REGEX, r"\d+", "no digits", False),
        (Operator.GREATER_THAN, "500", 899, True),
        (Operator.GREATER_THAN, "500", "500", False),
        (Operator.GREATER_EQUAL, "500", "500", True),
        (Operator.LESS_THAN, "10", 9.5, True),
        (Operator.LESS_EQUAL, "10", 11, False),
        (Operator.GREATER_THAN, "500", "lots", False),
    ])
    def test_operator(self, operator, value, candidate, expected):
        assert evaluate_condition(cond("x", operator, value), {"x": candidate}, "x") is expected

    def test_missing_value_never_matches(self):
        assert evaluate_condition(cond("x", Operator.NOT_EQUALS, "a"), {}, "x") is False
        assert evaluate_condition(cond("x", Operator.NOT_IN, "a"), {"x": None}, "x") is False

    def test_invalid_pattern_is_rejected(self):
        with pytest.raises(SchemaValidationError):
            cond("x", Operator.REGEX, "([unclosed")

    def test_non_numeric_threshold_is_rejected(self):
        with pytest.raises(SchemaValidationError):
            cond("x", Operator.GREATER_THAN, "many")


class TestRuleEvaluation:

    def test_price_threshold(self, engine, price_attribute):
        high_value = rule(cond("attr-price", Operator.GREATER_THAN, "500"))
        attributes = {"attr-price": price_attribute}

        assert engine.evaluate_rule(high_value, engine.candidate_values(product(price=899)), attributes)
        assert not engine.evaluate_rule(high_value, engine.candidate_values(product(price=300)), attributes)

    def test_unknown_attribute_id_is_used_as_key(self, engine):
        high_value = rule(cond("price", Operator.GREATER_THAN, "500"))
        assert engine.evaluate_rule(high_value, engine.candidate_values(product(price=899)), {})

    def test_top_level_fields_are_visible(self, engine):
        named = rule(cond("name", Operator.EQUALS, "Widget"))
        assert engine.evaluate_rule(named, engine.candidate_values(product()), {})

    def test_conditions_fold_left_to_right(self, engine):
        # (a OR b) AND c, not a OR (b AND c)
        folded = rule(
            cond("a", Operator.EQUALS, "1", logic="OR"),
            cond("b", Operator.EQUALS, "1", logic="AND"),
            cond("c", Operator.EQUALS, "1"),
        )
        values = {"a": "1", "b": "0", "c": "0"}
        assert engine.evaluate_rule(folded, values, {}) is False

    def test_missing_logic_operator_means_and(self, engine):
        both = rule(cond("a", Operator.EQUALS, "1"), cond("b", Operator.EQUALS, "1"))
        assert engine.evaluate_rule(both, {"a": "1", "b": "1"}, {}) is True
        assert engine.evaluate_rule(both, {"a": "1", "b": "2"}, {}) is False

    def test_rule_without_conditions_always_triggers(self, engine):
        assert engine.evaluate_rule(rule(), {}, {}) is True


class TestMatching:

    def test_only_live_rules_apply(self, engine):
        rules = [
            rule(id="live"),
            rule(id="inactive", status=Status.INACTIVE),
            rule(id="unapproved", approval_status=ApprovalStatus.PENDING),
        ]
        assert [r.id for r in engine.applicable_rules("Entity", product(), rules)] == ["live"]

    def test_matches_record_type_tag(self, engine):
        rules = [rule(id="cat", entity_type="Category"), rule(id="prod")]
        assert [r.id for r in engine.applicable_rules("Category", {"name": "x"}, rules)] == ["cat"]


class TestApprovers:

    def test_role_members_and_assigned_users(self, engine):
        users = [
            user("alice"),
            user("bob", role_id="role-other"),
            user("carol", status=Status.INACTIVE),
        ]
        result = engine.evaluate("Entity", product(), [rule(users=("dave",))], [], users)

        assert result.approvers == ["alice", "dave"]
        assert result.matched_rule_ids == ["rule-1"]
        assert result.approval_required

    def test_union_over_triggered_rules(self, engine):
        users = [user("alice"), user("erin", role_id="role-legal")]
        rules = [rule(id="r1"), rule(id="r2", roles=("role-legal",))]

        result = engine.evaluate("Entity", product(), rules, [], users)

        assert result.approvers == ["alice", "erin"]
        assert result.matched_rule_ids == ["r1", "r2"]

    def test_fail_closed_without_triggered_rule(self, engine):
        with pytest.raises(ValidationError):
            engine.evaluate("Entity", product(), [], [], [user("alice")])

    def test_default_group_fallback(self):
        engine = RuleEngine(Settings(
            _env_file=None,
            APPROVAL_FALLBACK_POLICY="default_group",
            DEFAULT_APPROVER_IDS=["ops-lead"],
            DEFAULT_APPROVER_ROLES=["Admin"],
        ))
        users = [user("root", user_role=UserRole.ADMIN), user("chk")]

        result = engine.evaluate("Entity", product(), [], [], users)

        assert result.used_fallback
        assert result.matched_rule_ids == []
        assert result.approvers == ["ops-lead", "root"]

    def test_empty_default_group_is_rejected(self):
        engine = RuleEngine(Settings(
            _env_file=None,
            APPROVAL_FALLBACK_POLICY="default_group",
            DEFAULT_APPROVER_IDS=[],
            DEFAULT_APPROVER_ROLES=["Admin"],
        ))
        with pytest.raises(ValidationError):
            engine.evaluate("Entity", product(), [], [], [user("chk")])

    def test_triggered_rule_without_active_approvers_is_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.evaluate("Entity", product(), [rule()], [], [user("gone", status=Status.INACTIVE)])
