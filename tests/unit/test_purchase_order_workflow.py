"""
Tests for the purchase order state machine and order numbering.
"""

import pytest

from stock_kernel.domain.workflow import Transition, Workflow
from stock_modules.purchasing.config import PurchasingConfig
from stock_modules.purchasing.models import PurchaseOrderStatus
from stock_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

DRAFT = PurchaseOrderStatus.DRAFT.value
ISSUED = PurchaseOrderStatus.ISSUED.value
RECEIVED = PurchaseOrderStatus.RECEIVED.value
CANCELLED = PurchaseOrderStatus.CANCELLED.value


class TestPurchaseOrderWorkflow:

    def test_initial_state(self):
        assert PURCHASE_ORDER_WORKFLOW.initial_state == DRAFT

    @pytest.mark.parametrize(
        "state, action, target",
        [
            (DRAFT, "issue", ISSUED),
            (ISSUED, "receive", RECEIVED),
            (DRAFT, "cancel", CANCELLED),
            (ISSUED, "cancel", CANCELLED),
        ],
    )
    def test_allowed_transitions(self, state, action, target):
        transition = PURCHASE_ORDER_WORKFLOW.find_transition(state, action)
        assert transition is not None
        assert transition.to_state == target

    @pytest.mark.parametrize(
        "state, action",
        [
            (DRAFT, "receive"),
            (RECEIVED, "receive"),
            (RECEIVED, "cancel"),
            (CANCELLED, "issue"),
            (ISSUED, "issue"),
        ],
    )
    def test_forbidden_transitions(self, state, action):
        assert PURCHASE_ORDER_WORKFLOW.find_transition(state, action) is None

    def test_only_receive_moves_stock(self):
        moving = [t for t in PURCHASE_ORDER_WORKFLOW.transitions if t.moves_stock]
        assert [t.action for t in moving] == ["receive"]
        assert PURCHASE_ORDER_WORKFLOW.stock_transition_from(ISSUED) is moving[0]

    @pytest.mark.parametrize("state", [DRAFT, RECEIVED, CANCELLED])
    def test_no_stock_transition_outside_issued(self, state):
        assert PURCHASE_ORDER_WORKFLOW.stock_transition_from(state) is None

    def test_terminal_states_have_no_actions(self):
        for state in PURCHASE_ORDER_WORKFLOW.terminal_states:
            assert PURCHASE_ORDER_WORKFLOW.actions_from(state) == ()


class TestWorkflowValidation:

    def test_unknown_initial_state(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow("w", "", "missing", ("a",), ())

    def test_transition_to_unknown_state(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow("w", "", "a", ("a",), (Transition("a", "b", "go"),))

    def test_terminal_state_with_outgoing_transition(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                "w", "", "a", ("a", "b"), (Transition("b", "a", "back"),), terminal_states=("b",)
            )


class TestOrderNumbering:

    def test_defaults(self):
        config = PurchasingConfig.with_defaults()
        assert config.format_order_number(1) == "OC-000001"
        assert config.format_order_number(42) == "OC-000042"

    def test_custom_start_and_width(self):
        config = PurchasingConfig(order_number_prefix="PO-", order_number_start=100, order_number_width=4)
        assert config.format_order_number(1) == "PO-0100"
        assert config.format_order_number(3) == "PO-0102"

    def test_width_is_a_minimum(self):
        config = PurchasingConfig(order_number_width=2)
        assert config.format_order_number(150) == "OC-150"

    @pytest.mark.parametrize("kwargs", [{"order_number_start": -1}, {"order_number_width": 0}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            PurchasingConfig(**kwargs)
