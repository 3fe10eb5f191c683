"""
Purchasing Workflows.

State machine for purchase order processing.
"""

from inventory_kernel.domain.workflow import Guard, Transition, Workflow
from inventory_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.workflows")

# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ALL_LINES_RECEIVED = Guard(
    name="all_lines_received",
    description="Every PO line has received_quantity == ordered_quantity",
)

# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state="DRAFT",
    states=(
        "DRAFT",
        "SENT",
        "CONFIRMED",
        "RECEIVED",
    ),
    transitions=(
        Transition("DRAFT", "SENT", action="send", external=True),
        Transition("SENT", "CONFIRMED", action="confirm", external=True),
        Transition(
            "CONFIRMED",
            "RECEIVED",
            action="receive",
            guard=ALL_LINES_RECEIVED,
            moves_stock=True,
        ),
        # Receipts may arrive before the supplier confirmation is recorded
        Transition(
            "SENT",
            "RECEIVED",
            action="receive",
            guard=ALL_LINES_RECEIVED,
            moves_stock=True,
        ),
        Transition(
            "DRAFT",
            "RECEIVED",
            action="receive",
            guard=ALL_LINES_RECEIVED,
            moves_stock=True,
        ),
    ),
    terminal_states=("RECEIVED",),
)

logger.info(
    "purchasing_workflow_defined",
    extra={
        "workflow": PURCHASE_ORDER_WORKFLOW.name,
        "states": list(PURCHASE_ORDER_WORKFLOW.states),
    },
)
