"""
Order Workflows.

State machine for sales order processing.
"""

from inventory_kernel.domain.workflow import Guard, Transition, Workflow
from inventory_kernel.logging_config import get_logger

logger = get_logger("modules.orders.workflows")

# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ALL_LINES_FULFILLED = Guard(
    name="all_lines_fulfilled",
    description="Every order line has fulfilled_quantity == quantity",
)

# -----------------------------------------------------------------------------
# Sales Order Workflow
# -----------------------------------------------------------------------------

ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order lifecycle",
    initial_state="PENDING",
    states=(
        "PENDING",
        "CONFIRMED",
        "FULFILLED",
        "CANCELLED",
    ),
    transitions=(
        Transition("PENDING", "CONFIRMED", action="confirm", moves_stock=True),
        Transition("PENDING", "FULFILLED", action="fulfill", guard=ALL_LINES_FULFILLED),
        Transition("CONFIRMED", "FULFILLED", action="fulfill", guard=ALL_LINES_FULFILLED),
        Transition("PENDING", "CANCELLED", action="cancel", moves_stock=True),
        Transition("CONFIRMED", "CANCELLED", action="cancel", moves_stock=True),
    ),
    terminal_states=("FULFILLED", "CANCELLED"),
)

logger.info(
    "orders_workflow_defined",
    extra={
        "workflow": ORDER_WORKFLOW.name,
        "states": list(ORDER_WORKFLOW.states),
    },
)
