# itinerary_workflow/validation/sanitize.py
"""
Input validation for client-supplied identifiers.
"""

import re

from itinerary_workflow.exceptions import InvalidWorkflowId

_WORKFLOW_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{8,64}$")


def sanitize_workflow_id(workflow_id: str) -> str:
    """
    Sanitize and validate a workflow ID.

    Workflow IDs must be alphanumeric with hyphens or underscores, 8-64 characters.
    Surrounding whitespace is stripped.

    Args:
        workflow_id: User-provided workflow ID

    Returns:
        Validated workflow ID

    Raises:
        InvalidWorkflowId: If the format is invalid
    """
    cleaned = workflow_id.strip()
    if not _WORKFLOW_ID_PATTERN.match(cleaned):
        raise InvalidWorkflowId(
            f"Invalid workflow ID '{workflow_id}': must be 8-64 alphanumeric "
            f"characters, hyphens or underscores"
        )
    return cleaned
