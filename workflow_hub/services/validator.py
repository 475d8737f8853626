"""
Workflow Graph Validator - Structural Checks
Checks a workflow document (nodes + connection map) before it is versioned or
deployed. Pure and deterministic: it reports every problem instead of raising,
whatever shape the input has.
"""
from typing import Any, List, Mapping, Sequence

from workflow_hub.models.schemas import ConnectionResult, NodeResult, ValidationReport


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_dict(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> List[Any]:
    return list(value) if _is_sequence(value) else []


def _valid_position(position: Any) -> bool:
    return _is_sequence(position) and len(position) == 2 and all(_is_number(v) for v in position)


def _check_node(node: Mapping) -> NodeResult:
    errors = []

    if not node.get("id"):
        errors.append("Node ID is required")
    if not node.get("name"):
        errors.append("Node name is required")
    if not node.get("type"):
        errors.append("Node type is required")
    if not _valid_position(node.get("position")):
        errors.append("Node position must be [x, y] coordinates")

    return NodeResult(
        id=node.get("id"),
        name=node.get("name"),
        type=node.get("type"),
        is_valid=not errors,
        errors=errors
    )


def validate_workflow(document: Any) -> ValidationReport:
    """
    Validate the structure of a workflow document.

    Document-level problems go to `errors` and decide `is_valid`.
    Node and connection problems are reported per entry; orphan nodes
    produce `warnings`. Ordering follows input iteration order.

    Args:
        document: Workflow document as a mapping (anything else counts as empty).

    Returns:
        The complete ValidationReport.
    """
    if hasattr(document, "model_dump"):
        document = document.model_dump(mode="json", exclude_none=True)
    doc = _as_dict(document)

    errors: List[str] = []
    warnings: List[str] = []

    name = doc.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Workflow name is required")

    nodes = [_as_dict(n) for n in _as_list(doc.get("nodes"))]
    if not nodes:
        errors.append("Workflow must have at least one node")

    raw_connections = doc.get("connections")
    has_connections = isinstance(raw_connections, Mapping)
    if not has_connections:
        errors.append("Workflow must have connections object")
    connections: Mapping = raw_connections if has_connections else {}

    node_results = [_check_node(node) for node in nodes]

    # Ids may be unhashable in malformed input, so membership uses lists.
    known_ids = [node.get("id") for node in nodes if "id" in node]
    targeted: List[Any] = []
    connection_results: List[ConnectionResult] = []

    for source, groups in connections.items():
        for group in _as_list(groups):
            for connection in _as_list(group):
                target = _as_dict(connection).get("node")
                targeted.append(target)

                conn_errors = []
                if source not in known_ids:
                    conn_errors.append(f"Source node {source} not found")
                if target not in known_ids:
                    conn_errors.append(f"Target node {target} not found")

                connection_results.append(ConnectionResult(
                    source=source,
                    target=target,
                    is_valid=not conn_errors,
                    errors=conn_errors
                ))

    sources = list(connections.keys())
    for node in nodes:
        node_id = node.get("id")
        if node_id not in targeted and node_id not in sources:
            warnings.append(f'Node "{node.get("name")}" ({node_id}) is not connected')

    return ValidationReport(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        nodes=node_results,
        connections=connection_results
    )
