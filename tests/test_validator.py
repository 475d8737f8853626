import copy

import pytest

from workflow_hub.services.validator import validate_workflow
from conftest import make_document


def test_connected_workflow_is_clean(sample_document):
    report = validate_workflow(sample_document)

    assert report.is_valid
    assert report.errors == []
    assert report.warnings == []
    assert [n.is_valid for n in report.nodes] == [True, True]
    assert len(report.connections) == 1
    assert report.connections[0].source == "n1"
    assert report.connections[0].target == "n2"
    assert report.connections[0].is_valid


def test_empty_connections_warn_for_every_node():
    report = validate_workflow(make_document(connections={}))

    assert report.is_valid
    assert report.errors == []
    assert report.warnings == [
        'Node "N1" (n1) is not connected',
        'Node "N2" (n2) is not connected',
    ]


def test_dangling_target_is_reported_per_connection_only():
    document = make_document(connections={"n1": [[{"node": "n3", "type": "main", "index": 0}]]})

    report = validate_workflow(document)

    assert len(report.connections) == 1
    assert not report.connections[0].is_valid
    assert report.connections[0].errors == ["Target node n3 not found"]
    # connection errors are not escalated to the document level
    assert report.is_valid
    assert report.errors == []


def test_empty_object_degrades_gracefully():
    report = validate_workflow({})

    assert not report.is_valid
    assert report.errors == [
        "Workflow name is required",
        "Workflow must have at least one node",
        "Workflow must have connections object",
    ]
    assert report.nodes == []
    assert report.connections == []


@pytest.mark.parametrize("document", [
    None,
    [],
    "not a workflow",
    42,
    {"name": 7, "nodes": "n1", "connections": []},
    {"name": "W", "nodes": [None, 3, "x"], "connections": {"n1": "oops"}},
    {"name": "W", "nodes": [{"id": ["unhashable"], "name": {}, "type": None}],
     "connections": {"a": [None, [None, 5, {"node": {"x": 1}}]]}},
])
def test_malformed_input_never_raises(document):
    report = validate_workflow(document)

    assert isinstance(report.is_valid, bool)
    assert report.model_dump(by_alias=True)["isValid"] == report.is_valid


def test_node_field_errors_accumulate():
    document = make_document(nodes=[{"id": "", "position": [0]}], connections={})

    report = validate_workflow(document)

    assert report.nodes[0].errors == [
        "Node ID is required",
        "Node name is required",
        "Node type is required",
        "Node position must be [x, y] coordinates",
    ]
    assert not report.nodes[0].is_valid
    # node errors do not flip document validity
    assert report.is_valid


@pytest.mark.parametrize("position", [None, [1], [1, 2, 3], ["1", 2], [True, 0], "ab", {"x": 0, "y": 0}])
def test_bad_positions(position):
    document = make_document()
    document["nodes"][0]["position"] = position

    report = validate_workflow(document)

    assert report.nodes[0].errors == ["Node position must be [x, y] coordinates"]


def test_float_and_tuple_positions_are_accepted():
    document = make_document()
    document["nodes"][0]["position"] = (1.5, -2)

    assert validate_workflow(document).nodes[0].is_valid


def test_whitespace_name_is_required():
    report = validate_workflow(make_document(name="   "))

    assert report.errors == ["Workflow name is required"]


def test_missing_connections_flags_error_and_orphans():
    document = make_document()
    del document["connections"]

    report = validate_workflow(document)

    assert report.errors == ["Workflow must have connections object"]
    assert len(report.warnings) == 2


def test_source_key_with_empty_groups_is_not_orphaned():
    document = make_document(connections={"n1": [], "n2": [[]]})

    report = validate_workflow(document)

    assert report.warnings == []
    assert report.connections == []


def test_missing_source_and_target_each_occurrence_reported():
    document = make_document(connections={
        "ghost": [
            [{"node": "n1", "index": 0}, {"node": "nope", "index": 0}],
            [{"node": "nope", "index": 1}],
        ],
    })

    report = validate_workflow(document)

    assert [c.errors for c in report.connections] == [
        ["Source node ghost not found"],
        ["Source node ghost not found", "Target node nope not found"],
        ["Source node ghost not found", "Target node nope not found"],
    ]
    # n1 is targeted; n2 is neither a source key nor a target
    assert report.warnings == ['Node "N2" (n2) is not connected']


def test_connection_order_follows_keys_then_groups_then_entries():
    document = make_document(
        nodes=[
            {"id": i, "name": i.upper(), "type": "t", "position": [0, 0]}
            for i in ("a", "b", "c", "d")
        ],
        connections={
            "b": [[{"node": "c"}], [{"node": "d"}, {"node": "a"}]],
            "a": [[{"node": "b"}]],
        },
    )

    report = validate_workflow(document)

    assert [(c.source, c.target) for c in report.connections] == [
        ("b", "c"), ("b", "d"), ("b", "a"), ("a", "b"),
    ]


def test_same_input_gives_identical_reports():
    document = make_document(connections={"n1": [[{"node": "zz"}]], "x": []})

    first = validate_workflow(document).model_dump_json(by_alias=True)
    second = validate_workflow(copy.deepcopy(document)).model_dump_json(by_alias=True)

    assert first == second


def test_input_is_not_mutated(sample_document):
    before = copy.deepcopy(sample_document)
    validate_workflow(sample_document)
    assert sample_document == before


def test_report_serializes_with_wire_keys():
    dumped = validate_workflow(make_document(connections={"n1": [[{"node": "n2"}]]})).model_dump(by_alias=True)

    assert set(dumped) == {"isValid", "errors", "warnings", "nodes", "connections"}
    assert set(dumped["nodes"][0]) == {"id", "name", "type", "isValid", "errors"}
    assert set(dumped["connections"][0]) == {"from", "to", "isValid", "errors"}
