from vmixember.bridge.projector import StateProjector
from vmixember.bridge.protocol import ActivityFlag, Unrecognized, interpret_line
from vmixember.tree import LocalTreeService, build_tree


def make_projector(input_count=32):
    tree, handles = build_tree(input_count)
    service = LocalTreeService()
    service.init(tree)
    projector = StateProjector(
        service,
        program_tally=handles.program_tally,
        preview_tally=handles.preview_tally,
        activity=handles.activity,
    )
    return projector, service, handles


def test_tally_sets_program_and_preview_for_every_reported_input():
    projector, service, handles = make_projector()
    updates = projector.apply(interpret_line("TALLY OK 0129"))

    assert len(updates) == 8
    assert [handles.program_tally[i].value for i in range(1, 5)] == [False, True, False, False]
    assert [handles.preview_tally[i].value for i in range(1, 5)] == [False, False, True, False]
    assert service.update_count == 8


def test_tally_corrects_stale_values_and_leaves_unreported_inputs():
    projector, _, handles = make_projector()
    projector.apply(interpret_line("TALLY OK 1121"))
    projector.apply(interpret_line("TALLY OK 02"))

    assert handles.program_tally[1].value is False
    assert handles.preview_tally[1].value is False
    assert handles.preview_tally[2].value is True
    assert handles.program_tally[2].value is False
    # Inputs 3 and 4 were not in the second report
    assert handles.preview_tally[3].value is True
    assert handles.program_tally[4].value is True


def test_inputs_beyond_configured_count_produce_no_update():
    projector, service, handles = make_projector(input_count=2)
    updates = projector.apply(interpret_line("TALLY OK 1212", input_count=32))
    assert len(updates) == 4
    assert set(handles.program_tally) == {1, 2}


def test_activity_projection():
    projector, _, handles = make_projector()
    projector.apply(interpret_line("ACTS OK Recording 1"))
    projector.apply(interpret_line("ACTS OK MultiCorder 0"))
    projector.apply(interpret_line("ACTS OK Streaming 1"))

    assert handles.activity["Recording"].value is True
    assert handles.activity["MultiCorder"].value is False
    assert handles.activity["Streaming"].value is True


def test_unknown_activity_category_is_a_noop():
    projector, service, _ = make_projector()
    assert projector.apply(ActivityFlag("External", True)) == []
    assert service.update_count == 0
    assert projector.facts_applied == 0


def test_unrecognized_fact_projects_nothing():
    projector, service, _ = make_projector()
    assert projector.project(Unrecognized("VERSION OK 27")) == []
    assert service.update_count == 0


def test_project_does_not_touch_tree():
    projector, service, handles = make_projector()
    updates = projector.project(interpret_line("TALLY OK 1"))
    assert updates == [(handles.program_tally[1], True), (handles.preview_tally[1], False)]
    assert handles.program_tally[1].value is False
    assert service.update_count == 0
