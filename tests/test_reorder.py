from moby_kanban.client import reorder as engine
from moby_kanban.client.drag import DropDescriptor
from moby_kanban.domain import ranking
from moby_kanban.domain.task_models import STATUS_ORDER, TaskStatus

from factories import make_column, make_project, make_task


def titles(tasks, status=TaskStatus.backlog):
    return [t.title for t in engine.column(tasks, status)]


def assert_dense(tasks):
    for status in STATUS_ORDER:
        assert ranking.is_dense(t.position for t in tasks if t.status == status)


def test_drag_last_onto_first_in_same_column():
    t0, t1, t2 = make_column("t0", "t1", "t2")
    result = engine.reorder([t0, t1, t2], t2.id, DropDescriptor.task(t0.id))

    assert result.kind is engine.ReorderKind.REORDER
    assert titles(result.tasks) == ["t2", "t0", "t1"]
    assert [t.position for t in engine.column(result.tasks, TaskStatus.backlog)] == [0, 1, 2]
    assert set(result.changed_ids) == {t0.id, t1.id, t2.id}


def test_column_drop_into_empty_column():
    t0, t1, t2 = make_column("t0", "t1", "t2")
    result = engine.reorder([t0, t1, t2], t1.id, DropDescriptor.column(TaskStatus.in_progress))

    assert result.kind is engine.ReorderKind.MOVE
    assert result.task.status is TaskStatus.in_progress
    assert result.task.position == 0
    assert [(t.title, t.position) for t in engine.column(result.tasks, TaskStatus.backlog)] == [("t0", 0), ("t2", 1)]


def test_cross_column_drop_on_task_inserts_at_target_rank():
    backlog = make_column("b0", "b1")
    doing = make_column("d0", "d1", status=TaskStatus.in_progress)
    result = engine.reorder(backlog + doing, backlog[0].id, DropDescriptor.task(doing[1].id))

    assert titles(result.tasks, TaskStatus.in_progress) == ["d0", "b0", "d1"]
    assert titles(result.tasks) == ["b1"]
    assert_dense(result.tasks)


def test_column_drop_in_own_column_moves_to_end_or_noops():
    t0, t1, t2 = make_column("t0", "t1", "t2")
    moved = engine.reorder([t0, t1, t2], t0.id, DropDescriptor.column(TaskStatus.backlog))
    assert titles(moved.tasks) == ["t1", "t2", "t0"]

    assert engine.reorder([t0, t1, t2], t2.id, DropDescriptor.column(TaskStatus.backlog)).is_noop


def test_project_drop_already_unassigned_is_noop():
    task = make_task("loose")
    assert engine.reorder([task], task.id, DropDescriptor.project(None)).is_noop


def test_project_drop_changes_only_project():
    task = make_task("a", position=0)
    result = engine.reorder([task], task.id, DropDescriptor.project("p1"))
    assert result.kind is engine.ReorderKind.PROJECT
    assert result.task.project_id == "p1"
    assert (result.task.status, result.task.position) == (task.status, task.position)


def test_noop_cases():
    t0, t1 = make_column("t0", "t1")
    tasks = [t0, t1]
    assert engine.reorder(tasks, t0.id, DropDescriptor.task(t0.id)).is_noop
    assert engine.reorder(tasks, "missing", DropDescriptor.task(t0.id)).is_noop
    assert engine.reorder(tasks, t0.id, DropDescriptor.task("missing")).is_noop
    assert engine.reorder(tasks, t0.id, DropDescriptor.none()).is_noop


def test_replay_is_deterministic_and_leaves_input_untouched():
    tasks = make_column("a", "b", "c", "d") + make_column("x", status=TaskStatus.done)
    before = list(tasks)
    drop = DropDescriptor.task(tasks[4].id)

    first = engine.reorder(tasks, tasks[1].id, drop)
    second = engine.reorder(tasks, tasks[1].id, drop)

    assert first == second
    assert tasks == before
    assert_dense(first.tasks)


def test_ties_resolve_by_incoming_order():
    # Two tasks share position 0; the first one listed ranks first
    a, b = make_task("a", position=0), make_task("b", position=0)
    c = make_task("c", position=1)
    result = engine.reorder([a, b, c], c.id, DropDescriptor.task(a.id))
    assert titles(result.tasks) == ["c", "a", "b"]
    assert_dense(result.tasks)


def test_remove_task_compacts_column():
    t0, t1, t2 = make_column("t0", "t1", "t2")
    left = engine.remove_task([t0, t1, t2], t0.id)
    assert [(t.title, t.position) for t in left] == [("t1", 0), ("t2", 1)]


def test_move_task_with_and_without_index():
    t0, t1, t2 = make_column("t0", "t1", "t2")
    to_end = engine.move_task([t0, t1, t2], t0.id, TaskStatus.done)
    assert to_end.task.position == 0 and to_end.task.status is TaskStatus.done

    to_top = engine.move_task([t0, t1, t2], t2.id, TaskStatus.backlog, 0)
    assert titles(to_top.tasks) == ["t2", "t0", "t1"]


def test_reorder_projects_takes_target_rank():
    p0, p1, p2 = (make_project(name, i) for i, name in enumerate(("p0", "p1", "p2")))
    out = engine.reorder_projects([p0, p1, p2], p0.id, p2.id)
    assert [(p.name, p.position) for p in out] == [("p1", 0), ("p2", 1), ("p0", 2)]
    assert engine.reorder_projects([p0, p1, p2], p1.id, p1.id) is None


def test_remove_project_and_unassign():
    p0, p1 = make_project("p0", 0), make_project("p1", 1)
    assert [(p.name, p.position) for p in engine.remove_project([p0, p1], p0.id)] == [("p1", 0)]

    task = make_task("a", project_id=p0.id)
    assert engine.unassign_project([task], p0.id)[0].project_id is None
