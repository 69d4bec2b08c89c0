from moby_kanban.domain import ranking

from factories import make_task


def test_ranked_keeps_incoming_order_for_ties():
    a, b, c = make_task("a", position=1), make_task("b", position=0), make_task("c", position=1)
    assert [t.title for t in ranking.ranked([a, b, c])] == ["b", "a", "c"]


def test_array_move_forward_and_back():
    assert ranking.array_move("abcd", 3, 0) == list("dabc")
    assert ranking.array_move("abcd", 0, 2) == list("bcad")


def test_insert_at_clamps_index():
    assert ranking.insert_at([1, 2], 9, 10) == [1, 2, 9]
    assert ranking.insert_at([1, 2], 9, -3) == [9, 1, 2]


def test_densify_assigns_zero_based_positions():
    tasks = [make_task("x", position=4), make_task("y", position=9)]
    out = ranking.densify(tasks, lambda t, i: t.model_copy(update={"position": i}))
    assert [t.position for t in out] == [0, 1]
    assert ranking.is_dense(t.position for t in out)


def test_is_dense():
    assert ranking.is_dense([])
    assert ranking.is_dense([2, 0, 1])
    assert not ranking.is_dense([0, 2])
    assert not ranking.is_dense([0, 0])
