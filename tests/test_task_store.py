# tests/test_task_store.py

from __future__ import annotations

from datetime import date

import pytest

from problem_tree.core.models import (
    INBOX_ID,
    AppState,
    Layout,
    Priority,
    Problem,
    ProblemStatus,
    TaskList,
    ViewName,
    default_state,
)
from problem_tree.store import tree
from problem_tree.store.state_file import PersistenceError
from problem_tree.store.task_store import DuplicateIdError, MutationOutcome, TaskStore
from problem_tree.views import derive

from .fakes import FakeClock, MemoryRepo


def _ids(problems) -> list[str]:
    return [p.id for p in problems]


def _add(store: TaskStore, name: str, list_id: str = INBOX_ID, parent_id: str | None = None, **kw) -> str:
    result = store.add_problem(parent_id, list_id, name=name, **kw)
    assert result.ok, result.reason
    assert result.target_id is not None
    return result.target_id


# ---- startup / normalization ----


def test_fresh_store_has_only_an_empty_inbox(store: TaskStore) -> None:
    assert [x.id for x in store.state.lists] == [INBOX_ID]
    inbox = store.get_list(INBOX_ID)
    assert inbox.name == "Inbox"
    assert inbox.problems == ()


def test_missing_inbox_is_prepended_on_load() -> None:
    repo = MemoryRepo(initial=AppState(lists=(TaskList(id="work", name="Work"),)))
    store = TaskStore(repo)
    assert [x.id for x in store.state.lists] == [INBOX_ID, "work"]


def test_legacy_inbox_name_is_migrated() -> None:
    repo = MemoryRepo(initial=AppState(lists=(TaskList(id=INBOX_ID, name="📥 Inbox"),)))
    store = TaskStore(repo)
    assert store.get_list(INBOX_ID).name == "Inbox"


# ---- lists ----


def test_add_list_appends_and_persists(store: TaskStore, repo: MemoryRepo) -> None:
    result = store.add_list("  Work  ", emoji="💼")
    assert result.ok
    assert [x.name for x in store.state.lists] == ["Inbox", "Work"]
    assert store.get_list(result.target_id).emoji == "💼"
    assert repo.saved[-1] is store.state


def test_add_list_requires_a_name(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.add_list("   ")


def test_update_list_patches_only_given_fields(store: TaskStore) -> None:
    lid = store.add_list("Work", description="job").target_id
    assert store.update_list(lid, name="Office").ok
    work = store.get_list(lid)
    assert work.name == "Office"
    assert work.description == "job"

    with pytest.raises(ValueError):
        store.update_list(lid, problems=())


def test_update_list_unknown_id_is_not_found(store: TaskStore, repo: MemoryRepo) -> None:
    before = store.state
    result = store.update_list("ghost", name="x")
    assert result.outcome is MutationOutcome.NOT_FOUND
    assert store.state is before
    assert repo.saved == []


def test_delete_list_removes_everything_in_it(store: TaskStore) -> None:
    lid = store.add_list("Work").target_id
    _add(store, "task", lid)
    assert store.delete_list(lid).ok
    assert store.get_list(lid) is None


def test_inbox_cannot_be_deleted(store: TaskStore) -> None:
    result = store.delete_list(INBOX_ID)
    assert result.outcome is MutationOutcome.REJECTED
    assert store.get_list(INBOX_ID) is not None


def test_reorder_lists_accepts_ids_or_lists(store: TaskStore) -> None:
    a = store.add_list("A").target_id
    b = store.add_list("B").target_id
    assert store.reorder_lists([b, INBOX_ID, a]).ok
    assert [x.id for x in store.state.lists] == [b, INBOX_ID, a]

    lists = list(reversed(store.state.lists))
    assert store.reorder_lists(lists).ok
    assert [x.id for x in store.state.lists] == [a, INBOX_ID, b]


def test_reorder_lists_keeps_current_records(store: TaskStore) -> None:
    a = store.add_list("A").target_id
    stale = store.get_list(a)
    _add(store, "fresh problem", a)
    store.reorder_lists([stale, store.get_list(INBOX_ID)])
    assert [p.name for p in store.get_list(a).problems] == ["fresh problem"]


def test_reorder_lists_rejects_non_permutation(store: TaskStore) -> None:
    store.add_list("A")
    with pytest.raises(ValueError):
        store.reorder_lists([INBOX_ID])


# ---- problems ----


def test_add_problem_at_root_and_nested(store: TaskStore) -> None:
    root = _add(store, "Root", priority=Priority.TODAY, due_date="2024-03-05")
    child = _add(store, "Child", parent_id=root)

    inbox = store.get_list(INBOX_ID)
    assert _ids(inbox.problems) == [root]
    p = inbox.problems[0]
    assert p.priority is Priority.TODAY
    assert p.due_date == date(2024, 3, 5)
    assert p.status is ProblemStatus.TO_SOLVE
    assert _ids(p.subproblems) == [child]


def test_add_problem_defaults(store: TaskStore) -> None:
    pid = _add(store, "Plain")
    p = store.get_problem(pid)
    assert p.priority is Priority.SOMEDAY
    assert p.completed is False
    assert p.notes == ""
    assert p.due_date is None
    assert p.sessions == ()


def test_add_problem_unknown_parent_or_list(store: TaskStore, repo: MemoryRepo) -> None:
    assert store.add_problem("ghost", INBOX_ID, name="x").outcome is MutationOutcome.NOT_FOUND
    assert store.add_problem(None, "ghost", name="x").outcome is MutationOutcome.NOT_FOUND
    assert repo.saved == []


def test_add_problem_rejects_bad_input(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.add_problem(None, INBOX_ID, name="")
    with pytest.raises(ValueError):
        store.add_problem(None, INBOX_ID, name="x", priority="urgent")
    with pytest.raises(ValueError):
        store.add_problem(None, INBOX_ID, name="x", due_date="tomorrow")


def test_update_problem_merges_fields(store: TaskStore) -> None:
    pid = _add(store, "Old", notes="keep me")
    assert store.update_problem(INBOX_ID, pid, name="New", due_date=date(2024, 1, 2)).ok
    p = store.get_problem(pid)
    assert p.name == "New"
    assert p.notes == "keep me"
    assert p.due_date == date(2024, 1, 2)

    assert store.update_problem(INBOX_ID, pid, due_date=None).ok
    assert store.get_problem(pid).due_date is None


def test_update_problem_rejects_structural_fields(store: TaskStore) -> None:
    pid = _add(store, "x")
    with pytest.raises(ValueError):
        store.update_problem(INBOX_ID, pid, id="other")
    with pytest.raises(ValueError):
        store.update_problem(INBOX_ID, pid, subproblems=())
    with pytest.raises(ValueError):
        store.update_problem(INBOX_ID, pid, colour="red")


def test_update_problem_wrong_list_is_not_found(store: TaskStore) -> None:
    lid = store.add_list("Other").target_id
    pid = _add(store, "x")
    assert store.update_problem(lid, pid, name="y").outcome is MutationOutcome.NOT_FOUND
    assert store.get_problem(pid).name == "x"


def test_completion_stamps_time_and_cascades(store: TaskStore, clock: FakeClock) -> None:
    root = _add(store, "root")
    child = _add(store, "child", parent_id=root)
    grandchild = _add(store, "grandchild", parent_id=child)

    assert store.update_problem(INBOX_ID, root, completed=True).ok
    for pid in (root, child, grandchild):
        p = store.get_problem(pid)
        assert p.completed is True
        assert p.status is ProblemStatus.SOLVED
        assert p.completed_at_ms == clock.now

    clock.advance(5_000)
    assert store.update_problem(INBOX_ID, root, completed=False).ok
    for pid in (root, child, grandchild):
        p = store.get_problem(pid)
        assert p.completed is False
        assert p.status is ProblemStatus.TO_SOLVE
        assert p.completed_at_ms is None


def test_completing_again_keeps_original_stamp(store: TaskStore, clock: FakeClock) -> None:
    pid = _add(store, "x")
    store.update_problem(INBOX_ID, pid, completed=True)
    first = store.get_problem(pid).completed_at_ms
    clock.advance(60_000)
    store.update_problem(INBOX_ID, pid, completed=True)
    assert store.get_problem(pid).completed_at_ms == first


def test_explicit_status_wins_over_completion_default(store: TaskStore) -> None:
    pid = _add(store, "x")
    store.update_problem(INBOX_ID, pid, completed=True, status=ProblemStatus.ONGOING)
    p = store.get_problem(pid)
    assert p.completed is True
    assert p.status is ProblemStatus.ONGOING


def test_active_status_bumps_to_solve_ancestors(store: TaskStore) -> None:
    root = _add(store, "root")
    mid = _add(store, "mid", parent_id=root)
    leaf = _add(store, "leaf", parent_id=mid)
    store.update_problem(INBOX_ID, mid, status=ProblemStatus.BLOCKED)
    # root was to_solve -> solving; mid keeps its explicit status
    store.update_problem(INBOX_ID, leaf, status=ProblemStatus.SOLVING)

    assert store.get_problem(root).status is ProblemStatus.SOLVING
    assert store.get_problem(mid).status is ProblemStatus.BLOCKED
    assert store.get_problem(leaf).status is ProblemStatus.SOLVING


def test_completing_a_child_bumps_to_solve_ancestors(store: TaskStore) -> None:
    root = _add(store, "root")
    leaf = _add(store, "leaf", parent_id=root)
    store.update_problem(INBOX_ID, leaf, completed=True)

    assert store.get_problem(leaf).status is ProblemStatus.SOLVED
    assert store.get_problem(root).status is ProblemStatus.SOLVING

    # reopening resolves to to_solve, which leaves ancestors alone
    store.update_problem(INBOX_ID, root, status=ProblemStatus.BLOCKED)
    store.update_problem(INBOX_ID, leaf, completed=False)
    assert store.get_problem(root).status is ProblemStatus.BLOCKED


def test_update_problem_anywhere_finds_the_list(store: TaskStore) -> None:
    lid = store.add_list("Work").target_id
    pid = _add(store, "x", lid)
    assert store.update_problem_anywhere(pid, notes="hello").ok
    assert store.get_problem(pid).notes == "hello"
    assert store.update_problem_anywhere("ghost", notes="x").outcome is MutationOutcome.NOT_FOUND


def test_delete_problem_discards_the_subtree(store: TaskStore) -> None:
    root = _add(store, "root")
    child = _add(store, "child", parent_id=root)
    other = _add(store, "other")
    assert store.delete_problem(INBOX_ID, root).ok
    assert store.get_problem(child) is None
    assert _ids(store.get_list(INBOX_ID).problems) == [other]

    assert store.delete_problem(INBOX_ID, root).outcome is MutationOutcome.NOT_FOUND


def test_move_preserves_subtree_and_lands_at_root(store: TaskStore) -> None:
    dest = store.add_list("Dest").target_id
    _add(store, "already there", dest)
    parent = _add(store, "parent")
    p = _add(store, "p", parent_id=parent, priority=Priority.LATER, due_date="2024-06-01")
    c1 = _add(store, "c1", parent_id=p)
    c2 = _add(store, "c2", parent_id=p)
    c1a = _add(store, "c1a", parent_id=c1)

    assert store.move_problem_to_list(p, INBOX_ID, dest).ok

    inbox = store.get_list(INBOX_ID)
    assert tree.collect_ids(inbox.problems) == [parent]

    moved = store.get_list(dest).problems[-1]
    assert moved.id == p
    assert moved.priority is Priority.LATER
    assert moved.due_date == date(2024, 6, 1)
    assert tree.collect_ids(moved.subproblems) == [c1, c1a, c2]


def test_move_to_missing_list_changes_nothing(store: TaskStore) -> None:
    pid = _add(store, "x")
    before = store.state
    assert store.move_problem_to_list(pid, INBOX_ID, "ghost").outcome is MutationOutcome.NOT_FOUND
    assert store.state is before
    assert store.get_problem(pid) is not None


def test_move_problem_not_in_source_list(store: TaskStore) -> None:
    other = store.add_list("Other").target_id
    pid = _add(store, "x")
    assert store.move_problem_to_list(pid, other, INBOX_ID).outcome is MutationOutcome.NOT_FOUND


def test_reorder_problems_at_root_and_nested(store: TaskStore) -> None:
    a = _add(store, "a")
    b = _add(store, "b")
    a1 = _add(store, "a1", parent_id=a)
    a2 = _add(store, "a2", parent_id=a)

    assert store.reorder_problems(INBOX_ID, None, [b, a]).ok
    assert _ids(store.get_list(INBOX_ID).problems) == [b, a]

    assert store.reorder_problems(INBOX_ID, a, [a2, a1]).ok
    assert _ids(store.get_problem(a).subproblems) == [a2, a1]


def test_reorder_problems_keeps_current_records(store: TaskStore) -> None:
    a = _add(store, "a")
    b = _add(store, "b")
    stale = list(store.get_list(INBOX_ID).problems)
    store.update_problem(INBOX_ID, a, name="renamed")
    store.reorder_problems(INBOX_ID, None, list(reversed(stale)))
    assert [p.name for p in store.get_list(INBOX_ID).problems] == ["b", "renamed"]
    assert _ids(store.get_list(INBOX_ID).problems) == [b, a]


def test_reorder_problems_rejects_bad_order(store: TaskStore) -> None:
    a = _add(store, "a")
    _add(store, "b")
    with pytest.raises(ValueError):
        store.reorder_problems(INBOX_ID, None, [a])
    with pytest.raises(ValueError):
        store.reorder_problems(INBOX_ID, None, [a, a])


# ---- settings ----


def test_update_settings(store: TaskStore) -> None:
    assert store.update_settings(layout="two-columns", default_view=ViewName.UPCOMING).ok
    assert store.state.settings.layout is Layout.TWO_COLUMNS
    assert store.state.settings.default_view is ViewName.UPCOMING
    with pytest.raises(ValueError):
        store.update_settings(theme="dark")


# ---- subscribers / persistence / ids ----


def test_subscribers_receive_every_snapshot(store: TaskStore) -> None:
    seen: list[AppState] = []
    unsubscribe = store.subscribe(seen.append)
    _add(store, "x")
    store.add_list("L")
    assert seen[-1] is store.state
    assert len(seen) == 2

    unsubscribe()
    _add(store, "y")
    assert len(seen) == 2


def test_failing_subscriber_does_not_break_the_store(store: TaskStore) -> None:
    def boom(_state: AppState) -> None:
        raise RuntimeError("listener bug")

    store.subscribe(boom)
    assert store.add_list("L").ok


def test_persistence_failure_is_reported_but_state_advances(clock: FakeClock) -> None:
    repo = MemoryRepo(fail_saves=True)
    store = TaskStore(repo, clock=clock)
    seen: list[AppState] = []
    store.subscribe(seen.append)

    with pytest.raises(PersistenceError):
        store.add_list("L")
    assert [x.name for x in store.state.lists] == ["Inbox", "L"]
    assert seen and seen[-1] is store.state


def test_ids_are_unique_across_adds(store: TaskStore) -> None:
    for i in range(20):
        _add(store, f"p{i}")
    ids = tree.collect_ids(store.get_list(INBOX_ID).problems)
    assert len(set(ids)) == 20


def test_debug_unique_ids_detects_collisions() -> None:
    store = TaskStore(MemoryRepo(), id_factory=lambda: "same", debug_unique_ids=True)
    store.add_problem(None, INBOX_ID, name="first")
    with pytest.raises(DuplicateIdError):
        store.add_problem(None, INBOX_ID, name="second")


def test_loaded_problems_are_reachable(clock: FakeClock) -> None:
    nested = Problem(id="n", name="nested")
    state = default_state()
    inbox = state.lists[0]
    repo = MemoryRepo(
        initial=AppState(lists=(TaskList(id=inbox.id, name=inbox.name, problems=(Problem(id="r", name="root", subproblems=(nested,)),)),))
    )
    store = TaskStore(repo, clock=clock)
    assert store.find_problem("n")[0].id == INBOX_ID
    assert store.get_problem("n") is nested


def test_nested_insert_works_at_any_depth(store: TaskStore) -> None:
    parent = None
    chain = []
    for depth in range(6):
        parent = _add(store, f"level {depth}", parent_id=parent)
        chain.append(parent)

    path = tree.find_path(store.get_list(INBOX_ID).problems, chain[-1])
    assert [p.id for p in path] == chain
    assert store.update_problem(INBOX_ID, chain[-1], notes="deep").ok
    assert store.get_problem(chain[-1]).notes == "deep"


def test_inbox_quick_add_shows_up_in_today_and_badge(store: TaskStore) -> None:
    vc = derive.ViewContext.at()
    assert derive.badge_counts(store.state, vc).inbox == 0

    _add(store, "Buy milk", priority=Priority.TODAY)
    sections = derive.today_sections(store.state, vc)
    assert [t.problem.name for t in sections.do_today] == ["Buy milk"]
    assert derive.badge_counts(store.state, vc).inbox == 1


def test_parent_becomes_next_action_once_children_are_solved(store: TaskStore) -> None:
    parent = _add(store, "parent")
    first = _add(store, "first", parent_id=parent)
    second = _add(store, "second", parent_id=parent)
    done = _add(store, "done", parent_id=parent)
    store.update_problem(INBOX_ID, done, completed=True)

    def matching() -> list[str]:
        out: list[str] = []

        def walk(nodes) -> None:
            for node in nodes:
                if not node.dimmed:
                    out.append(node.problem.id)
                walk(node.children)

        for t in derive.next_actions_tree(store.state):
            walk(t.nodes)
        return out

    assert not derive.is_next_action(store.get_problem(parent))
    assert matching() == [first, second]

    store.update_problem(INBOX_ID, first, completed=True)
    assert matching() == [second]

    store.update_problem(INBOX_ID, second, completed=True)
    assert derive.is_next_action(store.get_problem(parent))
    assert matching() == [parent]
