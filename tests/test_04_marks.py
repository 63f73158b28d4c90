"""Risk marking and the per-closure hoisting decisions."""

import pytest

from unclosure.frontend.ast import ArrowFn, Block, FnDecl, FnExpr, Function, Identifier, Pos, walk
from unclosure.frontend.parse import parse
from unclosure.middleend.hoisting import (
    HoistError,
    closures_post_order,
    consider_closure,
    hoist_closures,
    locate_attachment,
)
from unclosure.middleend.marks import mark_risks
from unclosure.middleend.scope import analyze_scope


def _functions(program) -> list[Function]:
    return [n for n in walk(program) if isinstance(n, Function)]


def _named(program, name: str) -> Function:
    for fn in _functions(program):
        if fn.id is not None and fn.id.name == name:
            return fn
    raise KeyError(name)


def _arrows(program) -> list[ArrowFn]:
    return [n for n in walk(program) if isinstance(n, ArrowFn)]


# ── Marks ────────────────────────────────────────────────────


def test_this_marks_arrows_up_to_binding_function():
    program = parse("function f() { return () => () => this; }")
    marks = mark_risks(program)
    outer_arrow, inner_arrow = _arrows(program)
    assert marks.captures_this(inner_arrow)
    assert marks.captures_this(outer_arrow)
    assert not marks.captures_this(_named(program, "f"))


def test_this_inside_plain_function_marks_nothing():
    program = parse("const g = () => function () { return this; };")
    marks = mark_risks(program)
    assert not any(marks.captures_this(fn) for fn in _functions(program))


def test_arguments_and_super_count_as_this():
    program = parse("function f() { return () => arguments; }\nclass A extends B { m() { return () => super.m(); } }")
    marks = mark_risks(program)
    assert all(marks.captures_this(a) for a in _arrows(program))


def test_eval_marks_every_enclosing_function():
    program = parse("function a() { function b() { const c = () => eval('1'); } }")
    marks = mark_risks(program)
    assert all(marks.uses_eval(fn) for fn in _functions(program))


def test_eval_does_not_mark_siblings():
    program = parse("function a() { eval('1'); }\nfunction b() {}")
    marks = mark_risks(program)
    assert marks.uses_eval(_named(program, "a"))
    assert not marks.uses_eval(_named(program, "b"))


@pytest.mark.parametrize(
    "source",
    [
        "function f(arguments) { return () => arguments; }",
        "function f() { var arguments = 1; return () => arguments; }",
    ],
)
def test_bound_arguments_is_an_ordinary_name(source):
    program = parse(source, source_type="script")
    marks = mark_risks(program)
    assert not marks.captures_this(_arrows(program)[0])


def test_member_eval_is_not_direct():
    program = parse("function a() { obj.eval('1'); }")
    marks = mark_risks(program)
    assert not marks.uses_eval(_named(program, "a"))


# ── Traversal ────────────────────────────────────────────────


def test_closures_post_order_visits_children_first():
    program = parse("function a() { function b() { function c() {} } function d() {} }")
    order = [fn.id.name for fn in closures_post_order(program)]
    assert order == ["c", "b", "d", "a"]


# ── Decisions ────────────────────────────────────────────────


def _consider(source: str, name: str | None = None, source_type: str = "module"):
    program = parse(source, source_type=source_type)
    table = analyze_scope(program)
    marks = mark_risks(program)
    fn = _named(program, name) if name is not None else _arrows(program)[0]
    candidate, _ = consider_closure(fn, program, table, marks)
    return candidate, table


def test_capture_free_closure_targets_program():
    candidate, _ = _consider("function outer() { const f = () => 1; }")
    assert candidate.eligible
    assert candidate.free_bindings == []
    assert candidate.destination == 0


def test_top_level_closure_has_no_destination():
    candidate, _ = _consider("const f = () => 1;")
    assert candidate.eligible
    assert candidate.destination is None
    assert candidate.reason == "no legal destination"


def test_free_binding_stops_at_defining_scope():
    source = "function a(x) { function b() { const f = () => x; } }"
    candidate, table = _consider(source)
    assert [b.name for b in candidate.free_bindings] == ["x"]
    assert table.scopes[candidate.destination].node is _named_from(table, "a")


def _named_from(table, name: str):
    for scope in table.scopes:
        node = scope.node
        if isinstance(node, Function) and node.id is not None and node.id.name == name:
            return node
    raise KeyError(name)


@pytest.mark.parametrize(
    ("source", "name", "reason"),
    [
        ("class A { m() { return 1; } }", None, "method"),
        ("function f() { const g = () => this; }", None, "captures this"),
        ("function f() { const g = () => eval('1'); }", None, "uses eval"),
        ("function f() { function g() {} g = 1; }", "g", "declaration is reassigned"),
        ("function f() { function g() {} var g; }", "g", "declaration not bound to itself"),
    ],
)
def test_classify_reasons(source, name, reason):
    program = parse(source, source_type="script")
    table = analyze_scope(program)
    marks = mark_risks(program)
    if name is not None:
        fn = _named(program, name)
    else:
        fn = next(f for f in _functions(program) if f.id is None)
    candidate, _ = consider_closure(fn, program, table, marks)
    assert not candidate.eligible
    assert candidate.reason == reason


def test_already_hoisted_is_skipped():
    program = parse("function f() { const g = () => 1; }")
    table = analyze_scope(program)
    marks = mark_risks(program)
    arrow = _arrows(program)[0]
    arrow.annotations["hoisted"] = True
    candidate, _ = consider_closure(arrow, program, table, marks)
    assert not candidate.eligible
    assert candidate.reason == "already hoisted"


def test_generated_ancestor_blocks_relocation():
    program = parse("function f() { const g = /* @generated */ function () { return () => 1; }; }")
    table = analyze_scope(program)
    marks = mark_risks(program)
    candidate, _ = consider_closure(_arrows(program)[0], program, table, marks)
    assert candidate.reason == "inside generated code"


def test_loop_scope_is_never_a_destination():
    candidate, _ = _consider("function f() { for (let i = 0; i < 1; i++) { const g = () => i; } }")
    assert candidate.destination is None


# ── Attachment ───────────────────────────────────────────────


def test_locate_attachment_finds_containing_statement():
    program = parse("let a = 1;\nfunction f() { return () => 1; }")
    arrow = _arrows(program)[0]
    assert locate_attachment(program, arrow) is program.body[1]


def test_locate_attachment_requires_statement_list():
    program = parse("const g = () => 1;")
    arrow = _arrows(program)[0]
    with pytest.raises(HoistError):
        locate_attachment(Identifier(Pos(1, 1), "x"), arrow)


def test_locate_attachment_requires_containment():
    program = parse("function f() { return () => 1; }")
    arrow = _arrows(program)[0]
    with pytest.raises(HoistError, match="no attachment point"):
        locate_attachment(Block(Pos(1, 1), []), arrow)


# ── Whole pass ───────────────────────────────────────────────


def test_hoist_closures_inserts_before_attachment():
    program = parse("let a = 1;\nfunction f() { return () => 1; }")
    result = hoist_closures(program)
    assert result.count == 1
    decl = program.body[1]
    assert isinstance(decl, FnDecl)
    assert decl.id.name == "_ref"
    assert decl.annotations["hoisted"]
    assert result.relocated == [decl]


def test_hoist_closures_twice_moves_nothing():
    program = parse("function f() { const g = () => 1; function h() { return 2; } }")
    assert hoist_closures(program).count == 2
    assert hoist_closures(program).count == 0


def test_closure_calling_a_later_declaration_follows_it():
    program = parse("function outer() { const g = () => helper(); function helper() { return 1; } return g(); }")
    result = hoist_closures(program)
    assert result.count == 2
    assert [d.id.name for d in program.body[:2]] == ["_helper", "_g"]
    assert hoist_closures(program).count == 0


def test_relocated_expression_keeps_generated_flag():
    program = parse("function f() { const g = /* @generated */ function () {}; }")
    hoist_closures(program)
    decl = program.body[0]
    assert isinstance(decl, FnDecl)
    assert decl.annotations.get("generated")
    assert not any(isinstance(n, FnExpr) for n in walk(program))
