"""Scope analysis: arena layout, binding sites, fresh names."""

import pytest

from unclosure.frontend.ast import FnDecl, VarDecl
from unclosure.frontend.parse import parse
from unclosure.middleend.scope import analyze_scope, format_scopes


def _table(source: str, source_type: str = "module"):
    program = parse(source, source_type=source_type)
    return program, analyze_scope(program)


def test_program_scope_is_root():
    _, table = _table("let a = 1;")
    root = table.scopes[0]
    assert root.kind == "program"
    assert root.parent is None
    assert "a" in root.names


def test_function_body_shares_function_scope():
    program, table = _table("function f(x) { let y = x; }")
    fn = program.body[0]
    assert isinstance(fn, FnDecl)
    scope = table.scope_of(fn)
    assert scope is not None
    assert table.scope_of(fn.body) == scope
    names = table.scopes[scope].names
    assert set(names) == {"x", "y"}
    assert table.bindings[names["x"]].kind == "param"
    assert table.bindings[names["y"]].kind == "let"


def test_function_declaration_binds_in_enclosing_scope():
    _, table = _table("function outer() { function inner() {} }")
    outer = table.lookup(0, "outer")
    assert outer is not None and outer.kind == "hoisted"
    inner_scope = table.scopes[1]
    assert table.bindings[inner_scope.names["inner"]].kind == "hoisted"


def test_var_is_function_scoped_let_is_block_scoped():
    _, table = _table("function f() { if (true) { var a = 1; let b = 2; } }")
    fn_scope = table.scopes[1]
    block_scope = table.scopes[2]
    assert block_scope.kind == "block"
    assert "a" in fn_scope.names
    assert "b" in block_scope.names
    assert "a" not in block_scope.names


def test_references_and_mutations():
    _, table = _table("let n = 0; n = n + 1; n++; console.log(n);")
    n = table.lookup(0, "n")
    assert n is not None
    assert len(n.references) == 3
    assert len(n.mutations) == 2
    assert n.ident not in n.sites()


def test_compound_assignment_reads_and_writes():
    _, table = _table("let n = 0; n += 2;")
    n = table.lookup(0, "n")
    assert len(n.references) == 1
    assert len(n.mutations) == 1


def test_redeclaration_counts_as_mutation():
    _, table = _table("var a = 1; var a = 2;", source_type="script")
    a = table.lookup(0, "a")
    assert a is not None
    assert len(a.mutations) == 1


def test_unresolved_names_are_globals():
    _, table = _table("console.log(missing);")
    assert table.globals == {"console", "missing"}


def test_for_loop_gets_its_own_scope():
    _, table = _table("for (let i = 0; i < 3; i++) { i; }")
    loop = table.scopes[1]
    assert loop.kind == "for"
    i = table.bindings[loop.names["i"]]
    assert len(i.references) == 3
    assert len(i.mutations) == 1


def test_catch_parameter_binds_in_catch_scope():
    _, table = _table("try {} catch (e) { e; }")
    catch = [s for s in table.scopes if s.kind == "catch"]
    assert len(catch) == 1
    e = table.bindings[catch[0].names["e"]]
    assert e.kind == "let"
    assert len(e.references) == 1


def test_named_function_expression_binds_its_own_name():
    program, table = _table("const f = function g() { return g; };")
    decl = program.body[0]
    assert isinstance(decl, VarDecl)
    scope = table.scope_of(decl.declarators[0].init)
    g = table.bindings[table.scopes[scope].names["g"]]
    assert g.kind == "local"
    assert len(g.references) == 1
    assert table.lookup(0, "g") is None


def test_inner_declaration_shadows_outer():
    _, table = _table("let x = 1; function f() { let x = 2; return x; }")
    outer_x = table.lookup(0, "x")
    inner_x = table.lookup(1, "x")
    assert outer_x is not inner_x
    assert len(outer_x.references) == 0
    assert len(inner_x.references) == 1
    names = [b.name for b in table.visible_bindings(1)]
    assert names.count("x") == 1


def test_chain_runs_inner_to_outer():
    _, table = _table("function a() { function b() { { } } }")
    innermost = len(table.scopes) - 1
    assert table.chain(innermost) == [3, 2, 1, 0]


def test_generate_uid_prefixes_and_counts():
    _, table = _table("let x = 1;")
    assert table.generate_uid("x") == "_x"
    assert table.generate_uid("x") == "_x2"
    assert table.generate_uid("_x3") == "_x3"


def test_generate_uid_avoids_existing_names():
    _, table = _table("let _ref = 1; _ref2;")
    assert table.generate_uid("ref") == "_ref3"


def test_generate_uid_empty_seed():
    _, table = _table("1;")
    assert table.generate_uid("123") == "_temp"


def test_rename_updates_every_site():
    program, table = _table("let a = 1; a = a + 1;")
    a = table.lookup(0, "a")
    table.rename(a, "b")
    assert table.lookup(0, "a") is None
    assert table.lookup(0, "b") is a
    assert a.ident.name == "b"
    assert all(site.name == "b" for site in a.sites())


def test_move_binding_changes_owner():
    _, table = _table("function f() { let a = 1; }")
    a = table.lookup(1, "a")
    table.move_binding(a, 0)
    assert a.scope == 0
    assert "a" not in table.scopes[1].names
    assert table.lookup(0, "a") is a


def test_reparent_rejects_cycles():
    _, table = _table("function f() { function g() {} }")
    with pytest.raises(ValueError):
        table.reparent(1, 2)


def test_format_scopes():
    _, table = _table("function foo() { return bar; }")
    text = format_scopes(table)
    assert text.startswith("scope 0 program @1:1\n")
    assert "    hoisted foo refs=0 writes=0\n" in text
    assert "scope 1 function foo @1:1 parent=0\n" in text
    assert text.endswith("globals bar\n")
