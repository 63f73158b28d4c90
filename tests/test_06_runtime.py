"""Reference interpreter used to check that relocation preserves behavior."""

import pytest

from unclosure.frontend.parse import parse
from unclosure.runtime import UNDEFINED, JSThrow, RuntimeFault, display, run


def _value(source: str, source_type: str = "module") -> str:
    return display(run(parse(source, source_type=source_type)).value)


def _output(source: str) -> list[str]:
    return run(parse(source)).output


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("1 + 2 * 3;", "7"),
        ("2 ** 3 ** 2;", "512"),
        ("7 / 2;", "3.5"),
        ("'a' + 1;", '"a1"'),
        ("1 == '1';", "true"),
        ("1 === '1';", "false"),
        ("null ?? 'x';", '"x"'),
        ("0 || 'y';", '"y"'),
        ("typeof undefined;", '"undefined"'),
        ("typeof (() => 1);", '"function"'),
        ("[1, 2, 3].map((x) => x * 2);", "[2, 4, 6]"),
        ("({ a: 1, b: 'two' });", '{ a: 1, b: "two" }'),
        ("[1, 2, 3].reduce((a, b) => a + b, 0);", "6"),
        ("'a,b'.split(',').length;", "2"),
        ("Math.max(1, 5, 3);", "5"),
        ("let n = 1; n += 4; n;", "5"),
    ],
)
def test_expressions(source, expected):
    assert _value(source) == expected


def test_empty_program_completes_with_undefined():
    assert run(parse("let a = 1;")).value is UNDEFINED


def test_closure_counter():
    source = """
function counter() {
    let n = 0;
    return () => ++n;
}
const next = counter();
next();
next();
"""
    assert _value(source) == "2"


def test_loop_closures_capture_each_iteration():
    source = """
const fns = [];
for (let i = 0; i < 3; i++) {
    fns.push(() => i);
}
fns.map((f) => f()).join(",");
"""
    assert _value(source) == '"0,1,2"'


def test_function_declarations_are_hoisted():
    assert _value("f();\nfunction f() { return 3; }") == "3"


def test_classes_and_super():
    source = """
class Animal {
    constructor(name) {
        this.name = name;
    }
    speak() {
        return this.name + " makes a sound";
    }
}
class Dog extends Animal {
    speak() {
        return super.speak() + " (woof)";
    }
}
new Dog("Rex").speak();
"""
    assert _value(source) == '"Rex makes a sound (woof)"'


def test_arrow_sees_method_this():
    source = """
const box = {
    value: 4,
    get() {
        return [1].map(() => this.value)[0];
    },
};
box.get();
"""
    assert _value(source) == "4"


def test_plain_call_has_undefined_this():
    assert _value("function f() { return this; }\nf();") == "undefined"


def test_direct_eval_declares_in_function():
    source = """
function f() {
    eval("var x = 41");
    return x + 1;
}
f();
"""
    assert _value(source) == "42"


def test_try_catch_finally():
    source = """
const log = [];
try {
    log.push("try");
    throw new Error("bad");
} catch (e) {
    log.push(e.message);
} finally {
    log.push("finally");
}
log.join(" ");
"""
    assert _value(source) == '"try bad finally"'


def test_console_log_output():
    assert _output("console.log('hi', 1, [2]);\nconsole.log({ a: 'b' });") == [
        "hi 1 [2]",
        '{ a: "b" }',
    ]


def test_exports_are_recorded():
    result = run(parse("export const a = 1;\nexport function f() {}\nexport default 5;"))
    assert set(result.exports) == {"a", "f", "default"}
    assert result.exports["a"] == 1
    assert result.exports["default"] == 5


def test_uncaught_error_raises():
    with pytest.raises(JSThrow, match="uncaught Error: boom"):
        run(parse("throw new Error('boom');"))


def test_reference_error():
    with pytest.raises(JSThrow, match="ReferenceError: missing is not defined"):
        run(parse("missing;"))


def test_calling_non_function_is_type_error():
    with pytest.raises(JSThrow, match="TypeError"):
        run(parse("const a = 1;\na();"))


def test_generators_are_not_executed():
    with pytest.raises(RuntimeFault, match="generators and async functions are not executed"):
        run(parse("function* g() { yield 1; }\ng();"))


def test_display_functions_and_classes():
    assert _value("function named() {}\nnamed;") == "[Function named]"
    assert _value("class K {}\nK;") == "[class K]"
