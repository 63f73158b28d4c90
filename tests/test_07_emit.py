"""JavaScript printer: layout, parentheses, stability."""

import pytest

from unclosure.backend.javascript import emit
from unclosure.frontend.parse import parse


def _print(source: str, source_type: str = "module") -> str:
    return emit(parse(source, source_type=source_type))


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("(1 + 2) * 3;", "(1 + 2) * 3;"),
        ("1 + (2 * 3);", "1 + 2 * 3;"),
        ("a - (b - c);", "a - (b - c);"),
        ("(a - b) - c;", "a - b - c;"),
        ("(2 ** 3) ** 2;", "(2 ** 3) ** 2;"),
        ("2 ** (3 ** 2);", "2 ** 3 ** 2;"),
        ("(-2) ** 2;", "(-2) ** 2;"),
        ("(a ?? b) || c;", "(a ?? b) || c;"),
        ("a ? b : c ? d : e;", "a ? b : c ? d : e;"),
        ("(a, b);", "a, b;"),
        ("f((a, b));", "f((a, b));"),
        ("new (f())();", "new (f())();"),
        ("new a.B();", "new a.B();"),
        ("(1).toString();", "(1).toString();"),
        ("- -x;", "- -x;"),
        ("typeof x;", "typeof x;"),
        ("x++;", "x++;"),
        ("(function () {})();", "(function () {}());"),
        ("({});", "({});"),
        ("x = () => ({ a: 1 });", "x = () => ({ a: 1 });"),
        ("a = b = c;", "a = b = c;"),
    ],
)
def test_expression_printing(source, expected):
    assert _print(source) == expected + "\n"


def test_statement_layout():
    source = "function f(a, b = 1, ...rest) { if (a) return b; else if (rest) { return 2; } else return 3; }"
    assert _print(source) == (
        "function f(a, b = 1, ...rest) {\n"
        "    if (a) {\n"
        "        return b;\n"
        "    } else if (rest) {\n"
        "        return 2;\n"
        "    } else {\n"
        "        return 3;\n"
        "    }\n"
        "}\n"
    )


def test_loops_and_try():
    source = (
        "for (let i = 0; i < 3; i++) continue;\n"
        "for (const x of xs) { break; }\n"
        "while (true) {}\n"
        "try { a(); } catch (e) { b(e); } finally { c(); }\n"
    )
    assert _print(source) == (
        "for (let i = 0; i < 3; i++) {\n"
        "    continue;\n"
        "}\n"
        "for (const x of xs) {\n"
        "    break;\n"
        "}\n"
        "while (true) {}\n"
        "try {\n"
        "    a();\n"
        "} catch (e) {\n"
        "    b(e);\n"
        "} finally {\n"
        "    c();\n"
        "}\n"
    )


def test_class_layout():
    source = "class A extends B { constructor() { super(); } static make() { return new A(); } *items() {} }"
    assert _print(source) == (
        "class A extends B {\n"
        "    constructor() {\n"
        "        super();\n"
        "    }\n"
        "    static make() {\n"
        "        return new A();\n"
        "    }\n"
        "    *items() {}\n"
        "}\n"
    )


def test_object_with_methods_is_multiline():
    source = "const o = { a: 1, 'b-c': 2, m() { return 1; } };"
    assert _print(source) == (
        "const o = {\n"
        "    a: 1,\n"
        '    "b-c": 2,\n'
        "    m() {\n"
        "        return 1;\n"
        "    }\n"
        "};\n"
    )


def test_plain_object_is_inline():
    assert _print("const o = { a, b: 2 };") == "const o = { a, b: 2 };\n"


def test_exports():
    source = "export const a = 1;\nexport function f() {}\nexport default 1 + 2;"
    assert _print(source) == (
        "export const a = 1;\n"
        "export function f() {}\n"
        "export default 1 + 2;\n"
    )


def test_async_and_generator_heads():
    source = "async function a() { await b; }\nfunction* g() { yield* h; }\nconst f = async (x) => x;"
    assert _print(source) == (
        "async function a() {\n"
        "    await b;\n"
        "}\n"
        "function* g() {\n"
        "    yield* h;\n"
        "}\n"
        "const f = async (x) => x;\n"
    )


def test_pragmas_and_generated_marker():
    source = "// @generated\nconst f = /* @generated */ function () {};"
    assert _print(source) == "// @generated\nconst f = /* @generated */ function () {};\n"


def test_string_escapes():
    assert _print("'a\"b\\n';") == '"a\\"b\\n";\n'


SAMPLES = [
    "function outer(x) {\n    return [x, ...rest].map((v) => v * 2);\n}\n",
    "let a = b ? c : d;\nif (a) {\n    a();\n}\n",
    "const o = {\n    f: function () {\n        return this;\n    }\n};\n",
]


@pytest.mark.parametrize("source", SAMPLES)
def test_printing_is_a_fixed_point(source):
    once = _print(source)
    assert once == source
    assert _print(once) == once
