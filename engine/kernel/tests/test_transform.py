"""
Live Preview Transform — Tests

Ordered regex rewrites: type syntax out, module syntax out, default export
into the entry slot. Markup diagnostics are warnings only.
"""

from preview_samples import TYPED_SOURCE

from engine.kernel.transform import (
    RegexTransform,
    markup_diagnostics,
    remove_exports,
    remove_imports,
    strip_arrow_return_types,
    strip_binding_annotations,
    strip_parameter_types,
    strip_return_types,
    strip_type_declarations,
)


def apply(code):
    return RegexTransform().apply(code).code


# ============================================================================
# Individual rules
# ============================================================================


class TestTypeDeclarations:
    def test_interface_with_nested_braces(self):
        code = "interface Props {\n  meta: { tags: string[] };\n}\nconst a = 1;"
        assert strip_type_declarations(code).strip() == "const a = 1;"

    def test_exported_interface(self):
        code = "export interface Props extends Base { a: number }\nconst a = 1;"
        assert "interface" not in strip_type_declarations(code)

    def test_type_alias(self):
        code = "type Filter = 'all' | 'done';\nconst a = 1;"
        assert strip_type_declarations(code).strip() == "const a = 1;"

    def test_multiline_union(self):
        code = "type Size =\n  | 'sm'\n  | 'lg';\nconst a = 1;"
        assert strip_type_declarations(code).strip() == "const a = 1;"

    def test_type_alias_without_semicolon(self):
        code = "type Id = string\nconst a = 1;"
        assert strip_type_declarations(code).strip() == "const a = 1;"


class TestSignatures:
    def test_function_return_type(self):
        assert strip_return_types("function A(): JSX.Element {") == "function A() {"

    def test_method_return_type(self):
        assert strip_return_types("render(): React.ReactNode {") == "render() {"

    def test_ternary_object_is_untouched(self):
        code = "const v = ok ? f() : { a: 1 };"
        assert strip_return_types(code) == code

    def test_arrow_return_type(self):
        assert strip_arrow_return_types("const f = (a): string => a;") == "const f = (a) => a;"

    def test_parameter_types(self):
        assert strip_parameter_types("const f = (a: number, b?: string) => a;") == "const f = (a, b) => a;"

    def test_parameter_default_kept(self):
        assert strip_parameter_types("function f(a: number = 5) {") == "function f(a = 5) {"

    def test_destructured_parameter_type(self):
        code = "function Card({ title, body }: Props) {"
        assert strip_parameter_types(code) == "function Card({ title, body }) {"

    def test_function_typed_parameter(self):
        code = "const f = (cb: () => void = noop) => cb();"
        assert strip_parameter_types(code) == "const f = (cb = noop) => cb();"

    def test_empty_parameter_lists_untouched(self):
        assert strip_parameter_types("function App() {") == "function App() {"
        assert strip_parameter_types("const App = () => <div />;") == "const App = () => <div />;"
        assert strip_parameter_types("useEffect(( ) => {}, []);") == "useEffect(( ) => {}, []);"

    def test_empty_parameter_list_through_pipeline(self):
        code = "export default function App() {\n  useEffect(() => {}, []);\n  return <div>hi</div>;\n}\n"
        out = apply(code)
        assert "window.__previewEntry__ = function App() {" in out
        assert "useEffect(() => {}, []);" in out

    def test_conditional_is_not_a_parameter_list(self):
        code = "if (a ? b : c) {"
        assert strip_parameter_types(code) == code


class TestBindings:
    def test_const_annotation(self):
        assert strip_binding_annotations("const count: number = 0;") == "const count = 0;"

    def test_destructured_annotation(self):
        code = "const [a, b]: [string, number] = pair;"
        assert strip_binding_annotations(code) == "const [a, b] = pair;"

    def test_hook_generic(self):
        code = "const [items, setItems] = useState<Item[]>([]);"
        assert strip_binding_annotations(code) == "const [items, setItems] = useState([]);"

    def test_nested_hook_generic(self):
        code = "const ref = useRef<Map<string, number>>(null);"
        assert strip_binding_annotations(code) == "const ref = useRef(null);"


class TestModuleSyntax:
    def test_imports_removed(self):
        code = "import React from 'react';\nimport {\n  a,\n  b,\n} from './x';\nimport './styles.css';\nconst c = 1;"
        assert remove_imports(code) == "const c = 1;"

    def test_default_export_rewritten(self):
        assert apply("export default function App() {}") == "window.__previewEntry__ = function App() {}"

    def test_default_export_identifier(self):
        assert apply("const App = 1;\nexport default App;") == "const App = 1;\nwindow.__previewEntry__ = App;"

    def test_named_exports_removed(self):
        code = "export const a = 1;\nexport function b() {}\nexport { a, b };\n"
        assert remove_exports(code) == "const a = 1;\nfunction b() {}\n"

    def test_custom_entry_slot(self):
        result = RegexTransform(entry_slot="window.__entry").apply("export default App;")
        assert result.code == "window.__entry = App;"


# ============================================================================
# Whole pipeline
# ============================================================================


class TestRegexTransform:
    def test_typed_component(self):
        code = apply(TYPED_SOURCE)
        assert "import " not in code
        assert "interface" not in code
        assert "type Filter" not in code
        assert "export" not in code
        assert ": JSX.Element" not in code
        assert ": Item" not in code
        assert ": number" not in code
        assert "useState('all')" in code
        assert "window.__previewEntry__ = function ItemList({ items, title })" in code

    def test_markup_survives(self):
        code = apply(TYPED_SOURCE)
        assert "<li key={item.id}>{pick(item, index)}</li>" in code

    def test_deterministic(self):
        assert apply(TYPED_SOURCE) == apply(TYPED_SOURCE)

    def test_balanced_markup_has_no_diagnostics(self):
        assert RegexTransform().apply(TYPED_SOURCE).diagnostics == ()


class TestDiagnostics:
    def test_unclosed_tag(self):
        diagnostics = markup_diagnostics("const A = () => <div><span>hi</div>;")
        assert diagnostics == ["Possibly unclosed <span> tag (1 opened, 0 closed)"]

    def test_self_closing_and_void_ignored(self):
        assert markup_diagnostics("<div><img src='a'><Foo onClick={() => go()} /></div>") == []

    def test_stray_closing_tag(self):
        assert markup_diagnostics("<div></div></p>") == ["Closing </p> without matching opening tag"]

    def test_comparison_is_not_markup(self):
        assert markup_diagnostics("const ok = a<b && c>d;") == []
