"""Entity rules shared by the JavaScript, TypeScript and TSX grammars."""

import re
from collections.abc import Iterator

from tree_sitter import Node

from codex_explain.extract.nodes import node_span, node_text, strip_quotes
from codex_explain.models import EntityKind, ExtractionResult, RawEntity

_FUNCTION_VALUES = {"arrow_function", "function_expression", "function", "generator_function"}
_CLASS_DECLARATIONS = {"class_declaration", "abstract_class_declaration"}
_SIMPLE_DECLARATIONS: dict[str, EntityKind] = {
    "interface_declaration": "interface",
    "type_alias_declaration": "type",
    "enum_declaration": "enum",
}
_ROUTE_METHODS = {"get", "post", "put", "patch", "delete", "all"}
_ROUTER_OBJECT_RE = re.compile(r"^(?:app|api|server|fastify|router|\w*Router|\w*router)$")


def _function_kind(name: str | None) -> EntityKind:
    return "component" if name and name[0].isupper() else "function"


def _function_signature(node: Node, source: bytes, name: str) -> str:
    params = node.child_by_field_name("parameters") or node.child_by_field_name("parameter")
    returns = node.child_by_field_name("return_type")
    params_text = node_text(params, source) if params is not None else "()"
    if not params_text.startswith("("):
        params_text = f"({params_text})"
    signature = f"{name}{params_text}"
    if returns is not None:
        signature += node_text(returns, source)
    return signature


def _name_of(node: Node, source: bytes) -> str | None:
    name_node = node.child_by_field_name("name")
    return node_text(name_node, source) if name_node is not None else None


class _ScriptWalker:
    def __init__(self, source: bytes) -> None:
        self.source = source
        self.result = ExtractionResult()
        self.clause_exports: set[str] = set()

    def text(self, node: Node) -> str:
        return node_text(node, self.source)

    def add(self, entity: RawEntity) -> None:
        self.result.entities.append(entity)

    def walk_program(self, root: Node) -> ExtractionResult:
        for statement in root.named_children:
            self.statement(statement)

        for index, entity in enumerate(self.result.entities):
            if entity.container is None and entity.name in self.clause_exports and not entity.exported:
                self.result.entities[index] = entity.model_copy(update={"exported": True})

        exported_names = [
            entity.name
            for entity in self.result.entities
            if entity.container is None and entity.exported and entity.name and entity.kind != "route"
        ]
        self.result.exports = list(dict.fromkeys([*exported_names, *sorted(self.clause_exports)]))
        self.result.entities.extend(self.routes(root))
        return self.result

    def statement(self, node: Node) -> None:
        if node.type == "import_statement":
            source_node = node.child_by_field_name("source")
            if source_node is not None:
                self.result.imports.append(strip_quotes(self.text(source_node)))
        elif node.type == "export_statement":
            self.export_statement(node)
        else:
            self.declaration(node, exported=False)

    def export_statement(self, node: Node) -> None:
        reexported_from = node.child_by_field_name("source")
        if reexported_from is not None:
            self.result.imports.append(strip_quotes(self.text(reexported_from)))

        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            self.declaration(declaration, exported=True, outer=node)
            return

        for clause in (child for child in node.named_children if child.type == "export_clause"):
            for specifier in clause.named_children:
                name = _name_of(specifier, self.source)
                if name:
                    self.clause_exports.add(name)

        value = node.child_by_field_name("value")
        if value is None:
            return
        if value.type in _FUNCTION_VALUES:
            self.add(
                RawEntity(
                    name=_name_of(value, self.source),
                    kind="function",
                    exported=True,
                    span=node_span(node),
                    raw_source=self.text(node),
                    signature=_function_signature(value, self.source, "default"),
                    role="default_export",
                )
            )
        elif value.type == "class":
            self.class_entities(value, exported=True, outer=node, role="default_export")

    def declaration(self, node: Node, exported: bool, outer: Node | None = None) -> None:
        span_node = outer if outer is not None else node

        if node.type in ("function_declaration", "generator_function_declaration"):
            name = _name_of(node, self.source)
            self.add(
                RawEntity(
                    name=name,
                    kind=_function_kind(name),
                    exported=exported,
                    span=node_span(span_node),
                    raw_source=self.text(span_node),
                    signature=_function_signature(node, self.source, name or "default"),
                    role="default_export" if name is None else None,
                )
            )
        elif node.type in _CLASS_DECLARATIONS:
            self.class_entities(node, exported=exported, outer=span_node)
        elif node.type in _SIMPLE_DECLARATIONS:
            self.add(
                RawEntity(
                    name=_name_of(node, self.source),
                    kind=_SIMPLE_DECLARATIONS[node.type],
                    exported=exported,
                    span=node_span(span_node),
                    raw_source=self.text(span_node),
                )
            )
        elif node.type in ("lexical_declaration", "variable_declaration"):
            for declarator in (child for child in node.named_children if child.type == "variable_declarator"):
                self.variable(declarator, exported)

    def variable(self, declarator: Node, exported: bool) -> None:
        name_node = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
        if name_node is None or value is None or name_node.type != "identifier":
            return
        name = self.text(name_node)
        if value.type in _FUNCTION_VALUES:
            self.add(
                RawEntity(
                    name=name,
                    kind=_function_kind(name),
                    exported=exported,
                    span=node_span(declarator),
                    raw_source=self.text(declarator),
                    signature=_function_signature(value, self.source, name),
                )
            )
            return
        self.add(
            RawEntity(
                name=name,
                kind="const",
                exported=exported,
                span=node_span(declarator),
                raw_source=self.text(declarator),
            )
        )

    def class_entities(self, node: Node, exported: bool, outer: Node, role: str | None = None) -> None:
        name = _name_of(node, self.source)
        container = name or role
        self.add(
            RawEntity(
                name=name,
                kind="class",
                exported=exported,
                span=node_span(outer),
                raw_source=self.text(outer),
                signature=f"class {name or 'default'}",
                role=role,
            )
        )
        body = node.child_by_field_name("body")
        if body is None or container is None:
            return
        for member in body.named_children:
            if member.type == "method_definition":
                method_name = _name_of(member, self.source)
                if method_name is None:
                    continue
                self.add(
                    RawEntity(
                        name=f"{container}.{method_name}",
                        kind="method",
                        exported=exported,
                        span=node_span(member),
                        raw_source=self.text(member),
                        signature=_function_signature(member, self.source, method_name),
                        container=container,
                    )
                )
            elif member.type in ("public_field_definition", "field_definition"):
                field_name = member.child_by_field_name("name") or member.child_by_field_name("property")
                value = member.child_by_field_name("value")
                if field_name is None or value is None or value.type not in _FUNCTION_VALUES:
                    continue
                prop = self.text(field_name)
                self.add(
                    RawEntity(
                        name=f"{container}.{prop}",
                        kind="method",
                        exported=exported,
                        span=node_span(member),
                        raw_source=self.text(member),
                        signature=_function_signature(value, self.source, prop),
                        container=container,
                    )
                )

    def routes(self, root: Node) -> Iterator[RawEntity]:
        for node in _descendants(root):
            if node.type != "call_expression":
                continue
            function = node.child_by_field_name("function")
            arguments = node.child_by_field_name("arguments")
            if function is None or arguments is None or function.type != "member_expression":
                continue
            obj = function.child_by_field_name("object")
            prop = function.child_by_field_name("property")
            if obj is None or prop is None or not _ROUTER_OBJECT_RE.match(self.text(obj)):
                continue
            method = self.text(prop)
            first = arguments.named_children[0] if arguments.named_children else None
            if method not in _ROUTE_METHODS or first is None or first.type != "string":
                continue
            verb = "ANY" if method == "all" else method.upper()
            yield RawEntity(
                name=f"{verb} {strip_quotes(self.text(first))}",
                kind="route",
                exported=True,
                span=node_span(node),
                raw_source=self.text(node),
            )


def _descendants(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.named_children))


def extract_script(root: Node, source: bytes) -> ExtractionResult:
    return _ScriptWalker(source).walk_program(root)
