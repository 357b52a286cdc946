"""Entity rules for the tree-sitter Python grammar."""

from tree_sitter import Node

from codex_explain.extract.nodes import node_span, node_text, strip_quotes
from codex_explain.models import EntityKind, ExtractionResult, RawEntity

_ENUM_BASES = ("Enum", "IntEnum", "StrEnum", "Flag", "IntFlag")
_INTERFACE_BASES = ("Protocol", "TypedDict", "ABC")
_ROUTE_DECORATORS = {"get", "post", "put", "patch", "delete", "head", "options", "route", "api_route", "websocket"}


def _is_public(name: str, dunder_all: set[str] | None) -> bool:
    if dunder_all is not None:
        return name in dunder_all
    return not name.startswith("_")


def _class_kind(node: Node, source: bytes) -> EntityKind:
    superclasses = node.child_by_field_name("superclasses")
    if superclasses is None:
        return "class"
    bases = [node_text(base, source).rsplit(".", 1)[-1] for base in superclasses.named_children]
    if any(base.split("[", 1)[0] in _ENUM_BASES for base in bases):
        return "enum"
    if any(base.split("[", 1)[0] in _INTERFACE_BASES for base in bases):
        return "interface"
    return "class"


def _function_signature(node: Node, source: bytes, name: str) -> str:
    params = node.child_by_field_name("parameters")
    returns = node.child_by_field_name("return_type")
    prefix = "async def" if node.children and node.children[0].type == "async" else "def"
    signature = f"{prefix} {name}{node_text(params, source) if params else '()'}"
    if returns is not None:
        signature += f" -> {node_text(returns, source)}"
    return signature


def _class_signature(node: Node, source: bytes, name: str) -> str:
    superclasses = node.child_by_field_name("superclasses")
    return f"class {name}{node_text(superclasses, source) if superclasses else ''}"


def _unwrap_decorated(node: Node) -> Node:
    if node.type == "decorated_definition":
        definition = node.child_by_field_name("definition")
        if definition is not None:
            return definition
    return node


def _route_entities(outer: Node, source: bytes) -> list[RawEntity]:
    routes: list[RawEntity] = []
    for decorator in (child for child in outer.children if child.type == "decorator"):
        call = next((child for child in decorator.named_children if child.type == "call"), None)
        if call is None:
            continue
        function = call.child_by_field_name("function")
        arguments = call.child_by_field_name("arguments")
        if function is None or function.type != "attribute" or arguments is None:
            continue
        attribute = function.child_by_field_name("attribute")
        method = node_text(attribute, source) if attribute else ""
        first = arguments.named_children[0] if arguments.named_children else None
        if method not in _ROUTE_DECORATORS or first is None or first.type != "string":
            continue
        verb = "ANY" if method in ("route", "api_route") else method.upper()
        routes.append(
            RawEntity(
                name=f"{verb} {strip_quotes(node_text(first, source))}",
                kind="route",
                exported=True,
                span=node_span(outer),
                raw_source=node_text(outer, source),
            )
        )
    return routes


def _read_dunder_all(root: Node, source: bytes) -> set[str] | None:
    for statement in root.named_children:
        if statement.type != "expression_statement" or not statement.named_children:
            continue
        assignment = statement.named_children[0]
        if assignment.type != "assignment":
            continue
        left = assignment.child_by_field_name("left")
        right = assignment.child_by_field_name("right")
        if left is None or right is None or node_text(left, source) != "__all__":
            continue
        if right.type in ("list", "tuple"):
            return {strip_quotes(node_text(item, source)) for item in right.named_children if item.type == "string"}
    return None


def _import_targets(statement: Node, source: bytes) -> list[str]:
    if statement.type == "import_statement":
        targets = []
        for name in statement.children_by_field_name("name"):
            dotted = name.child_by_field_name("name") if name.type == "aliased_import" else name
            if dotted is not None:
                targets.append(node_text(dotted, source))
        return targets

    module = statement.child_by_field_name("module_name")
    if module is None:
        return []
    module_text = node_text(module, source)
    if module_text.strip("."):
        return [module_text]
    # "from . import a, b" imports sibling modules
    targets = []
    for name in statement.children_by_field_name("name"):
        dotted = name.child_by_field_name("name") if name.type == "aliased_import" else name
        if dotted is not None:
            targets.append(module_text + node_text(dotted, source))
    return targets or [module_text]


def _class_members(node: Node, source: bytes, class_name: str) -> list[RawEntity]:
    body = node.child_by_field_name("body")
    if body is None:
        return []
    members: list[RawEntity] = []
    for child in body.named_children:
        definition = _unwrap_decorated(child)
        if definition.type != "function_definition":
            continue
        name_node = definition.child_by_field_name("name")
        if name_node is None:
            continue
        method_name = node_text(name_node, source)
        members.append(
            RawEntity(
                name=f"{class_name}.{method_name}",
                kind="method",
                exported=not method_name.startswith("_"),
                span=node_span(child),
                raw_source=node_text(child, source),
                signature=_function_signature(definition, source, method_name),
                container=class_name,
            )
        )
    return members


def _assignment_entity(statement: Node, source: bytes, dunder_all: set[str] | None) -> RawEntity | None:
    assignment = statement.named_children[0] if statement.named_children else None
    if assignment is None or assignment.type != "assignment":
        return None
    left = assignment.child_by_field_name("left")
    right = assignment.child_by_field_name("right")
    if left is None or right is None or left.type != "identifier":
        return None
    name = node_text(left, source)
    if name.startswith("__") and name.endswith("__"):
        return None

    annotation = assignment.child_by_field_name("type")
    kind: EntityKind = "const"
    if right.type == "lambda":
        kind = "function"
    elif annotation is not None and node_text(annotation, source).endswith("TypeAlias"):
        kind = "type"
    return RawEntity(
        name=name,
        kind=kind,
        exported=_is_public(name, dunder_all),
        span=node_span(statement),
        raw_source=node_text(statement, source),
    )


def extract_python(root: Node, source: bytes) -> ExtractionResult:
    result = ExtractionResult()
    dunder_all = _read_dunder_all(root, source)

    for statement in root.named_children:
        if statement.type in ("import_statement", "import_from_statement"):
            result.imports.extend(_import_targets(statement, source))
            continue

        if statement.type == "expression_statement":
            entity = _assignment_entity(statement, source, dunder_all)
            if entity is not None:
                result.entities.append(entity)
                if entity.exported and entity.name:
                    result.exports.append(entity.name)
            continue

        if statement.type == "type_alias_statement":
            left = statement.child_by_field_name("left")
            if left is None:
                continue
            name = node_text(left, source).split("[", 1)[0]
            exported = _is_public(name, dunder_all)
            result.entities.append(
                RawEntity(
                    name=name,
                    kind="type",
                    exported=exported,
                    span=node_span(statement),
                    raw_source=node_text(statement, source),
                )
            )
            if exported:
                result.exports.append(name)
            continue

        definition = _unwrap_decorated(statement)
        if definition.type not in ("function_definition", "class_definition"):
            continue
        name_node = definition.child_by_field_name("name")
        if name_node is None:
            continue
        name = node_text(name_node, source)
        exported = _is_public(name, dunder_all)

        if definition.type == "function_definition":
            result.entities.append(
                RawEntity(
                    name=name,
                    kind="function",
                    exported=exported,
                    span=node_span(statement),
                    raw_source=node_text(statement, source),
                    signature=_function_signature(definition, source, name),
                )
            )
        else:
            result.entities.append(
                RawEntity(
                    name=name,
                    kind=_class_kind(definition, source),
                    exported=exported,
                    span=node_span(statement),
                    raw_source=node_text(statement, source),
                    signature=_class_signature(definition, source, name),
                )
            )
            result.entities.extend(_class_members(definition, source, name))

        if statement.type == "decorated_definition":
            result.entities.extend(_route_entities(statement, source))

        if exported:
            result.exports.append(name)

    return result
