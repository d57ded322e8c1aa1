"""Persistence idiom: SQL executed through a client, ORM calls, client setup."""

from __future__ import annotations

import re
from typing import Any

from codeviz.core.recognition.matchers.common import (
    STRING_TYPES,
    arguments,
    callee,
    error_handlers,
    object_pairs,
    receiver,
    root_identifier,
    string_value,
    template_identifiers,
    unique,
)
from codeviz.core.recognition.models import PatternMatch, PatternMatcher, TraversalContext
from codeviz.languages.models import SyntaxNode

PATTERN_TYPE = "database"

SQL_OPERATIONS = ("SELECT", "INSERT", "UPDATE", "DELETE", "CREATE", "DROP", "ALTER")
_SQL_START = re.compile(r"^\s*(" + "|".join(SQL_OPERATIONS) + r")\s+", re.IGNORECASE)
_TABLE_REFERENCES = [
    re.compile(r"FROM\s+(\w+)"),
    re.compile(r"INTO\s+(\w+)"),
    re.compile(r"UPDATE\s+(\w+)"),
    re.compile(r"JOIN\s+(\w+)"),
]
_PLACEHOLDER = re.compile(r"\?|\$\d+|:\w+")

EXECUTE_METHODS = frozenset({"query", "execute", "run", "all", "get", "exec", "prepare", "raw"})

_BUILTIN_GLOBALS = frozenset(
    {"Object", "Array", "Promise", "Math", "JSON", "Date", "Number", "String", "Map", "Set"}
)

GENERIC_CLIENT_NAMES = frozenset(
    {"db", "database", "connection", "conn", "client", "pool", "repository", "knex", "sql"}
)

DB_LIBRARIES = ("mysql", "pg", "sqlite", "mongodb", "mongoose", "sequelize", "typeorm", "prisma")

_ORM_METHODS = frozenset({
    "findall", "findbypk", "findone", "findorcreate", "create", "update", "destroy", "save",
    "remove", "find", "findmany", "findunique", "findfirst", "findbyid", "insertone",
    "insertmany", "updateone", "updatemany", "deleteone", "deletemany", "replaceone",
    "aggregate", "count", "distinct", "upsert", "delete",
})  # fmt: skip

_CONNECTION_METHODS = ("connect", "createconnection", "createpool", "getconnection")
_CLIENT_CONSTRUCTORS = {
    "Client": "pg",
    "Pool": "pg",
    "PrismaClient": "prisma",
    "MongoClient": "mongodb",
    "Sequelize": "sequelize",
    "Database": "sqlite3",
}


def is_sql(text: str) -> bool:
    """Whether text starts with a SQL statement keyword."""
    return bool(_SQL_START.match(text))


def operation_type(query: str) -> str:
    found = _SQL_START.match(query)
    return found.group(1).lower() if found else "unknown"


def table_names(query: str) -> list[str]:
    upper = query.upper()
    tables: list[str] = []
    for pattern in _TABLE_REFERENCES:
        for name in pattern.findall(upper):
            if name.lower() not in tables:
                tables.append(name.lower())
    return tables


def library_for(client: str | None) -> str | None:
    """Guess the database library from the receiver's root identifier."""
    if not client:
        return None
    lower = client.lower()
    if lower in GENERIC_CLIENT_NAMES:
        return "generic"
    for library in DB_LIBRARIES:
        if library in lower:
            return library
    if "db" in lower or "database" in lower or "pool" in lower or "conn" in lower:
        return "generic"
    return None


def orm_library(method: str) -> str:
    lower = method.lower()
    if lower in ("findall", "findbypk", "findone", "findorcreate", "create", "update", "destroy"):
        return "sequelize"
    if lower in ("find", "findbyid", "save", "remove", "populate", "aggregate"):
        return "mongoose"
    if lower in ("insertone", "updateone", "deleteone", "deletemany", "replaceone", "count"):
        return "mongodb"
    if lower in ("findmany", "findunique", "findfirst", "delete", "upsert"):
        return "prisma"
    return "orm"


def method_operation(method: str) -> str:
    lower = method.lower()
    if "find" in lower or "get" in lower or "select" in lower or "count" in lower:
        return "select"
    if "create" in lower or "insert" in lower or "add" in lower:
        return "insert"
    if "update" in lower or "upsert" in lower or "set" in lower or "save" in lower:
        return "update"
    if "delete" in lower or "remove" in lower or "destroy" in lower:
        return "delete"
    return "unknown"


def _resolve_query(
    node: SyntaxNode | None, context: TraversalContext
) -> tuple[SyntaxNode, SyntaxNode | None] | None:
    """The SQL string passed as ``node``, following one variable hop.

    Returns the string node and, when reached through a variable, the
    declarator that defines it.
    """
    if node is None:
        return None
    if node.type in STRING_TYPES:
        value = string_value(node)
        return (node, None) if value is not None and is_sql(value) else None
    if node.type == "identifier":
        declarator = context.scope.get(node.text)
        value = declarator.get("value") if declarator is not None else None
        if value is not None and value.type in STRING_TYPES:
            text = string_value(value)
            if text is not None and is_sql(text):
                return value, declarator
    return None


def _has_data_flow(context: TraversalContext) -> bool:
    for ancestor in reversed(context.ancestors[-3:]):
        if ancestor.type in ("variable_declarator", "assignment_expression", "return_statement"):
            return True
    return False


def _parameters(call: SyntaxNode) -> tuple[list[str], list[str]]:
    parameters: list[str] = []
    variables: list[str] = []
    for index, arg in enumerate(arguments(call)):
        if arg.type == "identifier":
            parameters.append(arg.text)
            variables.append(arg.text)
        elif arg.type in STRING_TYPES:
            parameters.append(f'"{string_value(arg)}"')
        elif arg.type == "number":
            parameters.append(arg.text)
        elif arg.type in ("object", "array"):
            parameters.append(arg.type)
            variables.extend(
                value.text
                for value in object_pairs(arg).values()
                if value.type == "identifier"
            )
        else:
            parameters.append(f"arg{index}")
    return parameters, variables


def _base_metadata(**overrides: Any) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "has_sql_operation": False,
        "has_db_connection": False,
        "has_query_execution": False,
        "has_data_flow": False,
        "has_error_handling": False,
        "db_library": None,
        "operation_type": "unknown",
        "tables": [],
        "parameters": [],
    }
    metadata.update(overrides)
    return metadata


def _query_match(
    node: SyntaxNode, method: str, client: str | None, context: TraversalContext
) -> PatternMatch | None:
    args = arguments(node)
    resolved = _resolve_query(args[0] if args else None, context)
    library = library_for(client)
    if resolved is None and library is None:
        return None

    parameters, variables = _parameters(node)
    involved = [node]
    roles = ["database"]
    metadata = _base_metadata(
        has_db_connection=True,
        has_query_execution=True,
        has_data_flow=_has_data_flow(context),
        db_library=library or "generic",
        method_name=method,
        parameters=parameters,
    )
    if resolved is not None:
        query_node, declarator = resolved
        query = string_value(query_node) or ""
        metadata.update(
            has_sql_operation=True,
            sql_query=query,
            operation_type=operation_type(query),
            tables=table_names(query),
            placeholders=len(_PLACEHOLDER.findall(query)),
        )
        if query_node.type == "template_string":
            variables.extend(template_identifiers(query_node))
        involved.append(declarator or query_node)
        roles.append("query")

    handlers = error_handlers(node, context)
    if handlers:
        metadata["has_error_handling"] = True
        involved.extend(handlers)
        roles.extend("error" for _ in handlers)

    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=involved,
        variables=unique(variables),
        functions=[method],
        metadata=metadata,
        roles=roles,
    )


def _orm_match(
    node: SyntaxNode, method: str, target: SyntaxNode, context: TraversalContext
) -> PatternMatch | None:
    obj = target.get("object")
    if obj is None or method.lower() not in _ORM_METHODS:
        return None
    client = root_identifier(obj)
    if obj.type == "member_expression":
        # prisma.user.findMany(), db.collection.find()
        prop = obj.get("property")
        model = prop.text if prop is not None else None
        library = library_for(client)
        if library is None:
            return None
        if library == "generic":
            library = orm_library(method)
    elif (
        obj.type == "identifier"
        and obj.text[:1].isupper()
        and obj.text not in _BUILTIN_GLOBALS
    ):
        # User.findAll()
        model = obj.text
        library = orm_library(method)
    else:
        return None

    parameters, variables = _parameters(node)
    involved = [node]
    roles = ["database"]
    metadata = _base_metadata(
        has_query_execution=True,
        has_data_flow=True,
        db_library=library,
        operation_type=method_operation(method),
        method_name=method,
        model_name=model,
        tables=[model.lower()] if model else [],
        parameters=parameters,
    )
    handlers = error_handlers(node, context)
    if handlers:
        metadata["has_error_handling"] = True
        involved.extend(handlers)
        roles.extend("error" for _ in handlers)

    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=involved,
        variables=unique(variables),
        functions=[method],
        metadata=metadata,
        roles=roles,
    )


def _connection_match(node: SyntaxNode, library: str, context: TraversalContext) -> PatternMatch:
    args = arguments(node)
    config = object_pairs(args[0]) if args else {}
    variables = [value.text for value in config.values() if value.type == "identifier"]
    involved = [node]
    roles = ["database"]
    metadata = _base_metadata(
        has_db_connection=True,
        has_data_flow=True,
        db_library=library,
        connection_config=sorted(config),
    )
    handlers = error_handlers(node, context)
    if handlers:
        metadata["has_error_handling"] = True
        involved.extend(handlers)
        roles.extend("error" for _ in handlers)
    return PatternMatch(
        type=PATTERN_TYPE,
        root=node,
        involved=involved,
        variables=unique(variables),
        functions=[],
        metadata=metadata,
        roles=roles,
    )


def match(node: SyntaxNode, context: TraversalContext) -> list[PatternMatch]:
    if node.type == "new_expression":
        constructor = callee(node)
        name = constructor.text if constructor is not None else ""
        library = _CLIENT_CONSTRUCTORS.get(name.split(".")[-1])
        return [_connection_match(node, library, context)] if library else []

    if node.type != "call_expression":
        return []
    target = callee(node)
    if target is None or target.type != "member_expression":
        return []
    prop = target.get("property")
    if prop is None:
        return []
    method = prop.text
    client = root_identifier(receiver(node))

    if method.lower() in _CONNECTION_METHODS:
        library = library_for(client)
        return [_connection_match(node, library, context)] if library else []

    if method.lower() in EXECUTE_METHODS:
        found = _query_match(node, method, client, context)
        if found is not None:
            return [found]

    found = _orm_match(node, method, target, context)
    return [found] if found is not None else []


def confidence(match: PatternMatch) -> float:
    meta = match.metadata
    score = 0.3
    if meta.get("has_sql_operation"):
        score += 0.35
        if meta.get("tables"):
            score += 0.1
    if meta.get("has_db_connection"):
        score += 0.1
    library = meta.get("db_library")
    if library and library != "orm":
        score += 0.15
    elif library == "orm":
        score += 0.1
    if meta.get("has_query_execution"):
        score += 0.15
    if meta.get("has_data_flow"):
        score += 0.05
    if meta.get("has_error_handling"):
        score += 0.05
    if meta.get("has_sql_operation") and meta.get("has_query_execution") and library:
        score += 0.15
    if (
        meta.get("has_db_connection")
        and not meta.get("has_sql_operation")
        and not meta.get("has_query_execution")
        and not library
    ):
        score -= 0.1
    return min(max(score, 0.1), 1.0)


MATCHER = PatternMatcher(
    pattern_type=PATTERN_TYPE,
    match=match,
    confidence=confidence,
    description="SQL query or ORM operation executed against a database",
)
