"""Tests for the recursive descent parser."""

from textwrap import dedent

import pytest

from codeless.ast import StepKind
from codeless.errors import ParseError
from codeless.lang import parse


class TestDataBlocks:
    def test_fields_args_and_optional_marker(self):
        tree = parse(dedent("""
            data User {
              username: String(min: 3, max: 50)
              role: Enum(admin | editor | viewer)
              bio: String?
              age: Number(min: 0, max: 150.5)?
              email: String(format: email, pattern: "^[^@]+@x$")
            }
        """))
        assert len(tree.schemas) == 1
        user = tree.schemas[0]
        assert user.name == "User"
        assert user.field_names == ["username", "role", "bio", "age", "email"]

        username, role, bio, age, email = user.fields
        assert username.type_name == "String"
        assert username.args == {"min": 3, "max": 50}
        assert isinstance(username.args["min"], int)
        assert not username.optional
        assert role.args == {"enum": ["admin", "editor", "viewer"]}
        assert bio.optional and bio.args == {}
        assert age.optional
        assert age.args == {"min": 0, "max": 150.5}
        assert email.args == {"format": "email", "pattern": "^[^@]+@x$"}

    def test_exponent_bounds_are_numbers(self):
        field = parse("data T { qty: Int(min: 0, max: 1e3) }").schemas[0].fields[0]
        assert field.args == {"min": 0, "max": 1000.0}

    def test_out_of_range_bound_is_rejected(self):
        with pytest.raises(ParseError, match="Number 1e400 is out of range") as exc_info:
            parse("data T { qty: Int(max: 1e400) }")
        assert exc_info.value.column == 24

    def test_commas_between_fields_are_optional(self):
        tree = parse("data T { a: String, b: Number c: Boolean }")
        assert tree.schemas[0].field_names == ["a", "b", "c"]

    def test_missing_colon_reports_position(self):
        with pytest.raises(ParseError) as exc_info:
            parse("data User {\n  name String\n}", path="api.cls")
        error = exc_info.value
        assert error.line == 2
        assert error.column == 8
        assert error.expected == ["colon"]
        assert "String" in error.found


class TestActions:
    def test_body_is_sliced_verbatim(self):
        tree = parse(dedent("""
            do greet(data, name) {
                message = "{" + name + "}"
                return {"message": message}
            }

            route { GET "/hi" => greet }
        """))
        action = tree.actions[0]
        assert action.name == "greet"
        assert action.params == ["data", "name"]
        assert action.body == 'message = "{" + name + "}"\n    return {"message": message}'
        assert action.indent == "    "
        assert action.line == 2
        assert [route.path for route in tree.routes] == ["/hi"]

    def test_parsing_resumes_after_operator_that_hides_a_brace(self):
        tree = parse(dedent("""
            do halve(data) {
                return {"half": data["n"] // 2}
            }

            route {
              POST "/halve" => halve
            }
        """))
        assert tree.actions[0].body == 'return {"half": data["n"] // 2}'
        assert len(tree.routes) == 1
        assert tree.routes[0].action_names == ["halve"]

    def test_empty_parameter_list(self):
        tree = parse("do ping() { return 'pong' }")
        assert tree.actions[0].params == []
        assert tree.actions[0].body == "return 'pong'"
        assert tree.actions[0].indent is None

    def test_unbalanced_body_is_fatal(self):
        from codeless.errors import UnbalancedDelimiters

        with pytest.raises(UnbalancedDelimiters):
            parse("do broken() {\n  if x: {\n")


class TestRoutes:
    def test_entries_steps_and_brackets(self):
        tree = parse(dedent("""
            route {
              GET "/users" => listUsers
              POST "/users" => [auth, validate(User), createUser]
              DELETE "/users/:id" => auth, deleteUser
            }
        """))
        assert [(r.method, r.path) for r in tree.routes] == [
            ("GET", "/users"),
            ("POST", "/users"),
            ("DELETE", "/users/:id"),
        ]
        post = tree.routes[1]
        assert [(s.kind, s.target) for s in post.steps] == [
            (StepKind.AUTH, None),
            (StepKind.VALIDATE, "User"),
            (StepKind.ACTION, "createUser"),
        ]
        assert tree.routes[2].path_params == ["id"]
        assert tree.routes[2].action_names == ["deleteUser"]

    def test_entry_must_start_with_verb(self):
        with pytest.raises(ParseError) as exc_info:
            parse('route {\n  "/x" => a\n}')
        assert exc_info.value.expected == ["HTTP method"]
        assert exc_info.value.line == 2

    def test_missing_arrow(self):
        with pytest.raises(ParseError):
            parse('route { GET "/x" a }')


class TestMigrationsAndImports:
    def test_migration_operations(self):
        tree = parse(dedent("""
            migration "002_add_age" {
              addColumn "User" age Number
              dropColumn "User" legacy
              createTable "Audit"
              dropTable "Old"
            }
        """))
        migration = tree.migrations[0]
        assert migration.version == "002_add_age"
        assert [(op.operation, op.table, op.column, op.type_name) for op in migration.operations] == [
            ("addColumn", "User", "age", "Number"),
            ("dropColumn", "User", "legacy", None),
            ("createTable", "Audit", None, None),
            ("dropTable", "Old", None, None),
        ]

    def test_unknown_migration_operation(self):
        with pytest.raises(ParseError) as exc_info:
            parse('migration "1" { renameTable "A" }')
        assert "renameTable" in exc_info.value.message

    def test_imports_are_recorded(self):
        tree = parse('import "./models"\nimport "shared/actions.cls"')
        assert [item.path for item in tree.imports] == ["./models", "shared/actions.cls"]
        assert tree.imports[1].line == 2


class TestTopLevel:
    def test_stray_tokens_between_blocks_are_skipped(self):
        tree = parse('hello 123 ; data A { x: String } ] => "loose"')
        assert [schema.name for schema in tree.schemas] == ["A"]

    def test_parsing_is_repeatable(self):
        source = dedent("""
            data Task { title: String, done: Boolean? }
            do create(data) { return await db.Task.save(data) }
            route { POST "/tasks" => validate(Task), create }
            migration "1" { createTable "Task" }
        """)
        assert parse(source) == parse(source)
