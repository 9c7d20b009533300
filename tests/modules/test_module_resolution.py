"""Tests for multi-file module resolution."""

import logging

import pytest

from codeless.errors import CircularImport, UnresolvedImport
from codeless.resolver import merge_trees, resolve_modules
from codeless.lang import parse


class TestImportResolution:
    def test_relative_and_root_relative_imports_are_merged(self, write_sources):
        root = write_sources({
            "api.cls": """
                import "./models/user"
                import "actions/users.cls"

                route {
                  POST "/users" => validate(User), createUser
                }
            """,
            "models/user.cls": """
                data User { username: String(min: 3) }
            """,
            "actions/users.cls": """
                import "../models/user"

                do createUser(data) {
                    return await db.User.save(data)
                }
            """,
        })
        tree = resolve_modules(root / "api.cls", root)
        assert [schema.name for schema in tree.schemas] == ["User"]
        assert [action.name for action in tree.actions] == ["createUser"]
        assert [(r.method, r.path) for r in tree.routes] == [("POST", "/users")]
        assert tree.imports == []

    def test_suffix_is_added_to_entry_path(self, write_sources):
        root = write_sources({"api.cls": "data A { x: String }"})
        tree = resolve_modules(root / "api")
        assert [schema.name for schema in tree.schemas] == ["A"]

    def test_root_defaults_to_entry_directory(self, write_sources):
        root = write_sources({
            "app/api.cls": 'import "lib"',
            "app/lib.cls": "data Lib { x: String }",
        })
        tree = resolve_modules(root / "app" / "api.cls")
        assert [schema.name for schema in tree.schemas] == ["Lib"]

    def test_shared_import_is_loaded_once(self, write_sources):
        root = write_sources({
            "api.cls": 'import "./b"\nimport "./c"',
            "b.cls": 'import "./d"\ndata B { x: String }',
            "c.cls": 'import "./d"\ndata C { x: String }',
            "d.cls": "data D { x: String }",
        })
        tree = resolve_modules(root / "api.cls")
        assert [schema.name for schema in tree.schemas] == ["B", "D", "C"]


class TestFailures:
    def test_mutual_import_is_a_cycle(self, write_sources):
        root = write_sources({
            "a.cls": 'import "./b"',
            "b.cls": 'import "./a"',
        })
        with pytest.raises(CircularImport) as exc_info:
            resolve_modules(root / "a.cls")
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1] == str((root / "a.cls").resolve())
        assert str((root / "b.cls").resolve()) in cycle
        assert "a.cls" in str(exc_info.value) and "b.cls" in str(exc_info.value)

    def test_self_import_is_a_cycle(self, write_sources):
        root = write_sources({"a.cls": 'import "./a"'})
        with pytest.raises(CircularImport):
            resolve_modules(root / "a.cls")

    def test_missing_import_names_importer(self, write_sources):
        root = write_sources({"api.cls": '\nimport "./missing"'})
        with pytest.raises(UnresolvedImport) as exc_info:
            resolve_modules(root / "api.cls")
        error = exc_info.value
        assert error.target.endswith("missing.cls")
        assert error.imported_from == str((root / "api.cls").resolve())
        assert error.line == 2

    def test_missing_entry_file(self, tmp_path):
        with pytest.raises(UnresolvedImport):
            resolve_modules(tmp_path / "nope.cls")


class TestMerge:
    def test_first_declaration_wins(self, write_sources, caplog):
        root = write_sources({
            "api.cls": """
                import "./other"
                data User { name: String }
                do hello() { return "entry" }
                route { GET "/hello" => hello }
            """,
            "other.cls": """
                data User { email: String }
                do hello() { return "other" }
                route { GET "/hello" => hello }
            """,
        })
        with caplog.at_level(logging.WARNING, logger="codeless.resolver"):
            tree = resolve_modules(root / "api.cls")
        assert len(tree.schemas) == 1
        assert tree.schemas[0].field_names == ["name"]
        assert tree.actions[0].body == 'return "entry"'
        assert len(tree.routes) == 1
        assert "Duplicate schema 'User'" in caplog.text
        assert "Duplicate route 'GET /hello'" in caplog.text

    def test_migrations_are_concatenated(self):
        first = parse('migration "1" { createTable "A" }')
        second = parse('migration "2" { createTable "B" }\nmigration "1" { dropTable "A" }')
        merged = merge_trees([first, second])
        assert [m.version for m in merged.migrations] == ["1", "2", "1"]
