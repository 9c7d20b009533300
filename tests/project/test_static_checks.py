import logging
from textwrap import dedent

import pytest

from codeless.checker import WARNING, Issue, assert_clean, check_tree
from codeless.errors import CheckFailed
from codeless.lang import parse


def issues_for(source):
    return check_tree(parse(dedent(source)))


def test_clean_project_has_no_issues():
    assert issues_for("""
        data User { name: String(min: 1), team: Team? }
        data Team { title: String }
        do createUser(data) { return await db.User.save(data) }
        route { POST "/users" => auth, validate(User), createUser }
    """) == []


def test_schema_integrity():
    issues = issues_for("""
        data User {
          id: Int
          name: String
          name: String
          age: Numbr
          code: String(pattern: "([a-z")
        }
    """)
    messages = [issue.message for issue in issues]
    assert all(issue.rule == "Schema Integrity" for issue in issues)
    assert 'data User: "id" is reserved for the primary key' in messages
    assert 'data User: field "name" is declared twice' in messages
    assert any('field "age" has invalid type "Numbr"' in message for message in messages)
    assert any('field "code" has invalid pattern' in message for message in messages)
    assert [issue.line for issue in issues if "Numbr" in issue.message] == [6]


@pytest.mark.parametrize("name", ["query", "table", "transaction", "adapter", "tables"])
def test_schema_names_used_by_the_table_registry(name):
    issues = issues_for(f"data {name} {{ title: String }}")
    assert [(issue.rule, issue.message, issue.line) for issue in issues] == [
        ("Schema Integrity", f"data {name}: name is reserved by the db table registry", 1)
    ]


def test_forbidden_calls_in_action_bodies():
    issues = issues_for("""
        do risky(data) {
            x = 1
            return eval(data["expr"])
        }
    """)
    assert len(issues) == 1
    assert issues[0].rule == "Security Scan"
    assert issues[0].line == 4
    assert '"eval"' in issues[0].message


def test_route_references():
    issues = issues_for("""
        do ok() { return 1 }
        route {
          GET "/a" => auth
          GET "/b" => missing
          POST "/c" => validate(Nope), ok
        }
    """)
    assert [str(issue) for issue in issues] == [
        "Line 4: [Route Validation] Route GET /a: pipeline has no action step",
        'Line 5: [Route Validation] Route GET /b: action "missing" is not defined in any do block',
        "Line 6: [Route Validation] Route POST /c: validate(Nope) references unknown schema",
    ]


def test_schema_reference_cycle_is_reported_once():
    issues = issues_for("""
        data A { b: B }
        data B { a: A }
        data Node { parent: Node? }
    """)
    assert len(issues) == 1
    assert issues[0].rule == "Circular Dependency"
    assert "A -> B -> A" in issues[0].message


def test_repeated_migration_version_is_a_warning(caplog):
    tree = parse('migration "1" { dropTable "A" }\nmigration "1" { dropTable "B" }')
    with caplog.at_level(logging.WARNING, logger="codeless.checker"):
        issues = assert_clean(tree)
    assert [issue.severity for issue in issues] == [WARNING]
    assert 'migration version "1" is declared more than once' in caplog.text


def test_errors_fail_the_check():
    tree = parse('route { GET "/x" => nothing }')
    with pytest.raises(CheckFailed) as exc_info:
        assert_clean(tree)
    assert len(exc_info.value.issues) == 1
    assert str(exc_info.value).startswith("Found 1 issue(s):")


def test_issue_without_line():
    assert str(Issue("Rule", "text")) == "[Rule] text"
