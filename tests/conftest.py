import asyncio
import inspect
import sys
import types
from textwrap import dedent

import jwt
import pytest

from codeless.runtime import AuthGate

TEST_SECRET = "test-secret"


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Run async test functions without requiring external plugins."""
    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(test_function)
            filtered_args = {k: v for k, v in pyfuncitem.funcargs.items() if k in sig.parameters}
            loop.run_until_complete(test_function(**filtered_args))
        finally:
            loop.close()
            asyncio.set_event_loop(None)
        return True
    return None


def pytest_configure(config):
    """Register markers for pytest."""
    config.addinivalue_line("markers", "asyncio: mark async tests")
    config.addinivalue_line("markers", "integration: mark test as integration test")


@pytest.fixture
def load_source(monkeypatch):
    """Execute generated Python source as an importable module."""
    counter = {"n": 0}

    def _load(source: str, name: str = "generated") -> types.ModuleType:
        counter["n"] += 1
        module_name = f"_codeless_test_{name}_{counter['n']}"
        module = types.ModuleType(module_name)
        monkeypatch.setitem(sys.modules, module_name, module)
        exec(compile(source, f"<{module_name}>", "exec"), module.__dict__)
        return module

    return _load


@pytest.fixture
def bearer():
    """Build an Authorization header signed with the test secret."""

    def _bearer(claims=None, secret: str = TEST_SECRET) -> dict:
        token = jwt.encode(claims or {"sub": "user-1"}, secret, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _bearer


@pytest.fixture
def write_sources(tmp_path):
    """Write ``{relative_path: dsl_text}`` into tmp_path and return tmp_path."""

    def _write(files: dict):
        for relative, text in files.items():
            target = tmp_path / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(dedent(text), encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture
def auth_gate():
    return AuthGate(TEST_SECRET)
