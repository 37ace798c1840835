import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

MESSAGING_PATHS = [ROOT / "routers" / "messaging"]
ALLOWED_PREFIXES = ["routers.messaging", "routers.dependencies"]


def _iter_python_files(paths):
    for base in paths:
        if not base.exists():
            continue
        for path in base.rglob("*.py"):
            if path.is_file():
                yield path


def _iter_imported_modules(tree):
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield alias.name
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                yield node.module


def _is_cross_domain_import(module_name, allowed_prefixes):
    if not module_name.startswith("routers."):
        return False
    for prefix in allowed_prefixes:
        if module_name == prefix or module_name.startswith(prefix + "."):
            return False
    return True


def test_no_cross_domain_imports():
    """
    The messaging package only reaches other routers through
    `routers.dependencies`.
    """
    violations = []
    for path in _iter_python_files(MESSAGING_PATHS):
        tree = ast.parse(path.read_text(), filename=str(path))
        for module_name in _iter_imported_modules(tree):
            if _is_cross_domain_import(module_name, ALLOWED_PREFIXES):
                violations.append(f"{path}: {module_name}")

    if violations:
        joined = "\n".join(sorted(violations))
        raise AssertionError(f"Cross-domain imports detected:\n{joined}")


def test_messaging_does_not_import_user_model():
    """
    Data ownership rule: `User` is owned by the account layer.

    Messaging code looks users up through `core.users` and passes ids around.
    """
    violations = []
    for path in _iter_python_files(MESSAGING_PATHS):
        tree = ast.parse(path.read_text(), filename=str(path))
        for node in ast.walk(tree):
            if isinstance(node, ast.ImportFrom) and node.module == "models":
                for alias in node.names:
                    if alias.name == "User":
                        violations.append(str(path))

    if violations:
        joined = "\n".join(sorted(set(violations)))
        raise AssertionError(
            "Messaging imports `User` directly. Use `core.users` instead:\n" + joined
        )


def test_core_does_not_import_routers():
    """`core` sits below the routers; it must never import them."""
    violations = []
    for path in _iter_python_files([ROOT / "core"]):
        tree = ast.parse(path.read_text(), filename=str(path))
        for module_name in _iter_imported_modules(tree):
            if module_name == "routers" or module_name.startswith("routers."):
                violations.append(f"{path}: {module_name}")

    assert not violations, "\n".join(sorted(violations))
