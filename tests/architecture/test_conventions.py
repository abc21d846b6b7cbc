"""
Convention Enforcement Tests.

Permanent tests that catch anti-patterns which import-based layer rules
cannot detect: frozen dataclass conventions, immutable collections,
silent exception swallowing, and interface contracts.
"""

import ast
import inspect
from pathlib import Path

from swarmpipe.domain import interfaces

SRC_ROOT = Path(__file__).parent.parent.parent / "src" / "swarmpipe"

DOMAIN_MODEL_FILES = ("models.py", "config.py", "events.py")

# Documented exceptions to the frozen dataclass rule
MUTABLE_DATACLASS_ALLOWLIST = {"PipelineContext"}

# Concrete lifecycle hooks that adapters may leave as no-ops
OPTIONAL_PORT_METHODS = {"AgentBackendInterface.start", "AgentBackendInterface.stop"}


def _is_frozen_dataclass(node: ast.ClassDef) -> tuple[bool, bool]:
    """Return (is_dataclass, is_frozen) for a class definition."""
    for decorator in node.decorator_list:
        if isinstance(decorator, ast.Name) and decorator.id == "dataclass":
            return True, False
        if isinstance(decorator, ast.Call):
            func = decorator.func
            if isinstance(func, ast.Name) and func.id == "dataclass":
                for kw in decorator.keywords:
                    if kw.arg == "frozen" and isinstance(kw.value, ast.Constant):
                        return True, bool(kw.value.value)
                return True, False
    return False, False


class TestFrozenDataclassConvention:
    """All domain dataclasses must be frozen (except allowlisted ones)."""

    def test_domain_dataclasses_are_frozen(self):
        violations = []

        for filename in DOMAIN_MODEL_FILES:
            tree = ast.parse((SRC_ROOT / "domain" / filename).read_text())
            for node in ast.walk(tree):
                if not isinstance(node, ast.ClassDef):
                    continue
                is_dataclass, is_frozen = _is_frozen_dataclass(node)
                if is_dataclass and not is_frozen and node.name not in MUTABLE_DATACLASS_ALLOWLIST:
                    violations.append(f"{filename}:{node.name}")

        assert not violations, (
            f"Domain dataclasses must be frozen. Violations: {violations}. "
            f"If mutable is intentional, add to MUTABLE_DATACLASS_ALLOWLIST."
        )


class TestImmutableCollections:
    """Frozen domain model fields should use tuple, not list."""

    def test_frozen_fields_use_tuples_not_lists(self):
        violations = []

        for filename in DOMAIN_MODEL_FILES:
            source = (SRC_ROOT / "domain" / filename).read_text()
            tree = ast.parse(source)
            for node in ast.walk(tree):
                if not isinstance(node, ast.ClassDef):
                    continue
                _, is_frozen = _is_frozen_dataclass(node)
                if not is_frozen:
                    continue
                for item in node.body:
                    if not isinstance(item, ast.AnnAssign):
                        continue
                    annotation = ast.get_source_segment(source, item.annotation) or ""
                    if "list[" in annotation.lower():
                        target = getattr(item.target, "id", "?")
                        violations.append(f"{node.name}.{target}: uses list[], use tuple[]")

        assert not violations, (
            "Frozen dataclass fields should use tuple, not list:\n"
            + "\n".join(f"  - {v}" for v in violations)
        )


class TestNoSilentExceptionSwallowing:
    """No bare 'except: pass' or 'except Exception: pass' in src/."""

    def test_no_bare_except_pass(self):
        violations = []

        for py_file in SRC_ROOT.rglob("*.py"):
            source = py_file.read_text()
            tree = ast.parse(source)

            for node in ast.walk(tree):
                if not isinstance(node, ast.ExceptHandler):
                    continue
                if node.type is None:
                    violations.append(f"{py_file.name}:{node.lineno}: bare except")
                    continue
                if len(node.body) == 1:
                    stmt = node.body[0]
                    is_pass = isinstance(stmt, ast.Pass)
                    is_ellipsis = (
                        isinstance(stmt, ast.Expr)
                        and isinstance(stmt.value, ast.Constant)
                        and stmt.value.value is ...
                    )
                    if is_pass or is_ellipsis:
                        handler_type = ast.get_source_segment(source, node.type) or ""
                        violations.append(
                            f"{py_file.name}:{node.lineno}: except {handler_type}: pass"
                        )

        assert not violations, "Silent exception swallowing found:\n" + "\n".join(
            f"  - {v}" for v in violations
        )


class TestInterfaceConventions:
    """Interface naming and contract conventions."""

    def test_all_ports_end_with_interface(self):
        """All ABCs in domain/interfaces.py must end with 'Interface'."""
        abstract_classes = [
            name
            for name, obj in inspect.getmembers(interfaces, inspect.isclass)
            if inspect.isabstract(obj) and not name.startswith("_")
        ]

        violations = [name for name in abstract_classes if not name.endswith("Interface")]

        assert not violations, f"Abstract classes should end with 'Interface': {violations}"

    def test_all_interface_methods_are_abstract(self):
        """Every public method on a port must be abstract, lifecycle hooks aside."""
        violations = []

        for name, cls in inspect.getmembers(interfaces, inspect.isclass):
            if not inspect.isabstract(cls) or not name.endswith("Interface"):
                continue
            for method_name, method in inspect.getmembers(cls, predicate=inspect.isfunction):
                qualified = f"{name}.{method_name}"
                if method_name.startswith("_") or qualified in OPTIONAL_PORT_METHODS:
                    continue
                if not getattr(method, "__isabstractmethod__", False):
                    violations.append(qualified)

        assert not violations, f"Public interface methods must be abstract: {violations}"

    def test_implementations_satisfy_interfaces(self):
        """Filesystem and in-memory adapters implement every abstract method."""
        from swarmpipe.infrastructure.persistence import (
            FilesystemArtifactWriter,
            FilesystemCheckpointStore,
            InMemoryArtifactWriter,
            InMemoryCheckpointStore,
        )

        pairs = [
            (
                interfaces.CheckpointStoreInterface,
                [FilesystemCheckpointStore, InMemoryCheckpointStore],
            ),
            (
                interfaces.ArtifactWriterInterface,
                [FilesystemArtifactWriter, InMemoryArtifactWriter],
            ),
        ]

        for port, implementations in pairs:
            for impl_cls in implementations:
                assert issubclass(impl_cls, port)
                assert not inspect.isabstract(impl_cls), (
                    f"{impl_cls.__name__} is missing methods: "
                    f"{sorted(impl_cls.__abstractmethods__)}"
                )
