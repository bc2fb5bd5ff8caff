"""
Kernel boundary contract.

1. ledger_kernel/** may NOT import ledger_config or ledger_modules.  The
   kernel never depends upward; configuration reaches it as
   PostingSettings built by ledger_config.bridges.

2. Module services write journal entries only through the kernel engines.
   They never import the journal writer or construct JournalEntry rows.

3. ledger_config never imports ledger_modules.

These tests read source code via AST and cannot break anything.
"""

import ast
import glob
from pathlib import Path

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(root: str) -> list[str]:
    """Return all .py files under root, relative to cwd."""
    return sorted(glob.glob(f"{root}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str, list[str]]]:
    """Extract (line_number, module, imported names) for all imports in a file."""
    try:
        source = Path(filepath).read_text()
        tree = ast.parse(source, filename=filepath)
    except (SyntaxError, UnicodeDecodeError):
        return []

    results: list[tuple[int, str, list[str]]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name, []))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append(
                    (node.lineno, node.module, [alias.name for alias in node.names])
                )
    return results


def _violations(root: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(root):
        for lineno, module, _ in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    """ledger_kernel/** must not import ledger_config or ledger_modules."""

    FORBIDDEN_PREFIXES = (
        "ledger_config",
        "ledger_modules",
    )

    def test_kernel_sources_found(self):
        assert _python_files("ledger_kernel"), "run from the repository root"

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("ledger_kernel", self.FORBIDDEN_PREFIXES)

        assert not violations, (
            "Kernel boundary violation: ledger_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


class TestConfigBoundary:

    def test_config_does_not_import_modules(self):
        violations = _violations("ledger_config", ("ledger_modules",))

        assert not violations, "\n".join(violations)


class TestModulesPostThroughKernel:
    """Module code never writes journal rows itself."""

    def test_no_journal_writer_import(self):
        violations = _violations("ledger_modules", ("ledger_kernel.services.journal_writer",))

        assert not violations, (
            "Modules must post through PostingEngine / ReversalService:\n"
            + "\n".join(violations)
        )

    def test_no_journal_model_construction(self):
        violations: list[str] = []
        for filepath in _python_files("ledger_modules"):
            for lineno, module, names in _extract_imports(filepath):
                if module == "ledger_kernel.models.journal" and (
                    "JournalEntry" in names or "JournalLine" in names
                ):
                    violations.append(f"  {filepath}:{lineno} imports {names}")

        assert not violations, "\n".join(violations)
