"""
Notebook to script conversion.

Reads an nbformat-4 `.ipynb` file (plain JSON) and produces either a single
script with `# %%` cell markers or one module per pipeline stage:

    data_preprocessing.py, model_training.py, model_inference.py, utilities.py

Cells are routed to a stage by their first recognised tag (`metadata.tags`)
or by a `# stage: <name>` directive on their first line. Untagged cells
inherit the stage of the previous code cell, so tagging the first cell of
each notebook section is enough. Cells tagged `skip` (or `eda`,
`exploration`) are left out.

IPython magics and shell escapes are not Python: they are commented out and
counted, so the generated code imports cleanly.
"""

import ast
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from nb2prod.errors import NotebookFormatError
from nb2prod.io.readers import read_json
from nb2prod.io.writers import atomic_write_text

logger = logging.getLogger(__name__)

STAGES: tuple[str, ...] = ("preprocessing", "training", "inference", "utilities")
DEFAULT_STAGE = "preprocessing"
SKIP = "skip"

STAGE_MODULES: Dict[str, str] = {
    "preprocessing": "data_preprocessing",
    "training": "model_training",
    "inference": "model_inference",
    "utilities": "utilities",
}

STAGE_ALIASES: Dict[str, str] = {
    "preprocess": "preprocessing",
    "data_preprocessing": "preprocessing",
    "train": "training",
    "model_training": "training",
    "predict": "inference",
    "model_inference": "inference",
    "utils": "utilities",
    "utility": "utilities",
    "eda": SKIP,
    "exploration": SKIP,
}

# Cell magics whose body is not Python at all
NON_PYTHON_CELL_MAGICS = {
    "bash", "sh", "script", "html", "javascript", "js", "latex",
    "markdown", "svg", "perl", "ruby", "writefile", "sql",
}

REMOVED_PREFIX = "# [removed] "

_STAGE_DIRECTIVE = re.compile(r"^\s*#\s*stage\s*:\s*([\w-]+)\s*$", re.IGNORECASE)
_MAGIC = re.compile(r"^(%{1,2}[A-Za-z]|!(?!=))")
_SHELL_ASSIGN = re.compile(r"^\s*[\w, ]+=\s*(%[A-Za-z]|!(?!=))")
_HELP_LOOKUP = re.compile(r"^\?{1,2}[\w.]+$|^[\w.]+\?{1,2}$")  # ?obj, obj?, obj??


@dataclass
class ConversionResult:
    modules: Dict[str, Path] = field(default_factory=dict)
    tests: List[Path] = field(default_factory=list)
    cell_counts: Dict[str, int] = field(default_factory=dict)
    removed_lines: int = 0
    skipped_cells: int = 0


def load_notebook(path: Path) -> dict:
    try:
        nb = read_json(path)
    except json.JSONDecodeError as e:
        raise NotebookFormatError(f"{path} is not valid notebook JSON: {e}") from e

    if not isinstance(nb, dict) or not isinstance(nb.get("cells"), list):
        raise NotebookFormatError(f"{path} has no 'cells' list")
    version = nb.get("nbformat")
    if not isinstance(version, int) or version < 4:
        raise NotebookFormatError(f"{path} uses nbformat {version!r}, only nbformat 4+ is supported")
    return nb


def cell_source(cell: dict) -> str:
    source = cell.get("source", "")
    if isinstance(source, list):
        return "".join(source)
    return source or ""


def _normalize_stage(name: str) -> Optional[str]:
    name = name.strip().lower().replace("-", "_")
    if name in STAGES or name == SKIP:
        return name
    return STAGE_ALIASES.get(name)


def cell_stage(cell: dict) -> Optional[str]:
    """Stage declared by a cell (tag first, then directive), or None."""
    for tag in cell.get("metadata", {}).get("tags", []) or []:
        stage = _normalize_stage(str(tag))
        if stage is not None:
            return stage

    for line in cell_source(cell).splitlines():
        if not line.strip():
            continue
        match = _STAGE_DIRECTIVE.match(line)
        if match:
            return _normalize_stage(match.group(1))
        break
    return None


def _disable(line: str) -> str:
    stripped = line.lstrip()
    indent = line[: len(line) - len(stripped)]
    if indent:
        # keep the enclosing block syntactically valid
        return f"{indent}pass  {REMOVED_PREFIX}{stripped}"
    return f"{REMOVED_PREFIX}{stripped}"


def clean_code(source: str) -> Tuple[str, int]:
    """
    Strip notebook-only syntax from a code cell.

    Returns the cleaned source and the number of lines that were removed or
    commented out.
    """
    lines = source.splitlines()
    if not lines:
        return "", 0

    first = lines[0].lstrip()
    if first.startswith("%%"):
        magic = first[2:].split()[0] if first[2:].split() else ""
        if magic in NON_PYTHON_CELL_MAGICS:
            return "\n".join(REMOVED_PREFIX + line for line in lines), len(lines)
        lines = lines[1:]
        removed = 1
        kept = [REMOVED_PREFIX + first]
    else:
        removed = 0
        kept = []

    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            kept.append(line)
        elif _HELP_LOOKUP.match(stripped):
            removed += 1
        elif _MAGIC.match(stripped) or _SHELL_ASSIGN.match(line):
            kept.append(_disable(line))
            removed += 1
        else:
            kept.append(line)

    return "\n".join(kept).strip("\n"), removed


def _route_cells(nb: dict) -> Tuple[Dict[str, List[str]], ConversionResult]:
    blocks: Dict[str, List[str]] = {stage: [] for stage in STAGES}
    stats = ConversionResult(cell_counts={stage: 0 for stage in STAGES})
    current = DEFAULT_STAGE

    for cell in nb["cells"]:
        if cell.get("cell_type") != "code":
            continue
        declared = cell_stage(cell)
        if declared == SKIP:
            stats.skipped_cells += 1
            continue
        if declared is not None:
            current = declared

        code, removed = clean_code(cell_source(cell))
        stats.removed_lines += removed
        if code.strip():
            blocks[current].append(code)
            stats.cell_counts[current] += 1

    return blocks, stats


def _split_imports(code: str) -> Tuple[List[str], List[str]]:
    """
    Separate top-level import statements from the rest of a cell.

    Code that does not parse is returned unchanged, with nothing hoisted.
    """
    try:
        tree = ast.parse(code)
    except SyntaxError:
        return [], code.splitlines()

    lines = code.splitlines()
    owners = Counter()
    for node in tree.body:
        owners.update(range(node.lineno, node.end_lineno + 1))

    hoisted = set()
    imports: List[str] = []
    for node in tree.body:
        if not isinstance(node, (ast.Import, ast.ImportFrom)):
            continue
        span = range(node.lineno, node.end_lineno + 1)
        # "import os; x = 1" shares its line with another statement
        if any(owners[n] > 1 for n in span):
            continue
        imports.append("\n".join(lines[n - 1] for n in span))
        hoisted.update(span)

    body = [line for n, line in enumerate(lines, start=1) if n not in hoisted]
    return imports, body


def _render_module(stage: str, blocks: List[str], notebook_name: str) -> str:
    imports: List[str] = []
    bodies: List[str] = []
    for block in blocks:
        block_imports, block_body = _split_imports(block)
        for stmt in block_imports:
            if stmt not in imports:
                imports.append(stmt)
        text = "\n".join(block_body).strip("\n")
        if text:
            bodies.append(text)

    # __future__ imports must come first
    imports.sort(key=lambda s: not s.startswith("from __future__"))

    parts = [f'"""{stage.capitalize()} code extracted from {notebook_name}."""']
    if imports:
        parts.append("\n".join(imports))
    parts.extend(bodies)
    return "\n\n".join(parts) + "\n"


def split_notebook(nb: dict, notebook_name: str = "notebook") -> Dict[str, str]:
    """Return {module_name: source} for every stage that received code."""
    blocks, _ = _route_cells(nb)
    return {
        STAGE_MODULES[stage]: _render_module(stage, blocks[stage], notebook_name)
        for stage in STAGES
        if blocks[stage]
    }


def notebook_to_script(nb: dict, include_markdown: bool = False) -> str:
    """Flatten a notebook into one script, keeping `# %%` cell markers."""
    parts: List[str] = []
    for cell in nb["cells"]:
        kind = cell.get("cell_type")
        if kind == "code":
            code, _ = clean_code(cell_source(cell))
            if code.strip():
                parts.append(f"# %%\n{code}")
        elif kind == "markdown" and include_markdown:
            text = cell_source(cell).rstrip("\n")
            commented = "\n".join(f"# {line}".rstrip() for line in text.splitlines())
            parts.append(f"# %% [markdown]\n{commented}")
    return "\n\n".join(parts) + "\n" if parts else ""


def render_test_module(module_name: str) -> str:
    return (
        f'"""Smoke tests for {module_name}. Add assertions on the functions it defines."""\n'
        "import importlib\n"
        "\n"
        "\n"
        f"def test_{module_name}_imports():\n"
        f'    module = importlib.import_module("{module_name}")\n'
        "    assert module is not None\n"
    )


def convert_notebook(
    notebook_path: Path,
    out_dir: Path,
    scaffold_tests: bool = True,
    include_script: bool = False,
) -> ConversionResult:
    """
    Split a notebook into stage modules under out_dir.

    With scaffold_tests, a tests/ directory with one import smoke test per
    module is written, plus a root conftest.py so pytest puts out_dir on the
    import path.
    """
    notebook_path = Path(notebook_path)
    out_dir = Path(out_dir)
    nb = load_notebook(notebook_path)

    blocks, result = _route_cells(nb)
    for stage in STAGES:
        if not blocks[stage]:
            continue
        module_name = STAGE_MODULES[stage]
        path = out_dir / f"{module_name}.py"
        atomic_write_text(_render_module(stage, blocks[stage], notebook_path.name), path)
        result.modules[module_name] = path
        logger.info(f"Wrote {path} ({result.cell_counts[stage]} cells)")

    if include_script:
        script_path = out_dir / f"{notebook_path.stem}.py"
        atomic_write_text(notebook_to_script(nb, include_markdown=True), script_path)
        logger.info(f"Wrote {script_path}")

    if scaffold_tests and result.modules:
        atomic_write_text("", out_dir / "conftest.py")
        for module_name in result.modules:
            test_path = out_dir / "tests" / f"test_{module_name}.py"
            atomic_write_text(render_test_module(module_name), test_path)
            result.tests.append(test_path)

    if result.removed_lines:
        logger.warning(f"{result.removed_lines} notebook-only lines (magics, shell, help) were disabled")
    if not result.modules:
        logger.warning(f"No code cells found in {notebook_path}")
    return result
