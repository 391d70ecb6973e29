"""Console-script launcher for TrendForge.

The application lives in the top-level `src` package, a name other installed
projects may also claim, so the project root is put first on sys.path before
`src.cli` is imported.
"""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def main() -> None:
    root = str(PROJECT_ROOT)
    if root in sys.path:
        sys.path.remove(root)
    sys.path.insert(0, root)

    from src.cli import main as run_cli

    run_cli()


if __name__ == "__main__":
    main()
