"""Module entrypoint for ``python -m tidymac``.

All argument parsing and workflow setup happen in ``tidymac.cli``.
"""

import sys

from .cli import main


if __name__ == "__main__":
    sys.exit(main())
