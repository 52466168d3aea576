"""Allow ``python -m symbol_editor``."""

import sys

from .cli import main

sys.exit(main())
