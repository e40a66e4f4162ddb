"""Allow ``python -m tmplcheck``."""

import sys

from tmplcheck.cli import main

sys.exit(main())
