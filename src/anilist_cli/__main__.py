"""Allow ``python -m anilist_cli``."""

import sys

from anilist_cli.cli import main

sys.exit(main())
