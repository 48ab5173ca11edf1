"""Allow ``python -m sweeparr``."""

import sys

from .main import main

sys.exit(main())
