"""Allow ``python -m roomrag.cli`` execution."""

import sys

from roomrag.cli.manage import main

sys.exit(main())
