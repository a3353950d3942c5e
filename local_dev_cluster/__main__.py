"""Allow ``python -m local_dev_cluster``."""

from __future__ import annotations

import sys

from local_dev_cluster.cli import main

sys.exit(main())
