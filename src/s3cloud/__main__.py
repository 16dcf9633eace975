"""Allow ``python -m s3cloud``."""

import sys

from s3cloud.cli import main

sys.exit(main())
