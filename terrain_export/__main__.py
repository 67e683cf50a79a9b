import sys

from terrain_export.cli import main

sys.exit(main())
