import sys

from extconfig.cli import main

sys.exit(main())
