import sys

from factoriolp.cli import main

sys.exit(main())
