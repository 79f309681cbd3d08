import sys

from infofetcher.app.cli import main

sys.exit(main())
