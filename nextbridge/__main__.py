import sys

from nextbridge.cli.main import main

sys.exit(main())
