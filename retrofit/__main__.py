import sys

from retrofit.cli.core import cli_main

sys.exit(cli_main())
