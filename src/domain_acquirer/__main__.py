import sys

from domain_acquirer.cli import main

sys.exit(main())
