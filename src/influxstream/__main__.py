import sys

from influxstream.cli import main

sys.exit(main())
