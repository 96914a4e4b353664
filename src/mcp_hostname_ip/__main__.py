import sys

from mcp_hostname_ip.cli import main

sys.exit(main())  # type: ignore[call-arg]
