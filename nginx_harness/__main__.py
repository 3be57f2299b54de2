import sys

from nginx_harness.main import main

sys.exit(main())
