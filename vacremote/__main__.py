import sys

from vacremote.main import main

sys.exit(main())
