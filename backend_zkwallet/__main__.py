import sys

from backend_zkwallet.cli import main

sys.exit(main())
