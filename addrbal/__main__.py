# Allow `python -m addrbal`.
import sys

from addrbal.workers.balance_worker import main

sys.exit(main())
