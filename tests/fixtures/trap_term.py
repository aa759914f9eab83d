"""Exit with status 3 when SIGTERM arrives instead of dying from it."""

import signal
import sys
import time


def _exit_three(signum, frame):
    sys.exit(3)


signal.signal(signal.SIGTERM, _exit_three)
sys.stdout.write("ready\n")
sys.stdout.flush()
time.sleep(10)
