"""Print the received arguments on one line."""

import sys

print(" ".join(sys.argv[1:]))
