"""Print selected environment variables and the working directory."""

import os

print(os.environ.get("CHILD_PROCESS_ENV_TEST", ""))
print(os.environ.get("PATH", "") != "")
print(os.getcwd())
