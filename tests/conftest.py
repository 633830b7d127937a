import os
import tempfile

# database.py builds its engine at import time; keep it away from ./data.
os.environ.setdefault("FINANCE_DATA_DIR", tempfile.mkdtemp(prefix="finance-tests-"))
