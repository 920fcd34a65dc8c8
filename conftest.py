# Ensure tests import modules from this service directory first,
# so `import app.server` and `from app.rpc_proxy import ...` resolve here.
import os
import sys

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)
