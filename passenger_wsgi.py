import sys
import os

# 1. FORCE THE PATH
# Passenger may start us from another working directory.
project_home = os.path.dirname(os.path.abspath(__file__))
if project_home not in sys.path:
    sys.path.insert(0, project_home)

# 2. BUILD THE APP
# Passenger looks for a module-level callable named 'application'.
from main import create_app

application = create_app(os.environ.get('APP_ENV', 'production'))
