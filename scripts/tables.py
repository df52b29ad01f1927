import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from device_store.database.session import initialize_db

import asyncio
asyncio.run(initialize_db())
