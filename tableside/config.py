from dotenv import load_dotenv
load_dotenv()

import os

KURING_API_BASE_URL = os.getenv("KURING_API_BASE_URL", "http://localhost:8000")
KURING_API_TOKEN = os.getenv("KURING_API_TOKEN", "")
KURING_API_TIMEOUT = float(os.getenv("KURING_API_TIMEOUT", "15"))
KURING_STATE_DIR = os.getenv("KURING_STATE_DIR", os.path.join(os.path.expanduser("~"), ".kuring"))

TAX_RATE = 0.10
SERVICE_FEE_RATE = 0.05
