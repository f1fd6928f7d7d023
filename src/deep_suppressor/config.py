from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# Module data directory (Magisk module layout); everything else defaults under it
DATA_DIR = os.getenv("DEEP_SUPPRESSOR_DATA_DIR", "/data/adb/modules/DeepSuppressor")

HABITS_FILE = os.getenv("DEEP_SUPPRESSOR_HABITS_FILE", os.path.join(DATA_DIR, "habits", "habits.json"))
LOG_FILE = os.getenv("DEEP_SUPPRESSOR_LOG_FILE", os.path.join(DATA_DIR, "logs", "process_manager.log"))
LOG_LEVEL = os.getenv("DEEP_SUPPRESSOR_LOG_LEVEL", "INFO")
TARGETS_FILE = os.getenv(
    "DEEP_SUPPRESSOR_TARGETS_FILE", os.path.join(DATA_DIR, "module_settings", "suppress_config.json")
)
