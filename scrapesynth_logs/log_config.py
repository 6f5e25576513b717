"""
Log Configuration - Settings for run logs
"""

import os
from dataclasses import dataclass


@dataclass
class LogConfig:
    """Configuration for logging"""

    log_dir: str = "logs"

    # Write a markdown run log per synthesis session
    run_logs: bool = True

    # Include the generated scraper source in the run log
    include_code: bool = True

    @classmethod
    def from_env(cls) -> 'LogConfig':
        """Create config from environment variables"""
        return cls(
            log_dir=os.getenv("SCRAPESYNTH_LOG_DIR", "logs"),
            run_logs=os.getenv("SCRAPESYNTH_RUN_LOGS", "true").lower() == "true",
            include_code=os.getenv("SCRAPESYNTH_LOG_INCLUDE_CODE", "true").lower() == "true",
        )

    def get_log_path(self, session_id: str, format: str = "md") -> str:
        """Get the path for a log file"""
        os.makedirs(self.log_dir, exist_ok=True)
        return os.path.join(self.log_dir, f"run-{session_id}.{format}")
