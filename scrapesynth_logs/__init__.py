"""
scrapesynth_logs - Run logs for scraper synthesis sessions

Usage:
    from scrapesynth_logs import create_run_logger, LogConfig

    cfg = LogConfig.from_env()
    run_logger = create_run_logger(url, fields, log_dir=cfg.log_dir)
    run_logger.log_heading("Supervisor iteration 1")
    run_logger.finalize(success=True)
"""

from .log_config import LogConfig
from .run_logger import RunLogger, create_run_logger

__all__ = [
    'LogConfig',
    'RunLogger',
    'create_run_logger',
]

__version__ = '1.0.0'
