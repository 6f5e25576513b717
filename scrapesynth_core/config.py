#!/usr/bin/env python3
from dataclasses import dataclass
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ["true", "1", "yes"]


@dataclass
class Config:
    """Application configuration"""
    ollama_host: str = os.getenv("SCRAPESYNTH_OLLAMA_HOST", "http://localhost:11434")
    ollama_model: str = os.getenv("SCRAPESYNTH_MODEL", "llama3-groq-tool-use")
    temperature: float = float(os.getenv("SCRAPESYNTH_TEMPERATURE", "0.1"))
    top_p: float = float(os.getenv("SCRAPESYNTH_TOP_P", "0.9"))
    num_ctx: int = int(os.getenv("SCRAPESYNTH_NUM_CTX", "8192"))
    num_predict: int = int(os.getenv("SCRAPESYNTH_NUM_PREDICT", "1024"))
    llm_timeout: int = int(os.getenv("SCRAPESYNTH_LLM_TIMEOUT", "300"))

    # Prompt sizing: how much of the snapshot body the model gets to see
    html_sample_chars: int = int(os.getenv("SCRAPESYNTH_HTML_SAMPLE_CHARS", "8000"))
    refine_sample_chars: int = int(os.getenv("SCRAPESYNTH_REFINE_SAMPLE_CHARS", "6000"))

    # Snapshot fetch (once per session, never retried)
    snapshot_timeout: float = float(os.getenv("SCRAPESYNTH_SNAPSHOT_TIMEOUT", "15"))
    min_snapshot_chars: int = int(os.getenv("SCRAPESYNTH_MIN_SNAPSHOT_CHARS", "100"))
    user_agent: str = os.getenv(
        "SCRAPESYNTH_USER_AGENT",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    )

    # Loop bounds
    max_worker_attempts: int = int(os.getenv("SCRAPESYNTH_MAX_WORKER_ATTEMPTS", "5"))
    max_supervisor_iterations: int = int(os.getenv("SCRAPESYNTH_MAX_SUPERVISOR_ITERATIONS", "3"))

    # Execution service: empty URL -> in-process sandbox
    sandbox_url: str = os.getenv("SCRAPESYNTH_SANDBOX_URL", "")
    sandbox_timeout: float = float(os.getenv("SCRAPESYNTH_SANDBOX_TIMEOUT", "30"))

    api_port: int = int(os.getenv("SCRAPESYNTH_API_PORT", os.getenv("API_PORT", "3003")))
    log_dir: Path = Path(os.getenv("SCRAPESYNTH_LOG_DIR", "./logs"))
    run_logs: bool = _env_bool("SCRAPESYNTH_RUN_LOGS", "true")
    enable_debug: bool = _env_bool("SCRAPESYNTH_DEBUG", "false")

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        if self.max_worker_attempts < 1:
            raise ValueError("max_worker_attempts must be at least 1")
        if self.max_supervisor_iterations < 1:
            raise ValueError("max_supervisor_iterations must be at least 1")


config = Config()
