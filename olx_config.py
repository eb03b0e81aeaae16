"""
Configuration Management
========================

Settings shared by the batch scraper and the HTTP API. Values come from the
environment (or a ``.env`` file next to this module) and fall back to the
defaults below.
"""

import os
from typing import Any, Dict

from dotenv import load_dotenv

script_dir = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(script_dir, ".env"))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration"""

    # Scraper
    REGION_LINK = os.getenv(
        "OLX_REGION_LINK",
        "https://www.olx.com.br/imoveis/estado-pe/grande-recife/recife/",
    )
    MAX_TABS = int(os.getenv("OLX_MAX_TABS", 10))
    HEADLESS = _env_bool("OLX_HEADLESS", "true")
    DEFAULT_TIMEOUT_MS = int(os.getenv("OLX_DEFAULT_TIMEOUT_MS", 180_000))
    OUTPUT_DIR = os.getenv("OLX_OUTPUT_DIR", "scraping_output")

    # Server
    HOST = os.getenv("HOST", "127.0.0.1")
    PORT = int(os.getenv("PORT", 3000))
    DEBUG = _env_bool("DEBUG", "false")

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Export configuration as dictionary"""
        return {
            "region_link": cls.REGION_LINK,
            "max_tabs": cls.MAX_TABS,
            "headless": cls.HEADLESS,
            "default_timeout_ms": cls.DEFAULT_TIMEOUT_MS,
            "output_dir": cls.OUTPUT_DIR,
            "host": cls.HOST,
            "port": cls.PORT,
            "debug": cls.DEBUG,
        }


config = Config()
