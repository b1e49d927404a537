"""
Configuration
=============

Application configuration loaded from environment variables.

A .env file next to where the server is started is picked up automatically,
so for local development you can just drop your keys in there:

    OPENWEATHER_API_KEY=your-key-here
    DATABASE_URL=sqlite:///./agritech.db

Author: AgriTech Backend Team
"""

import os
from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Application configuration loaded from environment variables.

    Environment Variables:
        OPENWEATHER_API_KEY: Key for the OpenWeather One Call API
        DATABASE_URL: SQLAlchemy database URL (default: local SQLite file)
        VENDOR_TIMEOUT: Seconds before any EcoWitt/OpenWeather call gives up
        RATE_LIMIT_RETRY_DELAY: Seconds to wait before retrying a rate-limited call
        GROUP_REPORT_CONCURRENCY: How many device reports a group report builds at once
        REPORTS_DIR: Where exported JSON reports are written
        FRONTEND_URL: URL of the frontend for CORS
        LOG_LEVEL: Root log level (DEBUG, INFO, WARNING...)
    """

    # OpenWeather key (one key for the whole process)
    OPENWEATHER_API_KEY = os.getenv("OPENWEATHER_API_KEY", "")

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agritech.db")

    # Outbound calls
    VENDOR_TIMEOUT = float(os.getenv("VENDOR_TIMEOUT", "10"))
    RATE_LIMIT_RETRY_DELAY = float(os.getenv("RATE_LIMIT_RETRY_DELAY", "2"))

    # Group reports run a small worker pool, never more than 8 at once
    GROUP_REPORT_CONCURRENCY = min(8, max(1, int(os.getenv("GROUP_REPORT_CONCURRENCY", "4"))))

    # Exported reports
    REPORTS_DIR = os.getenv("REPORTS_DIR", "./reports")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Frontend URL for CORS
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Allowed CORS origins
    CORS_ORIGINS = [
        FRONTEND_URL,
        "http://localhost:5173",    # Vite dev server
        "http://localhost:3000",    # Create React App
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]
