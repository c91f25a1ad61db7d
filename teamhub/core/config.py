# teamhub/core/config.py
import os
from typing import List

from dotenv import load_dotenv


class Settings:
    """
    Setup environment variables.
        - JWT_SECRET / JWT_ALGORITHM used to verify bearer tokens
        - GLOBAL_ID the fixed id of the deployment-wide scope
        - SNAPSHOT_LIMIT how many stored messages a socket gets on join
        - STORE_PATH JSON file backing the document store ("" keeps it in memory)
    """

    # Load environment variables from the .env file
    load_dotenv()

    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    GLOBAL_ID: str = os.getenv("GLOBAL_ID", "Global123")
    SNAPSHOT_LIMIT: int = int(os.getenv("SNAPSHOT_LIMIT", "100"))

    STORE_PATH: str = os.getenv("STORE_PATH", "")

    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ]

    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))


settings = Settings()
