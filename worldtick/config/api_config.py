#!filepath: worldtick/config/api_config.py
from pydantic import BaseModel


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8050
