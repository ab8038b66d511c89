"""
Load environment variables from the .env file.
"""

from typing import Literal

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration settings for the backend, loaded from a `.env` file.

    :param AnyHttpUrl api_base_url: Base URL of the backend API, used for generating absolute URLs.
    :param list[str] cors_allow_origins: List of allowed origins for CORS. Wildcard `*` allows all origins.
    :param bool cors_allow_credentials: Whether CORS requests can include credentials (e.g., cookies or headers).
    :param list[str] cors_allow_methods: List of HTTP methods allowed for CORS. Wildcard `*` allows all methods.
    :param list[str] cors_allow_headers: List of HTTP headers allowed in CORS requests. Wildcard `*` allows all headers.
    :param int max_qubits: Largest register a quantum node may simulate.
    :param int default_shots: Shots used by quantum nodes that leave `shots` at its default.
    :param float node_delay: Pause in seconds after each executed node, for progress feedback in the editor.
    :param str log_level: Level of the `hybridflow` loggers.
    :param bool debug: Expose tracebacks of server errors in problem details.
    """

    api_base_url: AnyHttpUrl = AnyHttpUrl(url="http://localhost:8000/")

    cors_allow_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    max_qubits: int = Field(default=16, ge=1, le=24)
    default_shots: int = Field(default=1000, ge=1)
    node_delay: float = Field(default=0.0, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
