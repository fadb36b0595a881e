"""
Runtime settings.

'MessagingSettings' collects the display fallbacks, paging defaults, deadline
and backend selection used across the toolkit. Values come from keyword
arguments or, via 'from_env', from 'MESSAGING_<FIELD>' environment variables,
e.g. 'MESSAGING_BACKEND=mongodb' or 'MESSAGING_OPERATION_TIMEOUT_SECONDS=2.5'.
"""

import os
from typing import Literal

from pydantic import BaseModel, Field

ENV_PREFIX = "MESSAGING_"


class MessagingSettings(BaseModel):
    preview_max_length: int = Field(default=50, ge=4)
    default_group_title: str = "Group Conversation"
    default_group_image_url: str = "/images/default-group.png"
    default_direct_title: str = "User"
    default_profile_image_url: str = "/images/default-profile.png"

    conversation_page_size: int = Field(default=20, gt=0)
    message_page_size: int = Field(default=50, gt=0)
    media_page_size: int = Field(default=20, gt=0)
    search_page_size: int = Field(default=20, gt=0)

    operation_timeout_seconds: float | None = Field(default=None, gt=0)
    log_level: str = "INFO"

    backend: Literal["memory", "mongodb"] = "memory"
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "messaging"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "MessagingSettings":
        """Build settings from 'MESSAGING_*' variables; unset variables keep their defaults."""
        environ = dict(os.environ) if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None or raw == "":
                continue
            values[name] = raw
        return cls.model_validate(values)
