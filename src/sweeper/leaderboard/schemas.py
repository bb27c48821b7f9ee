"""Request models for the leaderboard API.

Fields are deliberately loose: each one is checked by the validators so the
caller gets a specific error code rather than a generic schema failure.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScoreSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Any = None
    time: Any = None
    game_data: Any = Field(default=None, alias="gameData")
