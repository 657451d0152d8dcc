"""
Pydantic schemas for filing endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel


class CountResponse(BaseModel):
    count: int
    time: str


class FirstResponse(BaseModel):
    id: int
