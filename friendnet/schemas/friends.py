from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from friendnet.schemas.users import User

FriendRequestStatus = Literal["pending", "accepted", "rejected"]
FriendRequestDecision = Literal["accepted", "rejected"]


class FriendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(alias="_id")
    from_user: User = Field(alias="from")
    status: FriendRequestStatus = "pending"


class FriendRecommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user: User
    mutual_friends: int = Field(default=0, ge=0, alias="mutualFriends")


class FriendRequestRespond(BaseModel):
    status: FriendRequestDecision
