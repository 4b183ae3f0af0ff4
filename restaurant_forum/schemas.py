from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


class FormRepopulation(BaseModel):
    """Submitted form values carried across a failed-submit redirect.

    Passwords are never part of the payload.
    """
    name: Optional[str] = None
    email: Optional[str] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    id: int
    name: str
    image: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class AdminUserRow(UserSummary):
    email: str
    is_admin: bool


class UserProfile(UserSummary):
    email: str
    created_at: Optional[datetime] = None
    # True when the viewer is looking at their own profile
    is_self: bool = False
    favorited_restaurants: List["RestaurantSummary"] = []
    followers: List[UserSummary] = []
    followings: List[UserSummary] = []


class TopUser(UserSummary):
    follower_count: int = 0
    is_followed: bool = False


class RestaurantSummary(BaseModel):
    id: int
    name: str
    image: Optional[str] = None
    description: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class CommentSummary(BaseModel):
    id: int
    text: str
    created_at: Optional[datetime] = None
    restaurant: Optional[RestaurantSummary] = None
    user: Optional[UserSummary] = None
    model_config = ConfigDict(from_attributes=True)


class ProfilePage(BaseModel):
    user: UserProfile
    filtered_comments: List[CommentSummary]
    comment_counts: int


class RestaurantCard(RestaurantSummary):
    category: Optional[CategoryResponse] = None
    is_favorited: bool = False
    is_liked: bool = False


class TopRestaurant(RestaurantCard):
    favorited_count: int = 0


class Pagination(BaseModel):
    current: int
    pages: List[int]
    prev: int
    next: int
    total: int


class RestaurantListPage(BaseModel):
    restaurants: List[RestaurantCard]
    categories: List[CategoryResponse]
    category_id: Optional[int] = None
    pagination: Pagination


class RestaurantDetail(RestaurantCard):
    tel: Optional[str] = None
    address: Optional[str] = None
    opening_hours: Optional[str] = None
    view_count: int = 0
    comments: List[CommentSummary] = []


class RestaurantDashboard(BaseModel):
    restaurant: RestaurantSummary
    category: Optional[CategoryResponse] = None
    comment_count: int = Field(0, ge=0)
    favorite_count: int = Field(0, ge=0)
    like_count: int = Field(0, ge=0)
    view_count: int = Field(0, ge=0)


class Feeds(BaseModel):
    restaurants: List[RestaurantCard]
    comments: List[CommentSummary]


class RestaurantForm(BaseModel):
    name: str
    tel: Optional[str] = None
    address: Optional[str] = None
    opening_hours: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None


UserProfile.model_rebuild()
