"""Domain services: the use cases behind the HTTP routes."""

from dancing_pony.services.auth import AuthService
from dancing_pony.services.dishes import DishService
from dancing_pony.services.restaurants import RestaurantService

__all__ = ["AuthService", "DishService", "RestaurantService"]
