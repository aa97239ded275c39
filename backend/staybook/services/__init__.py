# Business Services
from staybook.services.booking_service import BookingService
from staybook.services.room_service import RoomService
from staybook.services.user_service import UserService

__all__ = [
    'BookingService', 'RoomService', 'UserService'
]
