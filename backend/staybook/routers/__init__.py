# API Routers
from staybook.routers import auth, rooms, bookings, admin

__all__ = ['auth', 'rooms', 'bookings', 'admin']
