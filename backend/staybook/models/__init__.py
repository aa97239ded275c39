# Ontology Models
from staybook.models.ontology import (
    User, Room, Booking, BookingSequence
)

__all__ = [
    'User', 'Room', 'Booking', 'BookingSequence'
]
